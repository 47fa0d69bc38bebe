"""
Roster domain modules.

- shared: BaseService, BaseRepository, domain exceptions
- user: identity sync (UserRegistrationService)
- guild: registry, membership workflow, permissions, audit
- tag: tag registry
- character: character roster and roles
- party: party coordinator
"""
