"""
Core infrastructure layer for the guild roster engine.

Subsystems
----------
- config: Config (environment), ConfigManager (YAML defaults, overrides)
- logging: structured logging, command context, setup/shutdown
- database: declarative Base, DatabaseService, schema bootstrap
- event: EventBus with priorities and wildcard routing
- validation: InputValidator
- services: ServiceContainer wiring every roster service

This package is intentionally thin: import from the subpackages directly.
"""
