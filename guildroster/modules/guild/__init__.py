"""
Guild Module
============

Guild registry, membership workflow, permission gate and audit trail.

Exports:
- GuildService: Registry operations (create, transfer leadership, delete, roster)
- GuildInviteService: Invitation operations (invite, accept, decline, revoke)
- GuildMemberService: Membership operations (set role, leave, kick)
- GuildPermissionService: Membership-derived authorization helpers
- GuildAuditService: Audit trail operations (record, query, cleanup)
"""

from .audit_service import GuildAuditService
from .core_service import GuildService
from .invite_service import GuildInviteService
from .member_service import GuildMemberService
from .permission_service import GuildPermissionService

__all__ = [
    "GuildService",
    "GuildInviteService",
    "GuildMemberService",
    "GuildPermissionService",
    "GuildAuditService",
]
