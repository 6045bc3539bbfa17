"""Core Business Logic Module

Role and permission logic for the onboarding service, independent of Flask.

Module Structure:
    - permissions.py : Permission catalog and Scope enum
    - models.py      : Role, UserProfile, RoleRevocation, RoleOutput
    - exceptions.py  : Error taxonomy (status-carrying exceptions)
    - store/         : RoleStore interface, in-memory and HTTP adapters
    - gate.py        : PermissionGate (fail-closed scope check)
    - identity.py    : IdentityResolver interface
    - roles.py       : RoleService (lifecycle + assignment) and build_role_output
    - audit.py       : Signed JSONL audit trail

Usage Pattern:
    from onboarding.core.roles import RoleService
    from onboarding.core.store import InMemoryRoleStore
    from onboarding.core.identity import StaticIdentityResolver
"""
