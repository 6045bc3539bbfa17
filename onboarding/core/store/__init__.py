"""Role store adapters.

- base.py: RoleStore interface
- memory.py: in-process store (demo mode, tests)
- client.py: HTTP client for the profile store with token refresh
- http.py: RoleStore over the profile store REST API
"""
from .base import RoleStore
from .client import ProfileStoreAPIError, ProfileStoreClient, REQUEST_TIMEOUT
from .http import HttpRoleStore
from .memory import InMemoryRoleStore

__all__ = [
    "RoleStore",
    "InMemoryRoleStore",
    "HttpRoleStore",
    "ProfileStoreClient",
    "ProfileStoreAPIError",
    "REQUEST_TIMEOUT",
]
