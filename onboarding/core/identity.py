"""Resolution of the acting user."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from .exceptions import AuthenticationError
from .models import Actor


class IdentityResolver(ABC):
    """Source of the currently logged in user."""

    @abstractmethod
    def get_logged_in_user(self) -> Actor:
        """Return the acting user.

        Raises:
            AuthenticationError: If no user is logged in
        """

    def get_logged_in_user_uid(self) -> str:
        return self.get_logged_in_user().uid


class StaticIdentityResolver(IdentityResolver):
    """Always resolves to the same actor (CLI tooling, bootstrap jobs, tests)."""

    def __init__(self, actor: Optional[Actor]):
        self.actor = actor

    def get_logged_in_user(self) -> Actor:
        if self.actor is None or not self.actor.uid:
            raise AuthenticationError("No logged in user")
        return self.actor
