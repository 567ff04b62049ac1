"""
Auth Store
==========

Holds the signed-in user for the client session.
"""

from typing import Optional

from loguru import logger
from pydantic import ValidationError

from marketmind.api.database import StorageError
from marketmind.api.schemas import UserProfile
from marketmind.services.auth import BUILTIN_ACCOUNTS, AuthenticationError, AuthService


class AuthStore:
    """Session state for authentication."""

    def __init__(self, auth_service: AuthService):
        self.auth = auth_service
        self.profile: Optional[UserProfile] = None
        self.is_loading = False
        self.error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.profile is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.profile.id if self.profile else None

    def initialize_auth(self):
        """Sign in the demo user automatically when there is no auth backend."""
        if self.auth.demo_mode and self.profile is None:
            logger.info("Auth backend not initialized, using demo mode")
            self.profile = BUILTIN_ACCOUNTS["demo@example.com"][1].model_copy()

    def login(self, email: str, password: str) -> bool:
        """Sign in; returns False and records `error` on failure."""
        return self._sign_in(lambda: self.auth.login(email, password), "Login failed")

    def register(self, email: str, password: str, name: str) -> bool:
        """Create an account and sign it in; returns False and records `error` on failure."""
        return self._sign_in(lambda: self.auth.register(email, password, name), "Registration failed")

    def _sign_in(self, action, default_error: str) -> bool:
        self.is_loading = True
        self.error = None
        try:
            self.profile = action()
            return True
        except AuthenticationError as e:
            logger.error(f"{default_error}: {e}")
            self.error = str(e) or default_error
            return False
        finally:
            self.is_loading = False

    def logout(self):
        """Clear the session."""
        self.auth.logout(self.user_id)
        self.profile = None
        self.is_loading = False
        self.error = None

    def update_user_profile(self, **changes) -> bool:
        """
        Update profile fields; `None` values are ignored.

        Returns:
            True if the profile was updated
        """
        if self.profile is None:
            self.error = "No authenticated user"
            return False

        clean = {k: v for k, v in changes.items() if v is not None}
        try:
            updated = UserProfile(**{**self.profile.model_dump(), **clean})
            stored = self.auth.update_user_profile(self.profile.id, clean)
        except (ValidationError, StorageError) as e:
            self.error = str(e)
            return False

        self.profile = stored or updated
        return True

    def clear_error(self):
        self.error = None
