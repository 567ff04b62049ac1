"""
Authentication Service
======================

Email/password sign-in against the user documents in storage, with built-in
demo and admin accounts. Without storage every sign-in yields a demo user.
"""

from typing import Dict, Optional

from loguru import logger
from passlib.hash import pbkdf2_sha256

from config import get_config
from marketmind.api.database import DatabaseManager, StorageError
from marketmind.api.schemas import UserProfile


DEMO_USER_ID = "demo-user-id"

BUILTIN_ACCOUNTS = {
    "demo@example.com": (
        "password123",
        UserProfile(id=DEMO_USER_ID, name="Demo User", email="demo@example.com",
                    company="Demo Company", plan="pro"),
    ),
    "admin@example.com": (
        "admin123",
        UserProfile(id="admin-user-id", name="Admin User", email="admin@example.com",
                    company="MarketMind", plan="enterprise"),
    ),
}


class AuthenticationError(Exception):
    """Raised when sign-in or registration is refused."""


def demo_profile(email: str = "demo@example.com", name: Optional[str] = None, plan: str = "pro") -> UserProfile:
    """Profile handed out when running without an authentication backend."""
    return UserProfile(
        id=DEMO_USER_ID,
        name=name or email.split("@")[0],
        email=email,
        company="Demo Company" if plan == "pro" else "Not set",
        plan=plan,
    )


class AuthService:
    """Sign users in and manage their profiles."""

    def __init__(self, config: Optional[dict] = None, storage: Optional[DatabaseManager] = None):
        """
        Initialize AuthService.

        Args:
            config: Configuration dictionary
            storage: Storage backend holding user documents
        """
        self.config = config or get_config()
        self.storage = storage
        self.demo_mode = storage is None or self.config.get("auth", {}).get("demo_mode", False)

    def login(self, email: str, password: str) -> UserProfile:
        """
        Sign in with email and password.

        Args:
            email: Login email
            password: Plain-text password

        Returns:
            Profile of the signed-in user
        """
        builtin = BUILTIN_ACCOUNTS.get(email)
        if builtin and builtin[0] == password:
            return builtin[1].model_copy()

        if self.demo_mode:
            logger.info("Auth backend not initialized, using mock login")
            return demo_profile(email)

        try:
            user = self.storage.get_user_by_email(email)
        except StorageError as e:
            raise AuthenticationError(f"Login failed: {e}") from e

        if user is None or not user["password_hash"] or not pbkdf2_sha256.verify(password, user["password_hash"]):
            raise AuthenticationError("Invalid email or password")

        logger.info(f"User {user['profile'].id} signed in")
        return user["profile"]

    def register(self, email: str, password: str, name: str) -> UserProfile:
        """
        Create an account.

        Args:
            email: Login email
            password: Plain-text password
            name: Display name

        Returns:
            Profile of the new user
        """
        if self.demo_mode:
            logger.info("Auth backend not initialized, using mock registration")
            return demo_profile(email, name=name, plan="free")

        try:
            return self.storage.create_user(
                email=email,
                password_hash=pbkdf2_sha256.hash(password),
                display_name=name,
                plan="free",
            )
        except StorageError as e:
            logger.error(f"Registration error: {e}")
            raise AuthenticationError(str(e)) from e

    def get_user_profile(self, uid: str) -> Optional[UserProfile]:
        """Fetch a stored profile; None in demo mode or for unknown users."""
        if self.demo_mode:
            return None
        return self.storage.get_user_profile(uid)

    def update_user_profile(self, uid: str, changes: Dict) -> Optional[UserProfile]:
        """
        Write profile changes to storage.

        Returns:
            The stored profile, or None when the user has no stored document
        """
        if self.get_user_profile(uid) is None:
            return None
        return self.storage.update_user_profile(uid, changes)

    def logout(self, uid: Optional[str]):
        """End the session for a user."""
        logger.info(f"User {uid} signed out")
