"""
Authentication utilities for Appwrite JWT verification.
"""
from typing import Optional
import jwt
from fastapi import status
from appwrite.client import Client
from appwrite.services.users import Users
from appwrite.exception import AppwriteException

from app.core import config
from app.core.errors import APIError
from app.utils import get_logger


log = get_logger(__name__)


class AppwriteClient:
    """Singleton Appwrite client for server-side operations."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        """Get or create Appwrite client instance."""
        if cls._instance is None:
            cls._instance = Client()
            cls._instance.set_endpoint(config.APPWRITE_ENDPOINT)
            cls._instance.set_project(config.APPWRITE_PROJECT_ID)
            cls._instance.set_key(config.APPWRITE_API_KEY)
        return cls._instance


def verify_jwt_token(token: str) -> dict:
    """
    Decode an Appwrite session JWT and return its payload.

    Appwrite signs the token; we only check expiry here and confirm the user
    exists with Appwrite when we first see them.

    Raises:
        APIError: 401 if the token is expired or malformed
    """
    try:
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        raise APIError(status.HTTP_401_UNAUTHORIZED, "Token has expired")
    except jwt.InvalidTokenError as e:
        log.debug("Rejected token: %s", e)
        raise APIError(status.HTTP_401_UNAUTHORIZED, "Invalid token")


async def get_appwrite_user(user_id: str) -> dict:
    """
    Fetch a user from Appwrite.

    The returned dict carries `email`, `name` and `prefs`; tenant and legacy
    role are read from `prefs.tenantId` / `prefs.role`.

    Raises:
        APIError: 401 if the user cannot be verified
    """
    try:
        users = Users(AppwriteClient.get_client())
        return users.get(user_id)
    except AppwriteException as e:
        log.warning("Appwrite lookup failed for %s: %s", user_id, e)
        raise APIError(status.HTTP_401_UNAUTHORIZED, "Failed to verify user")
