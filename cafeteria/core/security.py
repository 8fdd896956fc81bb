"""
Security helpers: password hashing, JWT tokens and role-gated dependencies.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .database import db_manager
from .exceptions import AuthenticationError, PermissionDeniedError
from ..config.settings import settings
from ..models.user import Role, User

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 120_000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Return ``salt$hexdigest`` for the password."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"),
                                 salt.encode("utf-8"), PBKDF2_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        salt, _ = password_hash.split("$", 1)
    except ValueError:
        return False
    return hmac.compare_digest(hash_password(password, salt), password_hash)


class SecurityManager:
    """JWT issuing and decoding."""

    def create_jwt_token(self, username: str, role: Role,
                         additional_claims: Dict[str, Any] = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": username,
            "role": Role(role).value,
            "iat": now,
            "exp": now + timedelta(hours=settings.jwt_expire_hours),
        }
        if additional_claims:
            payload.update(additional_claims)
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {e}")


security_manager = SecurityManager()

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)
) -> User:
    """Resolve the bearer token to an active user."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = security_manager.decode_jwt_token(credentials.credentials)
    username = payload.get("sub")
    if not username:
        raise AuthenticationError("Token missing subject")

    row = db_manager.fetch_one(
        "SELECT id, username, email, full_name, role, is_active, last_login, created_at "
        "FROM users WHERE username = ?",
        [username],
    )
    if not row or not row["is_active"]:
        raise AuthenticationError("User not found or inactive")
    return User(**row)


def require_role(required: Role):
    """Build a dependency that admits users whose role is at least ``required``."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if not user.role.allows(required):
            logger.warning("User %s (%s) denied, %s required",
                           user.username, user.role.value, required.value)
            raise PermissionDeniedError(f"{required.value} role required")
        return user

    return dependency


require_operator = require_role(Role.OPERATOR)
require_manager = require_role(Role.MANAGER)
require_admin = require_role(Role.ADMIN)
