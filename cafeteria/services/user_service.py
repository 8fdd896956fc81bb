"""
Administrative user accounts and login.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.database import db_manager, DatabaseManager
from ..core.exceptions import (
    AuthenticationError,
    BusinessRuleError,
    DuplicateResourceError,
    UserNotFoundError,
)
from ..core.security import hash_password, security_manager, verify_password
from ..core.timeutils import facility_now
from ..models.user import Role, User, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, username, email, full_name, role, is_active, last_login, created_at"


class UserService:
    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or db_manager

    def list_users(self) -> List[User]:
        return [User(**row) for row in self.db.fetch_all(f"SELECT {USER_COLUMNS} FROM users ORDER BY id")]

    def get_user(self, user_id: int, conn=None) -> User:
        row = self.db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", [user_id], conn)
        if not row:
            raise UserNotFoundError(f"User {user_id} not found")
        return User(**row)

    def create_user(self, data: UserCreate, actor: Optional[User] = None) -> User:
        with self.db.transaction() as conn:
            if self.db.fetch_one("SELECT 1 AS present FROM users WHERE username = ?",
                                 [data.username], conn):
                raise DuplicateResourceError(f"Username {data.username} is already taken")
            user_id = conn.execute(
                "INSERT INTO users(username, email, full_name, role, password_hash, is_active) "
                "VALUES (?,?,?,?,?,?) RETURNING id",
                [data.username, data.email, data.full_name, data.role.value,
                 hash_password(data.password), data.is_active],
            ).fetchone()[0]
            self.db.log_action(conn, "user_create",
                               {"user_id": user_id, "username": data.username, "role": data.role.value},
                               actor_id=actor.id if actor else None)
            return self.get_user(user_id, conn)

    def update_user(self, user_id: int, data: UserUpdate, actor: Optional[User] = None) -> User:
        changes: Dict[str, Any] = data.model_dump(exclude_unset=True, mode="json")
        password = changes.pop("password", None)
        if password:
            changes["password_hash"] = hash_password(password)
        with self.db.transaction() as conn:
            self.get_user(user_id, conn)
            if changes:
                assignments = ", ".join(f"{column} = ?" for column in changes)
                conn.execute(f"UPDATE users SET {assignments} WHERE id = ?", [*changes.values(), user_id])
                self.db.log_action(conn, "user_update",
                                   {"user_id": user_id, "fields": sorted(changes)},
                                   actor_id=actor.id if actor else None)
            return self.get_user(user_id, conn)

    def toggle_status(self, user_id: int, actor: Optional[User] = None) -> User:
        with self.db.transaction() as conn:
            user = self.get_user(user_id, conn)
            if actor and actor.id == user_id:
                raise BusinessRuleError("You cannot deactivate your own account")
            conn.execute("UPDATE users SET is_active = ? WHERE id = ?", [not user.is_active, user_id])
            self.db.log_action(conn, "user_toggle", {"user_id": user_id, "is_active": not user.is_active},
                               actor_id=actor.id if actor else None)
            return self.get_user(user_id, conn)

    def delete_user(self, user_id: int, actor: Optional[User] = None):
        with self.db.transaction() as conn:
            self.get_user(user_id, conn)
            if actor and actor.id == user_id:
                raise BusinessRuleError("You cannot delete your own account")
            conn.execute("DELETE FROM users WHERE id = ?", [user_id])
            self.db.log_action(conn, "user_delete", {"user_id": user_id},
                               actor_id=actor.id if actor else None)

    def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        """Check credentials and issue a bearer token."""
        row = self.db.fetch_one(
            f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE username = ?", [username]
        )
        if not row or not verify_password(password, row.pop("password_hash")):
            logger.info("Failed login for %s", username)
            raise AuthenticationError("Invalid username or password")
        if not row["is_active"]:
            raise AuthenticationError("Account is disabled")

        last_login = facility_now().isoformat(timespec="seconds")
        with self.db.transaction() as conn:
            conn.execute("UPDATE users SET last_login = ? WHERE id = ?", [last_login, row["id"]])
        row["last_login"] = last_login

        user = User(**row)
        return {
            "access_token": security_manager.create_jwt_token(user.username, user.role),
            "token_type": "Bearer",
            "user": user,
        }

    def ensure_admin(self, username: str, password: str) -> User:
        """Create the first admin account when none exists yet."""
        row = self.db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE role = 'admin' LIMIT 1")
        if row:
            return User(**row)
        logger.info("Creating initial admin account %s", username)
        return self.create_user(UserCreate(username=username, password=password, role=Role.ADMIN))
