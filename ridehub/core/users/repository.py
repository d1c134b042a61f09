# ridehub/core/users/repository.py
"""
User repository.
Only what the real-time layer needs: the public snapshot and last_seen.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from ridehub.common.exceptions import PersistenceError
from ridehub.common.logger import log_error
from ridehub.infra.database import DatabaseManager
from ridehub.shared.models.user_dto import UserSnapshot


class UserRepository:
    """Users stored in PostgreSQL."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_snapshot(self, user_id: str) -> Optional[UserSnapshot]:
        """
        Loads a user's public identity.

        Args:
            user_id: User id

        Returns:
            Snapshot or None
        """
        try:
            row = await self._db.fetchrow(
                "SELECT id, name, avatar FROM users WHERE id = $1",
                user_id,
            )
        except Exception as e:
            await log_error(f"Failed to load user {user_id}: {e}")
            raise PersistenceError("Failed to load user") from e

        if row is None:
            return None
        return UserSnapshot(id=row["id"], name=row["name"], avatar=row["avatar"])

    async def touch_last_seen(self, user_id: str, when: datetime | None = None) -> None:
        """Stores the moment a user was last connected."""
        try:
            await self._db.execute(
                "UPDATE users SET last_seen = $2 WHERE id = $1",
                user_id,
                when or datetime.now(timezone.utc),
            )
        except Exception as e:
            await log_error(f"Failed to update last_seen for {user_id}: {e}")
            raise PersistenceError("Failed to update user") from e
