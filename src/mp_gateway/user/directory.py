"""Read-only profile lookups used for order snapshots.

Users are owned by the identity service; this service only reads the
columns it copies onto orders.
"""
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.errors import UserNotFoundError

_GET_PROFILE_SQL = text("""
    SELECT id, username, avatar_url
    FROM users WHERE id = :id
""")


@dataclass(frozen=True)
class UserProfile:
    id: str
    username: str
    avatar_url: str | None = None


class UserDirectoryProtocol(Protocol):
    async def get_profile(self, user_id: str, db: AsyncSession) -> UserProfile: ...


def _row_to_profile(row: Any) -> UserProfile:
    return UserProfile(id=row.id, username=row.username, avatar_url=row.avatar_url)


class UserDirectory:
    async def get_profile(self, user_id: str, db: AsyncSession) -> UserProfile:
        result = await db.execute(_GET_PROFILE_SQL, {"id": user_id})
        row = result.fetchone()
        if row is None:
            raise UserNotFoundError(user_id)
        return _row_to_profile(row)
