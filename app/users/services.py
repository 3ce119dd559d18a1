"""
app/users/services.py

User Service Layer
Profile maintenance for the current user and the public craftsman directory.
"""

import json
import logging

from sqlalchemy import String, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.backend import call_backend
from app.database.enums import UserRole
from app.database.models import User
from app.jobs.services import escape_like
from app.users import schemas

logger = logging.getLogger(__name__)

CRAFTSMAN_ONLY_FIELDS = {"bio", "categories", "experience_years"}


def _is_profile_complete(user: User) -> bool:
    address = user.address or {}
    return bool(
        user.first_name
        and user.last_name
        and address.get("street")
        and address.get("postal_code")
        and address.get("city")
    )


def _to_craftsman_read(user: User) -> schemas.CraftsmanRead:
    return schemas.CraftsmanRead(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        company_name=user.company_name,
        display_name=user.display_name,
        bio=user.bio,
        categories=user.categories or [],
        experience_years=user.experience_years,
        city=(user.address or {}).get("city"),
    )


class UserService:
    """Service class for user profile operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def update_profile(self, user: User, payload: schemas.UserUpdate) -> User:
        """Apply a partial update and recompute `profile_completed`."""
        update_data = payload.model_dump(exclude_unset=True)
        if user.role != UserRole.CRAFTSMAN:
            for field in CRAFTSMAN_ONLY_FIELDS & update_data.keys():
                logger.debug(f"Ignoring craftsman field '{field}' for user {user.id}")
                update_data.pop(field)

        for key, value in update_data.items():
            setattr(user, key, value)
        user.profile_completed = _is_profile_complete(user)

        try:
            await call_backend(self.db, self.db.commit, "update profile", retries=0)
        except Exception as e:
            logger.error(f"Error updating profile for user {user.id}: {e}", exc_info=True)
            await self.db.rollback()
            raise

        logger.info(f"Profile updated for user {user.id}: fields={sorted(update_data)}")
        return user

    async def list_craftsmen(
        self, filters: schemas.CraftsmanFilter, skip: int = 0, limit: int = 50
    ) -> tuple[list[schemas.CraftsmanRead], int]:
        """Active craftsmen with completed profiles, optionally by category and city."""
        conditions = [
            User.role == UserRole.CRAFTSMAN,
            User.profile_completed.is_(True),
            User.is_active.is_(True),
        ]
        if filters.category:
            # Matches the JSON-encoded element, quotes included, so "Elektro" never hits "Elektrotechnik"
            needle = escape_like(json.dumps(filters.category))
            conditions.append(cast(User.categories, String).like(f"%{needle}%", escape="\\"))
        if filters.city and filters.city.strip():
            pattern = f"%{escape_like(filters.city.strip())}%"
            conditions.append(User.address["city"].as_string().ilike(pattern, escape="\\"))

        count_stmt = select(func.count(User.id)).filter(*conditions)
        stmt = (
            select(User)
            .filter(*conditions)
            .order_by(User.last_name, User.first_name, User.id)
            .offset(skip)
            .limit(limit)
        )

        async def _count() -> int:
            return (await self.db.execute(count_stmt)).scalar_one()

        async def _run() -> list[User]:
            return list((await self.db.execute(stmt)).scalars().all())

        total_count = await call_backend(self.db, _count, "count craftsmen")
        craftsmen = await call_backend(self.db, _run, "list craftsmen")
        logger.info(f"Listed {len(craftsmen)} of {total_count} craftsmen (skip={skip}, limit={limit})")
        return [_to_craftsman_read(c) for c in craftsmen], total_count
