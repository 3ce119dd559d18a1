"""
app/users/routes.py

User Routes
- View and update own profile (Authenticated)
- Browse craftsmen with completed profiles (Authenticated)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import PaginationParams, get_current_user
from app.core.limiter import limiter
from app.core.schemas import PaginatedResponse
from app.database.models import User
from app.database.session import get_db
from app.users import schemas
from app.users.services import UserService

router = APIRouter(prefix="/users", tags=["Users"])

DBDep = Annotated[AsyncSession, Depends(get_db)]
AuthenticatedUserDep = Annotated[User, Depends(get_current_user)]


@router.get(
    "/me",
    response_model=schemas.UserRead,
    status_code=status.HTTP_200_OK,
    summary="Get My Profile",
)
@limiter.limit("30/minute")
async def get_my_profile(request: Request, current_user: AuthenticatedUserDep) -> schemas.UserRead:
    return schemas.UserRead.model_validate(current_user)


@router.patch(
    "/me",
    response_model=schemas.UserRead,
    status_code=status.HTTP_200_OK,
    summary="Update My Profile",
    description="Partial profile update. Name and complete address mark the profile as completed.",
)
@limiter.limit("10/minute")
async def update_my_profile(
    request: Request,
    payload: schemas.UserUpdate,
    db: DBDep,
    current_user: AuthenticatedUserDep,
) -> schemas.UserRead:
    user = await UserService(db).update_profile(current_user, payload)
    return schemas.UserRead.model_validate(user)


@router.get(
    "/craftsmen",
    response_model=PaginatedResponse[schemas.CraftsmanRead],
    status_code=status.HTTP_200_OK,
    summary="Browse Craftsmen",
)
@limiter.limit("30/minute")
async def list_craftsmen(
    request: Request,
    db: DBDep,
    current_user: AuthenticatedUserDep,
    category: str | None = Query(None, description="Trade category"),
    city: str | None = Query(None, description="City (case-insensitive substring)"),
    pagination: PaginationParams = Depends(),
) -> PaginatedResponse[schemas.CraftsmanRead]:
    items, total_count = await UserService(db).list_craftsmen(
        schemas.CraftsmanFilter(category=category, city=city),
        skip=pagination.skip,
        limit=pagination.limit,
    )
    return PaginatedResponse(
        total_count=total_count,
        has_next_page=(pagination.skip + len(items)) < total_count,
        items=items,
    )
