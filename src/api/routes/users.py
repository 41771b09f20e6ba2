"""
Profile & notification endpoints
================================

GET   /api/v1/users/me                               -- caller's profile
PUT   /api/v1/users/me                               -- update profile / emergency contact
GET   /api/v1/users/me/notifications                 -- newest first
PATCH /api/v1/users/me/notifications/{id}/read       -- mark one as read
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import Identity, get_current_user, get_db
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    NotificationResponse,
    UserProfileResponse,
    UserProfileUpdate,
)
from src.infrastructure.repositories import NotificationRepository, UserRepository

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserProfileResponse, summary="Get your profile")
@limiter.limit(RATE_LIMIT)
async def get_profile(
    request: Request,
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserRepository(db).get_or_create(
        user.id, display_name=user.display_name, email=user.email
    )


@router.put("/me", response_model=UserProfileResponse, summary="Update your profile")
@limiter.limit(RATE_LIMIT)
async def update_profile(
    request: Request,
    body: UserProfileUpdate,
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    profile = await UserRepository(db).get_or_create(
        user.id, display_name=user.display_name, email=user.email
    )
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(profile, key, value)
    await db.flush()
    return profile


@router.get(
    "/me/notifications",
    response_model=list[NotificationResponse],
    summary="List your notifications",
)
@limiter.limit(RATE_LIMIT)
async def list_notifications(
    request: Request,
    unread_only: bool = False,
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationRepository(db).get_for_user(user.id, unread_only=unread_only)


@router.patch(
    "/me/notifications/{notification_id}/read",
    status_code=204,
    summary="Mark a notification as read",
)
@limiter.limit(RATE_LIMIT)
async def mark_notification_read(
    request: Request,
    notification_id: int,
    user: Identity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not await NotificationRepository(db).mark_read(user.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
