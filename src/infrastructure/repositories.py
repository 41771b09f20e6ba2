"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Rows are handed to the domain layer as
dataclasses (``to_entity``) and written back with ``apply_entity``; the
session transaction is the atomic batch.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    ChatMessageModel,
    EmergencyAlertModel,
    NotificationModel,
    RideModel,
    RideRequestModel,
    UserModel,
)
from src.domain.entities import Notification, Ride, RideRequest
from src.domain.enums import OPEN_STATUSES, RequestStatus, RideStatus, VehicleType

_READ_ONLY = ("id", "created_at")


def to_entity(model, entity_cls):
    """Copy the columns *entity_cls* declares from an ORM row."""
    values = {}
    for f in fields(entity_cls):
        if not hasattr(model, f.name):
            continue
        value = getattr(model, f.name)
        values[f.name] = list(value) if isinstance(value, list) else value
    return entity_cls(**values)


def apply_entity(model, entity) -> None:
    """Write an entity's mutable fields back onto its ORM row."""
    for f in fields(entity):
        if f.name in _READ_ONLY or not hasattr(model, f.name):
            continue
        value = getattr(entity, f.name)
        setattr(model, f.name, list(value) if isinstance(value, list) else value)


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: Ride) -> RideModel:
        model = RideModel()
        apply_entity(model, ride)
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return model

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_for_update(self, ride_id: int) -> Optional[RideModel]:
        """Re-read the ride inside the current transaction (row lock)."""
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id == ride_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_open_rides(
        self,
        *,
        exclude_owner: Optional[str] = None,
        from_location: Optional[str] = None,
        to_location: Optional[str] = None,
        vehicle_type: Optional[VehicleType] = None,
    ) -> list[RideModel]:
        query = select(RideModel).where(RideModel.status.in_(list(OPEN_STATUSES)))
        if exclude_owner:
            query = query.where(RideModel.created_by != exclude_owner)
        if from_location:
            query = query.where(RideModel.from_location == from_location)
        if to_location:
            query = query.where(RideModel.to_location == to_location)
        if vehicle_type:
            query = query.where(RideModel.vehicle_type == vehicle_type)
        result = await self.session.execute(query.order_by(RideModel.date_time))
        return list(result.scalars().all())

    async def get_rides_for_participant(self, user_id: str) -> list[RideModel]:
        # participant_ids always mirrors driver_id / passenger_id
        result = await self.session.execute(
            select(RideModel)
            .where(
                (RideModel.driver_id == user_id)
                | (RideModel.passenger_id == user_id)
            )
            .order_by(RideModel.date_time.desc())
        )
        return [r for r in result.scalars().all() if user_id in r.participant_ids]

    async def count_by_status(self) -> dict[RideStatus, int]:
        result = await self.session.execute(
            select(RideModel.status, func.count()).group_by(RideModel.status)
        )
        return {status: count for status, count in result.all()}


class RideRequestRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, request: RideRequest) -> RideRequestModel:
        model = RideRequestModel()
        apply_entity(model, request)
        self.session.add(model)
        await self.session.flush()
        await self.session.refresh(model)
        return model

    async def get_by_id(self, request_id: int) -> Optional[RideRequestModel]:
        return await self.session.get(RideRequestModel, request_id)

    async def get_for_update(self, request_id: int) -> Optional[RideRequestModel]:
        """Re-read the request under lock; the caller already holds its ride."""
        result = await self.session.execute(
            select(RideRequestModel)
            .where(RideRequestModel.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_ride(
        self,
        ride_id: int,
        status: Optional[RequestStatus] = None,
        for_update: bool = False,
    ) -> list[RideRequestModel]:
        """Requests on a ride; lock them only once the ride row is locked."""
        query = select(RideRequestModel).where(RideRequestModel.ride_id == ride_id)
        if status is not None:
            query = query.where(RideRequestModel.status == status)
        query = query.order_by(RideRequestModel.id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_pending_by_requester(
        self, ride_id: int, requester_id: str
    ) -> Optional[RideRequestModel]:
        result = await self.session.execute(
            select(RideRequestModel).where(
                RideRequestModel.ride_id == ride_id,
                RideRequestModel.requester_id == requester_id,
                RideRequestModel.status == RequestStatus.PENDING,
            )
        )
        return result.scalars().first()


class NotificationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_all(self, notifications: Sequence[Notification]) -> None:
        for n in notifications:
            model = NotificationModel()
            apply_entity(model, n)
            self.session.add(model)
        await self.session.flush()

    async def get_for_user(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[NotificationModel]:
        query = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            query = query.where(NotificationModel.is_read.is_(False))
        result = await self.session.execute(
            query.order_by(
                NotificationModel.created_at.desc(), NotificationModel.id.desc()
            ).limit(limit)
        )
        return list(result.scalars().all())

    async def mark_read(self, user_id: str, notification_id: int) -> bool:
        result = await self.session.execute(
            update(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
            )
            .values(is_read=True)
        )
        return result.rowcount > 0


class ChatMessageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self, *, ride_id: int, sender_id: str, text: str
    ) -> ChatMessageModel:
        message = ChatMessageModel(ride_id=ride_id, sender_id=sender_id, text=text)
        self.session.add(message)
        await self.session.flush()
        await self.session.refresh(message)
        return message

    async def get_for_ride(self, ride_id: int) -> list[ChatMessageModel]:
        result = await self.session.execute(
            select(ChatMessageModel)
            .where(ChatMessageModel.ride_id == ride_id)
            .order_by(ChatMessageModel.created_at, ChatMessageModel.id)
        )
        return list(result.scalars().all())


class EmergencyAlertRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self, *, ride_id: int, user_id: str, message: str
    ) -> EmergencyAlertModel:
        alert = EmergencyAlertModel(ride_id=ride_id, user_id=user_id, message=message)
        self.session.add(alert)
        await self.session.flush()
        await self.session.refresh(alert)
        return alert


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_or_create(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> UserModel:
        user = await self.get_by_id(user_id)
        if user is None:
            user = UserModel(id=user_id, display_name=display_name, email=email)
            self.session.add(user)
            await self.session.flush()
            await self.session.refresh(user)
        return user
