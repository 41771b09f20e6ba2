"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``             -- profiles keyed by the identity-provider uid
* ``rides``             -- offers / requests and their lifecycle flags
* ``ride_requests``     -- bids to join an open ride
* ``notifications``     -- fire-and-forget messages to a single user
* ``chat_messages``     -- append-only per-ride chat
* ``emergency_alerts``  -- SOS audit trail

Concurrency
-----------
``rides.version`` is the mapper's ``version_id_col``: every UPDATE carries
``WHERE version = <loaded>`` so a concurrent commit surfaces as
``StaleDataError`` instead of being silently overwritten.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from src.domain.enums import (
    NotificationType,
    RequestStatus,
    RideStatus,
    VehicleType,
)


def _values(enum_cls):
    return [member.value for member in enum_cls]


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    display_name = Column(String(120), nullable=True)
    email = Column(String(255), nullable=True)
    emergency_contact = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(String(128), nullable=True)
    passenger_id = Column(String(128), nullable=True)
    participant_ids = Column(JSON, nullable=False, default=list)

    status = Column(
        Enum(RideStatus, name="ridestatus", values_callable=_values),
        default=RideStatus.OFFERING,
        nullable=False,
    )
    from_location = Column(String(255), nullable=False)
    to_location = Column(String(255), nullable=False)
    date_time = Column(DateTime(timezone=True), nullable=True)
    shared_cost = Column(Float, default=0.0, nullable=False)
    vehicle_type = Column(
        Enum(VehicleType, name="vehicletype", values_callable=_values),
        nullable=True,
    )

    ride_otp = Column(String(4), nullable=True)
    last_otp = Column(String(4), nullable=True)
    otp_verified = Column(Boolean, default=False, nullable=False)
    rider_started = Column(Boolean, default=False, nullable=False)
    passenger_started = Column(Boolean, default=False, nullable=False)
    rider_completed = Column(Boolean, default=False, nullable=False)
    passenger_completed = Column(Boolean, default=False, nullable=False)

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(128), nullable=True)
    created_by = Column(String(128), nullable=False)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_passenger", "passenger_id"),
        Index("idx_rides_created_by", "created_by"),
    )


class RideRequestModel(Base):
    __tablename__ = "ride_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    requester_id = Column(String(128), nullable=False)
    status = Column(
        Enum(RequestStatus, name="requeststatus", values_callable=_values),
        default=RequestStatus.PENDING,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_ride_requests_ride_status", "ride_id", "status"),
        Index("idx_ride_requests_requester", "requester_id"),
    )


class NotificationModel(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=True)
    message = Column(Text, nullable=False)
    type = Column(
        Enum(NotificationType, name="notificationtype", values_callable=_values),
        nullable=False,
    )
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_notifications_user", "user_id", "is_read"),)


class ChatMessageModel(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    sender_id = Column(String(128), nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_chat_messages_ride", "ride_id"),)


class EmergencyAlertModel(Base):
    __tablename__ = "emergency_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    user_id = Column(String(128), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
