"""Per-ride chat.  Append-only; open to participants of an active ride."""

from __future__ import annotations

from src.domain.entities import ChatMessage, Ride
from src.domain.exceptions import (
    InvalidMessageError,
    NotAuthorizedError,
    RideNotFoundError,
)
from src.infrastructure.repositories import (
    ChatMessageRepository,
    RideRepository,
    to_entity,
)
from src.services.ride_lifecycle import unit_of_work

MAX_MESSAGE_LENGTH = 2000


class ChatService:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def _check_access(self, session, actor_id: str, ride_id: int) -> Ride:
        model = await RideRepository(session).get_by_id(ride_id)
        if model is None:
            raise RideNotFoundError(f"Ride {ride_id} not found")
        ride = to_entity(model, Ride)
        if not ride.can_chat(actor_id):
            raise NotAuthorizedError(
                "Chat is only available to participants of a confirmed ride"
            )
        return ride

    async def list_messages(self, actor_id: str, ride_id: int) -> list[ChatMessage]:
        async with self._session_factory() as session:
            await self._check_access(session, actor_id, ride_id)
            models = await ChatMessageRepository(session).get_for_ride(ride_id)
            return [to_entity(m, ChatMessage) for m in models]

    async def post_message(self, actor_id: str, ride_id: int, text: str) -> ChatMessage:
        text = text.strip()
        if not text:
            raise InvalidMessageError("Message text cannot be empty")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise InvalidMessageError(
                f"Message text is limited to {MAX_MESSAGE_LENGTH} characters"
            )
        async with unit_of_work(self._session_factory) as session:
            await self._check_access(session, actor_id, ride_id)
            model = await ChatMessageRepository(session).create(
                ride_id=ride_id, sender_id=actor_id, text=text
            )
            message = to_entity(model, ChatMessage)
        return message
