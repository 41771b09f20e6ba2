"""FastAPI dependency injection helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import async_session_factory
from src.infrastructure.suggestions import RouteSuggestionClient
from src.services.chat import ChatService
from src.services.ride_lifecycle import RideLifecycleManager
from src.workers.notifier import get_dispatcher


@dataclass(frozen=True)
class Identity:
    """The authenticated user as asserted by the upstream identity provider."""

    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
) -> Identity:
    """Read the opaque uid set by the auth proxy.  Credentials are never checked here."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return Identity(id=x_user_id.strip(), display_name=x_user_name, email=x_user_email)


def get_lifecycle_manager() -> RideLifecycleManager:
    return RideLifecycleManager(async_session_factory, get_dispatcher())


def get_chat_service() -> ChatService:
    return ChatService(async_session_factory)


_suggestion_client: RouteSuggestionClient | None = None


def get_suggestion_client() -> RouteSuggestionClient:
    global _suggestion_client
    if _suggestion_client is None:
        _suggestion_client = RouteSuggestionClient()
    return _suggestion_client
