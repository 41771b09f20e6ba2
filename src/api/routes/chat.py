"""
Chat endpoints
==============

GET  /api/v1/rides/{ride_id}/messages -- conversation, oldest first
POST /api/v1/rides/{ride_id}/messages -- append a message

Only participants of a confirmed or in-progress ride can read or write.
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import Identity, get_chat_service, get_current_user
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import ChatMessageCreate, ChatMessageResponse, ErrorResponse
from src.services.chat import ChatService

router = APIRouter(
    prefix="/rides",
    tags=["chat"],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)


@router.get(
    "/{ride_id}/messages",
    response_model=list[ChatMessageResponse],
    summary="List chat messages",
)
@limiter.limit(RATE_LIMIT)
async def list_messages(
    request: Request,
    ride_id: int,
    user: Identity = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    return await chat.list_messages(user.id, ride_id)


@router.post(
    "/{ride_id}/messages",
    status_code=201,
    response_model=ChatMessageResponse,
    summary="Send a chat message",
)
@limiter.limit(RATE_LIMIT)
async def post_message(
    request: Request,
    ride_id: int,
    body: ChatMessageCreate,
    user: Identity = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    return await chat.post_message(user.id, ride_id, body.text)
