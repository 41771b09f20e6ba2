"""
Route optimiser
===============

POST /api/v1/suggestions/route-cost -- forward ride details to the
generative model and return its route description and cost split.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from src.api.dependencies import Identity, get_current_user, get_suggestion_client
from src.api.middleware import SUGGESTION_RATE_LIMIT, limiter
from src.api.schemas import ErrorResponse
from src.infrastructure.suggestions import (
    RouteCostInput,
    RouteCostSuggestion,
    RouteSuggestionClient,
    SuggestionServiceError,
    SuggestionServiceUnavailable,
)

router = APIRouter(prefix="/suggestions", tags=["suggestions"])

GENERIC_ERROR = "An error occurred while getting suggestions from AI."


@router.post(
    "/route-cost",
    response_model=RouteCostSuggestion,
    summary="Suggest a route and a fair cost split",
    responses={502: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
@limiter.limit(SUGGESTION_RATE_LIMIT)
async def suggest_route_cost(
    request: Request,
    body: RouteCostInput,
    user: Identity = Depends(get_current_user),
    client: RouteSuggestionClient = Depends(get_suggestion_client),
):
    try:
        return await client.suggest(body)
    except SuggestionServiceUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except SuggestionServiceError:
        raise HTTPException(status_code=502, detail=GENERIC_ERROR)
