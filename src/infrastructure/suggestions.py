"""
Route / cost suggestion client (Gemini).

Renders the ride details into a prompt and asks the model for a JSON
answer matching ``RouteCostSuggestion``.  There is no retry: any failure
surfaces as ``SuggestionServiceError``.
"""

from __future__ import annotations

import logging
from typing import Optional

from google import genai
from google.genai import types
from pydantic import BaseModel, Field

from src.config import settings
from src.domain.enums import VehicleType

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are an assistant that suggests optimal routes and fair cost splits for rides shared on a community ride-pairing platform. Consider the following ride details:

Start Location: {start_location}
Destination: {destination}
Vehicle Type: {vehicle_type}
Total Distance: {distance} kilometers
Estimated Duration: {duration} minutes
Fuel Cost Per Liter: {fuel_cost_per_liter}
Vehicle Fuel Efficiency: {fuel_efficiency} kilometers per liter
Toll Cost: {toll_cost}

Based on these details, provide:
1. An optimized route description.
2. A suggested cost split between the rider and passenger, taking into account fuel costs, vehicle wear and tear, and toll costs (if any).
3. Detailed reasons for your cost split suggestion.

Ensure the cost split is fair and transparent. The rider is offering the ride as a service on a non-commercial community platform and is not trying to make a profit.
"""


class SuggestionServiceError(Exception):
    """The generative model could not produce a suggestion."""


class SuggestionServiceUnavailable(SuggestionServiceError):
    """No API key configured."""


class RouteCostInput(BaseModel):
    start_location: str = Field(..., min_length=3)
    destination: str = Field(..., min_length=3)
    vehicle_type: VehicleType
    distance: float = Field(..., ge=1, description="Total distance in km")
    duration: float = Field(..., ge=1, description="Estimated duration in minutes")
    fuel_cost_per_liter: float = Field(..., ge=1)
    fuel_efficiency: float = Field(..., ge=1, description="km per liter")
    toll_cost: Optional[float] = Field(None, ge=0)


class RouteCostSuggestion(BaseModel):
    optimized_route_description: str
    suggested_cost_split: float
    reasons: str


def render_prompt(data: RouteCostInput) -> str:
    return PROMPT_TEMPLATE.format(
        start_location=data.start_location,
        destination=data.destination,
        vehicle_type=data.vehicle_type.value,
        distance=data.distance,
        duration=data.duration,
        fuel_cost_per_liter=data.fuel_cost_per_liter,
        fuel_efficiency=data.fuel_efficiency,
        toll_cost=data.toll_cost if data.toll_cost is not None else "none",
    )


class RouteSuggestionClient:
    def __init__(
        self,
        client: Optional[genai.Client] = None,
        model: str = settings.suggestion_model,
    ):
        self._client = client
        self.model = model

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not settings.gemini_api_key:
                raise SuggestionServiceUnavailable("Suggestion service is not configured")
            self._client = genai.Client(api_key=settings.gemini_api_key)
        return self._client

    async def suggest(self, data: RouteCostInput) -> RouteCostSuggestion:
        client = self._get_client()
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=RouteCostSuggestion,
        )
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=render_prompt(data),
                config=config,
            )
        except Exception as exc:
            logger.exception("Gemini request failed")
            raise SuggestionServiceError(str(exc)) from exc

        parsed = response.parsed
        if isinstance(parsed, RouteCostSuggestion):
            return parsed
        try:
            return RouteCostSuggestion.model_validate_json(response.text or "")
        except ValueError as exc:
            logger.warning("Unparseable suggestion response: %r", response.text)
            raise SuggestionServiceError("Malformed suggestion response") from exc
