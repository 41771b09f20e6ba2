"""Route / cost suggestion client and endpoint tests (Gemini mocked)."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import ValidationError

from src.domain.enums import VehicleType
from src.infrastructure.suggestions import (
    RouteCostInput,
    RouteCostSuggestion,
    RouteSuggestionClient,
    SuggestionServiceError,
    SuggestionServiceUnavailable,
    render_prompt,
)

RIDE = {
    "start_location": "Hostel Block A",
    "destination": "Railway Station",
    "vehicle_type": "Bike",
    "distance": 12,
    "duration": 30,
    "fuel_cost_per_liter": 105,
    "fuel_efficiency": 45,
}

SUGGESTION = RouteCostSuggestion(
    optimized_route_description="Take the ring road, then turn left at the flyover.",
    suggested_cost_split=14.0,
    reasons="Fuel for 12 km at 45 km/l plus a small wear allowance.",
)


def _genai_client(response):
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=response)
    return client


class TestRouteCostInput:
    def test_valid(self):
        data = RouteCostInput(**RIDE)
        assert data.vehicle_type is VehicleType.BIKE
        assert data.toll_cost is None

    @pytest.mark.parametrize(
        "field, value",
        [("start_location", "AB"), ("distance", 0), ("fuel_efficiency", 0.5), ("toll_cost", -1)],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            RouteCostInput(**{**RIDE, field: value})

    def test_prompt_includes_ride_details(self):
        prompt = render_prompt(RouteCostInput(**RIDE, toll_cost=20))
        assert "Start Location: Hostel Block A" in prompt
        assert "Vehicle Type: Bike" in prompt
        assert "Toll Cost: 20.0" in prompt

    def test_prompt_without_toll(self):
        assert "Toll Cost: none" in render_prompt(RouteCostInput(**RIDE))


class TestRouteSuggestionClient:
    @pytest.mark.asyncio
    async def test_returns_parsed_response(self):
        genai_client = _genai_client(SimpleNamespace(parsed=SUGGESTION, text=None))
        client = RouteSuggestionClient(client=genai_client, model="test-model")

        result = await client.suggest(RouteCostInput(**RIDE))

        assert result == SUGGESTION
        kwargs = genai_client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert "Railway Station" in kwargs["contents"]
        assert kwargs["config"].response_mime_type == "application/json"

    @pytest.mark.asyncio
    async def test_falls_back_to_response_text(self):
        response = SimpleNamespace(parsed=None, text=SUGGESTION.model_dump_json())
        client = RouteSuggestionClient(client=_genai_client(response))
        assert await client.suggest(RouteCostInput(**RIDE)) == SUGGESTION

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        response = SimpleNamespace(parsed=None, text="not json")
        client = RouteSuggestionClient(client=_genai_client(response))
        with pytest.raises(SuggestionServiceError):
            await client.suggest(RouteCostInput(**RIDE))

    @pytest.mark.asyncio
    async def test_upstream_error(self):
        genai_client = MagicMock()
        genai_client.aio.models.generate_content = AsyncMock(side_effect=RuntimeError("quota"))
        client = RouteSuggestionClient(client=genai_client)
        with pytest.raises(SuggestionServiceError):
            await client.suggest(RouteCostInput(**RIDE))

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        with patch("src.infrastructure.suggestions.settings") as mock_settings:
            mock_settings.gemini_api_key = None
            client = RouteSuggestionClient()
            with pytest.raises(SuggestionServiceUnavailable):
                await client.suggest(RouteCostInput(**RIDE))


class TestSuggestionEndpoint:
    URL = "/api/v1/suggestions/route-cost"
    HEADERS = {"X-User-Id": "uid-driver"}

    @pytest.mark.asyncio
    async def test_success(self, client, suggestion_client):
        suggestion_client.suggest.return_value = SUGGESTION
        resp = await client.post(self.URL, json=RIDE, headers=self.HEADERS)
        assert resp.status_code == 200
        assert resp.json()["suggested_cost_split"] == 14.0

    @pytest.mark.asyncio
    async def test_upstream_failure_is_502(self, client, suggestion_client):
        suggestion_client.suggest.side_effect = SuggestionServiceError("boom")
        resp = await client.post(self.URL, json=RIDE, headers=self.HEADERS)
        assert resp.status_code == 502
        assert resp.json()["detail"] == "An error occurred while getting suggestions from AI."

    @pytest.mark.asyncio
    async def test_unconfigured_is_503(self, client, suggestion_client):
        suggestion_client.suggest.side_effect = SuggestionServiceUnavailable("off")
        resp = await client.post(self.URL, json=RIDE, headers=self.HEADERS)
        assert resp.status_code == 503

    @pytest.mark.asyncio
    async def test_invalid_input_is_422(self, client):
        resp = await client.post(
            self.URL, json={**RIDE, "distance": 0}, headers=self.HEADERS
        )
        assert resp.status_code == 422
