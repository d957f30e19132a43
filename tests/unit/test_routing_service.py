"""Unit tests for the GraphHopper routing client."""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from ridenav.core.exceptions import InvalidRouteError, RoutingServiceError
from ridenav.schemas.route import Coordinate, RoutePreference
from ridenav.services.routing_service import RoutingService
from tests.factories import ORIGIN, make_route, offset

DESTINATION = Coordinate(lat=50.92, lng=-1.42)

GRAPHHOPPER_RESPONSE = {
    "paths": [
        {
            "distance": 2345.6,
            "time": 540000,
            "points": {
                "type": "LineString",
                "coordinates": [[-1.4044, 50.9097], [-1.4100, 50.9150], [-1.4200, 50.9200]],
            },
            "details": {"surface": [[0, 1, "asphalt"], [1, 2, "gravel"]]},
        }
    ]
}


def mock_response(status_code: int, payload=None) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.json = Mock(return_value=payload or {})
    response.text = str(payload)
    return response


@pytest.fixture
def service() -> RoutingService:
    return RoutingService(api_key="test-key")


class TestGetRoute:
    """Tests for single-preference route requests."""

    @pytest.mark.asyncio
    async def test_parses_path(self, service):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response(200, GRAPHHOPPER_RESPONSE)

            route = await service.get_route(ORIGIN, DESTINATION, RoutePreference.FASTEST)

        assert route.preference == RoutePreference.FASTEST
        assert len(route.points) == 3
        assert route.points[0] == Coordinate(lat=50.9097, lng=-1.4044)
        assert route.distance_m == 2345.6
        assert route.duration_ms == 540000
        assert [d.surface for d in route.surface_details] == ["asphalt", "gravel"]
        assert route.hazards == ()

    @pytest.mark.asyncio
    async def test_request_body(self, service):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response(200, GRAPHHOPPER_RESPONSE)

            await service.get_route(ORIGIN, DESTINATION, RoutePreference.SAFEST)

        kwargs = mock_post.call_args.kwargs
        body = kwargs["json"]
        assert body["points"] == [[ORIGIN.lng, ORIGIN.lat], [DESTINATION.lng, DESTINATION.lat]]
        assert body["profile"] == "bike"
        assert body["details"] == ["surface"]
        assert body["points_encoded"] is False
        assert "custom_model" in body
        assert body["ch.disable"] is True
        assert kwargs["params"] == {"key": "test-key"}

    @pytest.mark.asyncio
    async def test_fastest_uses_plain_profile(self, service):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response(200, GRAPHHOPPER_RESPONSE)

            await service.get_route(ORIGIN, DESTINATION, RoutePreference.FASTEST)

        assert "custom_model" not in mock_post.call_args.kwargs["json"]

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        service = RoutingService(api_key="")

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            with pytest.raises(RoutingServiceError):
                await service.get_route(ORIGIN, DESTINATION)

        mock_post.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_request_fails_immediately(self, service):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response(400, {"message": "Point out of bounds"})

            with pytest.raises(RoutingServiceError, match="Invalid routing request"):
                await service.get_route(ORIGIN, DESTINATION)

        assert mock_post.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_server_error(self, service):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post, patch(
            "ridenav.services.routing_service.asyncio.sleep", new_callable=AsyncMock
        ):
            mock_post.side_effect = [
                mock_response(503),
                mock_response(200, GRAPHHOPPER_RESPONSE),
            ]

            route = await service.get_route(ORIGIN, DESTINATION)

        assert mock_post.call_count == 2
        assert len(route.points) == 3

    @pytest.mark.asyncio
    async def test_timeout_after_retries(self, service):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post, patch(
            "ridenav.services.routing_service.asyncio.sleep", new_callable=AsyncMock
        ):
            mock_post.side_effect = httpx.TimeoutException("timed out")

            with pytest.raises(RoutingServiceError, match="timeout"):
                await service.get_route(ORIGIN, DESTINATION)

        assert mock_post.call_count == service.max_retries

    @pytest.mark.asyncio
    async def test_no_paths(self, service):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response(200, {"paths": []})

            with pytest.raises(RoutingServiceError):
                await service.get_route(ORIGIN, DESTINATION)


class TestParsePath:
    """Tests for GraphHopper path parsing."""

    def test_single_point_is_invalid(self):
        path = {"points": {"coordinates": [[-1.4, 50.9]]}, "distance": 0, "time": 0}

        with pytest.raises(InvalidRouteError):
            RoutingService.parse_path(path, RoutePreference.FASTEST)

    def test_malformed_coordinates(self):
        path = {"points": {"coordinates": [["x"], [-1.4, 50.9]]}}

        with pytest.raises(InvalidRouteError):
            RoutingService.parse_path(path, RoutePreference.FASTEST)

    def test_missing_details(self):
        path = {"points": {"coordinates": [[-1.4, 50.9], [-1.41, 50.91]]}, "distance": 10}

        route = RoutingService.parse_path(path, RoutePreference.SHORTEST)

        assert route.surface_details == ()
        assert route.preference == RoutePreference.SHORTEST


class TestCalculateRoutes:
    """Tests for multi-preference route calculation."""

    @pytest.mark.asyncio
    async def test_failed_preference_is_dropped(self, service):
        service.preferences = [RoutePreference.FASTEST, RoutePreference.SAFEST]
        fastest = make_route([ORIGIN, offset(ORIGIN, 90.0, 500.0)])

        with patch.object(
            service, "get_route", new=AsyncMock(side_effect=[fastest, RoutingServiceError("down")])
        ):
            routes = await service.calculate_routes(ORIGIN, DESTINATION)

        assert routes == [fastest]

    @pytest.mark.asyncio
    async def test_all_failed_is_empty(self, service):
        with patch.object(
            service, "get_route", new=AsyncMock(side_effect=RoutingServiceError("down"))
        ):
            routes = await service.calculate_routes(ORIGIN, DESTINATION)

        assert routes == []

    def test_default_preferences(self, service):
        assert service.preferences == [RoutePreference.FASTEST, RoutePreference.SAFEST]
