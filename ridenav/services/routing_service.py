"""GraphHopper routing client."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from ridenav.config import ROUTE_CUSTOM_MODELS, get_settings
from ridenav.core.exceptions import InvalidRouteError, RoutingServiceError
from ridenav.schemas.route import ActiveRoute, Coordinate, RoutePreference, SurfaceDetail

logger = logging.getLogger(__name__)


class RoutingService:
    """GraphHopper client computing bike routes per route preference."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        profile: Optional[str] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.GRAPHHOPPER_API_URL).rstrip("/")
        self.api_key = settings.GRAPHHOPPER_API_KEY if api_key is None else api_key
        self.profile = profile or settings.ROUTING_PROFILE
        self.timeout = settings.ROUTING_TIMEOUT_S
        self.max_retries = max(settings.ROUTING_MAX_RETRIES, 1)
        self.preferences = [RoutePreference(name) for name in settings.route_preferences_list]

    async def calculate_routes(self, start: Coordinate, end: Coordinate) -> List[ActiveRoute]:
        """Compute one candidate route per configured preference.

        Preferences are requested concurrently. A preference that fails is
        dropped from the result; an empty list means no candidate could be
        computed.

        Args:
            start: Route start
            end: Route destination

        Returns:
            Candidate routes in preference order
        """
        results = await asyncio.gather(
            *(self.get_route(start, end, preference) for preference in self.preferences),
            return_exceptions=True,
        )

        routes: List[ActiveRoute] = []
        for preference, result in zip(self.preferences, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    f"Route calculation failed for {preference.value}: {result}",
                    extra={"extra_fields": {"preference": preference.value}},
                )
                continue
            routes.append(result)

        logger.info(
            f"Calculated {len(routes)}/{len(self.preferences)} candidate routes",
            extra={
                "extra_fields": {
                    "start": [start.lat, start.lng],
                    "end": [end.lat, end.lng],
                }
            },
        )
        return routes

    async def get_route(
        self,
        start: Coordinate,
        end: Coordinate,
        preference: RoutePreference = RoutePreference.FASTEST,
    ) -> ActiveRoute:
        """Compute a single route.

        Args:
            start: Route start
            end: Route destination
            preference: Route preference (selects the custom model)

        Returns:
            Parsed route

        Raises:
            RoutingServiceError: GraphHopper unavailable, not configured or erroring
            InvalidRouteError: Response carries no usable geometry
        """
        if not self.api_key:
            raise RoutingServiceError("GraphHopper API key is not configured")

        body: Dict[str, Any] = {
            "points": [[start.lng, start.lat], [end.lng, end.lat]],
            "profile": self.profile,
            "points_encoded": False,
            "instructions": False,
            "details": ["surface"],
        }
        custom_model = ROUTE_CUSTOM_MODELS.get(preference.value)
        if custom_model:
            body["custom_model"] = custom_model
            body["ch.disable"] = True

        data = await self._request(body)
        paths = data.get("paths") or []
        if not paths:
            raise RoutingServiceError("No route found")

        return self.parse_path(paths[0], preference)

    async def _request(self, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/route"
        params = {"key": self.api_key}

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=body, params=params)

                if response.status_code == 200:
                    return response.json()

                elif response.status_code == 400:
                    logger.error(f"Invalid GraphHopper request: {response.text}")
                    raise RoutingServiceError("Invalid routing request")

                elif response.status_code == 429:
                    logger.warning("GraphHopper rate limit exceeded")
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(2**attempt)
                        continue
                    raise RoutingServiceError("Rate limit exceeded")

                else:
                    logger.error(f"GraphHopper error {response.status_code}: {response.text}")
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(2**attempt)
                        continue
                    raise RoutingServiceError("Routing service unavailable")

            except httpx.TimeoutException:
                logger.error(f"GraphHopper timeout (attempt {attempt + 1})")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2**attempt)
                    continue
                raise RoutingServiceError("Routing service timeout")

            except httpx.HTTPError as e:
                logger.error(f"Error fetching route: {str(e)}")
                raise RoutingServiceError(f"Routing error: {str(e)}")

        raise RoutingServiceError("Failed to fetch route after retries")

    @staticmethod
    def parse_path(path: Dict[str, Any], preference: RoutePreference) -> ActiveRoute:
        """Convert a GraphHopper path into an ActiveRoute.

        Args:
            path: One entry of the response's "paths" list (unencoded points)
            preference: Preference the path was computed for

        Returns:
            Route with surface details

        Raises:
            InvalidRouteError: Fewer than two coordinates
        """
        coordinates = (path.get("points") or {}).get("coordinates") or []
        try:
            points = tuple(Coordinate(lat=c[1], lng=c[0]) for c in coordinates)
        except (IndexError, TypeError, ValueError) as e:
            raise InvalidRouteError(f"Malformed route geometry: {str(e)}")
        if len(points) < 2:
            raise InvalidRouteError()

        surface_details = tuple(
            SurfaceDetail(start_index=int(entry[0]), end_index=int(entry[1]), surface=str(entry[2]))
            for entry in (path.get("details") or {}).get("surface", [])
            if len(entry) >= 3
        )

        return ActiveRoute(
            preference=preference,
            points=points,
            distance_m=float(path.get("distance", 0)),
            duration_ms=int(path.get("time", 0)),
            surface_details=surface_details,
        )
