# removals/infra/geocoding.py
"""
Route / mileage provider: Nominatim (OpenStreetMap) + OSRM.

``NominatimOsrmRouteProvider.estimate_route(from_address, to_address)``
geocodes the postcodes (unless the addresses already carry coordinates)
and asks OSRM for the driving route depot -> from -> to -> depot in one
request.  Total miles and drive time cover the whole loop; the from -> to
leg is reported separately for display.

Failures (timeout, network error, non-200, empty result) are logged as
warnings and return ``None``: the quote is then priced without mileage.

Nominatim usage policy: max 1 req/sec, requires a User-Agent.
"""
from __future__ import annotations

from typing import Optional

import aiohttp

from removals.core.calculator.domain import Address, RouteEstimate
from removals.infra.http_client import get_routing_session
from removals.infra.logging_config import get_logger
from removals.infra.metrics import AppMetrics

logger = get_logger(__name__)

METERS_PER_MILE = 1609.344

Coordinates = tuple[float, float]  # (lat, lng)


def _meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def _parse_search_result(data) -> Coordinates | None:
    """First hit of a Nominatim ``/search`` response as (lat, lng)."""
    if not isinstance(data, list) or not data:
        return None
    first = data[0]
    try:
        return float(first["lat"]), float(first["lon"])
    except (KeyError, TypeError, ValueError):
        return None


def _parse_route(data) -> RouteEstimate | None:
    """OSRM ``/route`` response for depot;from;to;depot -> RouteEstimate."""
    if not isinstance(data, dict) or data.get("code") != "Ok":
        return None
    routes = data.get("routes") or []
    if not routes:
        return None

    route = routes[0]
    legs = route.get("legs") or []
    customer_leg = legs[1] if len(legs) > 1 else {}

    return RouteEstimate(
        total_miles=_meters_to_miles(float(route.get("distance", 0.0))),
        drive_time_hours=float(route.get("duration", 0.0)) / 3600,
        customer_miles=_meters_to_miles(float(customer_leg.get("distance", 0.0))),
        customer_drive_minutes=float(customer_leg.get("duration", 0.0)) / 60,
    )


class NominatimOsrmRouteProvider:
    """MileageProvider backed by public (or self-hosted) Nominatim and OSRM."""

    def __init__(
        self,
        *,
        depot_postcode: str,
        search_url: str,
        route_url: str,
        timeout_seconds: float = 5.0,
        user_agent: str = "PainlessRemovalsQuote/1.0",
    ) -> None:
        self.depot_postcode = depot_postcode
        self.search_url = search_url
        self.route_url = route_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self._depot: Coordinates | None = None

    async def _get_json(self, url: str, params: dict, what: str):
        try:
            session = get_routing_session()
            async with session.get(
                url,
                params=params,
                headers={"User-Agent": self.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as resp:
                if resp.status != 200:
                    logger.warning("%s returned status %d", what, resp.status)
                    return None
                return await resp.json(content_type=None)

        except TimeoutError:
            logger.warning("%s timeout", what)
            return None

        except aiohttp.ClientError as exc:
            logger.warning("%s network error: %s", what, exc)
            return None

        except Exception as exc:
            logger.warning("%s unexpected error: %s", what, exc, exc_info=True)
            return None

    async def geocode_postcode(self, postcode: str) -> Coordinates | None:
        params = {
            "postalcode": postcode,
            "countrycodes": "gb",
            "format": "json",
            "limit": "1",
        }
        data = await self._get_json(self.search_url, params, "Nominatim")
        coords = _parse_search_result(data)
        if coords is None and data is not None:
            logger.warning("Nominatim found no match for postcode %s", postcode[:4])
        return coords

    async def _coordinates(self, address: Address) -> Coordinates | None:
        if address.lat is not None and address.lng is not None:
            return address.lat, address.lng
        return await self.geocode_postcode(address.postcode)

    async def _depot_coordinates(self) -> Coordinates | None:
        if self._depot is None:
            self._depot = await self.geocode_postcode(self.depot_postcode)
        return self._depot

    async def estimate_route(self, from_address: Address, to_address: Address) -> Optional[RouteEstimate]:
        depot = await self._depot_coordinates()
        origin = await self._coordinates(from_address)
        destination = await self._coordinates(to_address)
        if depot is None or origin is None or destination is None:
            AppMetrics.route_lookup("geocode_failed")
            return None

        waypoints = ";".join(f"{lng},{lat}" for lat, lng in (depot, origin, destination, depot))
        data = await self._get_json(
            f"{self.route_url}/{waypoints}",
            {"overview": "false"},
            "OSRM",
        )
        route = _parse_route(data)
        if route is None:
            AppMetrics.route_lookup("route_failed")
            return None

        AppMetrics.route_lookup("ok")
        logger.info(
            "Route estimated: %.1f mi total, %.2f h driving",
            route.total_miles, route.drive_time_hours,
        )
        return route


def build_route_provider(settings) -> NominatimOsrmRouteProvider | None:
    """Provider configured from settings, or None when routing is disabled."""
    if not settings.routing_enabled:
        return None
    return NominatimOsrmRouteProvider(
        depot_postcode=settings.depot_postcode,
        search_url=settings.nominatim_search_url,
        route_url=settings.osrm_route_url,
        timeout_seconds=settings.routing_timeout_seconds,
        user_agent=settings.route_user_agent,
    )
