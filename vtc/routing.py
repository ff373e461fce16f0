"""Route summaries from a Directions-style mapping provider.

The provider returns one route made of legs (origin -> stop -> ... ->
destination). Distances and durations are summed over the legs here; an
aggregate field from the provider is never trusted.

``fetch_route`` is a thin one-shot client for the Google Directions web
service. It requires GOOGLE_MAPS_API_KEY and never retries.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Sequence

import requests
from pydantic import BaseModel, Field

from vtc.errors import RouteError
from vtc.models import TripInput

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"
_DIRECTIONS_TIMEOUT_S = 15


class RouteSummary(BaseModel):
    """Totals across all legs of a resolved route."""

    distance_meters: float = Field(ge=0)
    duration_seconds: float = Field(ge=0)
    legs: int = Field(ge=1)

    @property
    def distance_km(self) -> float:
        return self.distance_meters / 1000

    @property
    def duration_minutes(self) -> int:
        return round(self.duration_seconds / 60)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _leg_value(leg: dict, key: str) -> float:
    try:
        value = float(leg[key]["value"])
    except (KeyError, TypeError, ValueError):
        raise RouteError(f"Route leg without {key} value")
    if value < 0:
        raise RouteError(f"Route leg with negative {key}")
    return value


def summarize_route(data: dict) -> RouteSummary:
    """Sum distance and duration over the legs of the first route.

    Raises:
        RouteError: provider status is not OK, or the route has no usable legs.
    """
    status = str(data.get("status") or "OK")
    if status != "OK":
        raise RouteError(f"Route resolution failed: {status}", status=status)

    routes = data.get("routes") or []
    if not routes:
        raise RouteError("Route resolution returned no route", status="ZERO_RESULTS")

    legs = routes[0].get("legs") or []
    if not legs:
        raise RouteError("Route has no legs")

    meters = 0.0
    seconds = 0.0
    for leg in legs:
        meters += _leg_value(leg, "distance")
        seconds += _leg_value(leg, "duration")

    return RouteSummary(distance_meters=meters, duration_seconds=seconds, legs=len(legs))


def trip_from_route(
    summary: RouteSummary,
    pickup_date: str,
    pickup_time: str,
    start: str = "",
    end: str = "",
    stops: Sequence[str] = (),
) -> TripInput:
    """Build the immutable TripInput for a resolved route."""
    stops = tuple(s.strip() for s in stops if s and s.strip())
    return TripInput(
        distance_km=summary.distance_km,
        stops_count=len(stops),
        pickup_date=pickup_date,
        pickup_time=pickup_time,
        start=start,
        end=end,
        stops=stops,
        duration_minutes=summary.duration_minutes,
    )


# ---------------------------------------------------------------------------
# Provider client
# ---------------------------------------------------------------------------


def directions_available() -> bool:
    """Check if GOOGLE_MAPS_API_KEY is set and non-empty."""
    return bool(os.environ.get("GOOGLE_MAPS_API_KEY", "").strip())


def fetch_route(
    origin: str,
    destination: str,
    waypoints: Sequence[str] = (),
    api_key: Optional[str] = None,
) -> RouteSummary:
    """Resolve a driving route through ordered waypoints.

    Raises:
        RouteError: no API key, network failure, HTTP error or provider error.
    """
    api_key = (api_key or os.environ.get("GOOGLE_MAPS_API_KEY", "")).strip()
    if not api_key:
        raise RouteError("Mapping provider is not configured (missing API key)", status="NOT_READY")

    params: dict = {
        "origin": origin,
        "destination": destination,
        "mode": "driving",
        "language": "fr",
        "region": "fr",
        "key": api_key,
    }
    stops = [w.strip() for w in waypoints if w and w.strip()]
    if stops:
        params["waypoints"] = "|".join(stops)

    try:
        resp = requests.get(_DIRECTIONS_URL, params=params, timeout=_DIRECTIONS_TIMEOUT_S)
    except requests.Timeout:
        logger.warning("Directions timeout for %s -> %s", origin, destination)
        raise RouteError("Mapping provider timed out", status="TIMEOUT")
    except requests.RequestException as exc:
        logger.warning("Directions network error for %s -> %s: %s", origin, destination, exc)
        raise RouteError("Mapping provider unreachable", status="NETWORK")

    if resp.status_code >= 400:
        logger.warning("Directions HTTP %d for %s -> %s", resp.status_code, origin, destination)
        raise RouteError(f"Mapping provider HTTP {resp.status_code}", status="HTTP")

    try:
        data = resp.json()
    except ValueError:
        logger.warning("Directions returned non-JSON for %s -> %s", origin, destination)
        raise RouteError("Mapping provider returned an invalid response", status="INVALID")

    summary = summarize_route(data)
    logger.info(
        "Route %s -> %s: %.1f km, %d min over %d legs",
        origin,
        destination,
        summary.distance_km,
        summary.duration_minutes,
        summary.legs,
    )
    return summary
