"""Booking widget instance.

Owns the widget's resolved configuration and hands it to every component
(calculator, session, submission guard). The ``calculate`` and ``book``
flows turn every failure into an outcome carrying a user-facing message;
none of them raises for user or upstream errors.
"""

import datetime
import logging
from collections.abc import Mapping
from typing import Callable, Optional, Sequence

from pydantic import BaseModel

from vtc.config import ConfigResolver, RawSource
from vtc.errors import (
    RouteError,
    SessionError,
    SubmissionError,
    SubmissionTransportError,
    SubmissionValidationError,
    TripInputError,
)
from vtc.fare import FareCalculator
from vtc.lead_time import normalize_time_to_5_minutes
from vtc.models import FareConfig, FareQuote, SessionSnapshot
from vtc.routing import RouteSummary, fetch_route, trip_from_route
from vtc.session import TripSession
from vtc.submission import SubmissionGuard, SubmissionResult
from vtc.summary import TripSummary, build_summary

logger = logging.getLogger(__name__)

RouteFetcher = Callable[[str, str, Sequence[str]], RouteSummary]

MSG_DATE_REQUIRED = "Veuillez sélectionner une date."
MSG_ADDRESSES_REQUIRED = "Veuillez renseigner départ et arrivée."
MSG_ROUTE_NOT_READY = "Le service de cartographie n’est pas disponible. Vérifiez la configuration."
MSG_ROUTE_FAILED = "Impossible de calculer l’itinéraire."


def validate_trip_input(start: str, end: str, pickup_date: str) -> None:
    """Check the fields needed before a route lookup.

    Raises:
        TripInputError: the date or one of the addresses is missing.
    """
    if not (pickup_date or "").strip():
        raise TripInputError(MSG_DATE_REQUIRED)
    if not (start or "").strip() or not (end or "").strip():
        raise TripInputError(MSG_ADDRESSES_REQUIRED)


class CalculationOutcome(BaseModel):
    """Result of a calculate request."""

    ok: bool
    kind: Optional[str] = None  # "input", "upstream", "stale"
    message: str = ""
    snapshot: Optional[SessionSnapshot] = None


class BookingOutcome(BaseModel):
    """Result of a booking request."""

    ok: bool
    kind: Optional[str] = None  # "validation", "configuration", "transport"
    field: Optional[str] = None
    message: str = ""
    result: Optional[SubmissionResult] = None


class Widget:
    """One booking widget: config, trip session and submission."""

    def __init__(
        self,
        attributes: Optional[Mapping] = None,
        raw_json: RawSource = None,
        base_url: Optional[str] = None,
        route_fetcher: Optional[RouteFetcher] = None,
    ) -> None:
        self._resolver = ConfigResolver(attributes, raw_json)
        self.config: FareConfig = self._resolver.resolve()
        self.calculator = FareCalculator(self.config)
        self.session = TripSession(self.config, self.calculator)
        self.guard = SubmissionGuard(self.config, base_url=base_url)
        self._route_fetcher = route_fetcher or fetch_route

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def calculate(
        self,
        start: str,
        end: str,
        pickup_date: str,
        pickup_time: str = "",
        stops: Sequence[str] = (),
        vehicle_id: Optional[str] = None,
        now: Optional[datetime.datetime] = None,
    ) -> CalculationOutcome:
        """Resolve the route and price the trip.

        Input and upstream errors clear the displayed price and leave the
        rest of the session untouched.
        """
        self.session.clear_selection()

        try:
            validate_trip_input(start, end, pickup_date)
        except TripInputError as exc:
            return CalculationOutcome(ok=False, kind="input", message=str(exc))

        stops = [s.strip() for s in stops if s and s.strip()]
        resolution_id = self.session.begin_resolution()
        try:
            route = self._route_fetcher(start.strip(), end.strip(), stops)
        except RouteError as exc:
            logger.warning("Route resolution failed: %s", exc)
            message = MSG_ROUTE_NOT_READY if exc.status == "NOT_READY" else MSG_ROUTE_FAILED
            return CalculationOutcome(ok=False, kind="upstream", message=message)

        return self.complete_resolution(
            resolution_id,
            route,
            start=start.strip(),
            end=end.strip(),
            pickup_date=pickup_date.strip(),
            pickup_time=pickup_time,
            stops=stops,
            vehicle_id=vehicle_id,
            now=now,
        )

    def complete_resolution(
        self,
        resolution_id: int,
        route: RouteSummary,
        start: str,
        end: str,
        pickup_date: str,
        pickup_time: str = "",
        stops: Sequence[str] = (),
        vehicle_id: Optional[str] = None,
        now: Optional[datetime.datetime] = None,
    ) -> CalculationOutcome:
        """Apply a route result obtained for ``resolution_id``.

        Results of superseded lookups are ignored.
        """
        trip = trip_from_route(
            route,
            pickup_date=pickup_date,
            pickup_time=normalize_time_to_5_minutes(pickup_time),
            start=start,
            end=end,
            stops=stops,
        )
        try:
            applied = self.session.resolve(
                trip, resolution_id=resolution_id, vehicle_id=vehicle_id, now=now
            )
        except SessionError as exc:
            return CalculationOutcome(ok=False, kind="input", message=str(exc))
        if not applied:
            return CalculationOutcome(ok=False, kind="stale", snapshot=self.session.snapshot())
        return CalculationOutcome(ok=True, snapshot=self.session.snapshot())

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def select_vehicle(self, vehicle_id: str) -> FareQuote:
        return self.session.select_vehicle(vehicle_id)

    def toggle_option(self, option_id: str, selected: Optional[bool] = None) -> SessionSnapshot:
        return self.session.toggle_option(option_id, selected)

    def set_custom_option_text(self, text: str) -> None:
        self.session.set_custom_option_text(normalize_time_to_5_minutes(text))

    def snapshot(self) -> SessionSnapshot:
        return self.session.snapshot()

    def summary(self) -> TripSummary:
        return build_summary(self.session.snapshot(), self.config)

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def book(
        self,
        name: str,
        email: str,
        phone: str,
        terms_consent: bool,
        marketing_consent: bool = False,
    ) -> BookingOutcome:
        """Validate the session and send the booking request."""
        try:
            result = self.guard.submit(
                self.session.snapshot(),
                name=name,
                email=email,
                phone=phone,
                terms_consent=terms_consent,
                marketing_consent=marketing_consent,
            )
        except SubmissionValidationError as exc:
            return BookingOutcome(ok=False, kind="validation", field=exc.field, message=exc.message)
        except SubmissionTransportError as exc:
            return BookingOutcome(ok=False, kind="transport", message=exc.user_message)
        except SubmissionError as exc:
            return BookingOutcome(ok=False, kind="configuration", message=str(exc))

        logger.info("Booking sent (request %s)", result.request_id)
        return BookingOutcome(ok=True, result=result)
