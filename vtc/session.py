"""Trip session state for a booking widget.

Holds the last resolved trip, the compare list, the active vehicle
selection and the selected options. Every mutation that affects a price
recomputes the affected quote from the stored trip; the route is never
re-resolved here. Consumers read state through ``snapshot()``.
"""

import datetime
import logging
from typing import Optional

from vtc.errors import SessionError
from vtc.fare import FareCalculator
from vtc.models import (
    DisplayMode,
    FareConfig,
    FareQuote,
    LeadTimeResult,
    Option,
    SessionSnapshot,
    TripInput,
)

logger = logging.getLogger(__name__)


class TripSession:
    """Mutable trip state owned by one widget instance.

    Resolutions are sequenced: callers take an id from
    ``begin_resolution()`` before starting a route lookup and pass it to
    ``resolve()``. A result whose id is older than the latest started
    lookup is dropped, so the last resolution always wins.
    """

    def __init__(self, config: FareConfig, calculator: Optional[FareCalculator] = None) -> None:
        self.config = config
        self.calculator = calculator or FareCalculator(config)
        self._latest_resolution = 0
        self._applied_resolution = 0
        self._trip: Optional[TripInput] = None
        self._lead_time: Optional[LeadTimeResult] = None
        self._quotes: tuple[FareQuote, ...] = ()
        self._selected: Optional[FareQuote] = None
        self._selected_option_ids: list[str] = []
        self._radio_vehicle_id: Optional[str] = None
        self._custom_option_text = ""

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def display_mode(self) -> DisplayMode:
        return self.config.display_mode

    @property
    def resolved(self) -> bool:
        return self._trip is not None

    @property
    def selected_options(self) -> tuple[Option, ...]:
        """Selected options, in catalog order."""
        ids = set(self._selected_option_ids)
        return tuple(o for o in self.config.options if o.id in ids)

    @property
    def options_fee(self) -> float:
        return sum(o.fee for o in self.selected_options)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def begin_resolution(self) -> int:
        """Start a route lookup; returns its sequence id."""
        self._latest_resolution += 1
        return self._latest_resolution

    def is_stale(self, resolution_id: int) -> bool:
        """True if a newer lookup started or was applied after this one."""
        return resolution_id < self._latest_resolution or resolution_id <= self._applied_resolution

    def resolve(
        self,
        trip: TripInput,
        resolution_id: Optional[int] = None,
        vehicle_id: Optional[str] = None,
        now: Optional[datetime.datetime] = None,
    ) -> bool:
        """Replace the session with a freshly resolved trip.

        Mode A prices the radio-selected vehicle (``vehicle_id``, else the
        last radio choice, else the first vehicle) and makes it active.
        Mode B prices every vehicle and clears the selection.

        Returns:
            False when the resolution is stale and was ignored.

        Raises:
            SessionError: ``vehicle_id`` is not in the catalog.
        """
        if vehicle_id is not None and self.config.get_vehicle(vehicle_id) is None:
            raise SessionError(f"Unknown vehicle: {vehicle_id!r}")

        if resolution_id is not None:
            if self.is_stale(resolution_id):
                logger.warning(
                    "Ignoring stale route resolution %d (latest %d)",
                    resolution_id,
                    self._latest_resolution,
                )
                return False
            self._applied_resolution = resolution_id

        lead_time = self.calculator.lead_time(trip, now=now)
        options_fee = self.options_fee

        if self.display_mode == DisplayMode.B:
            quotes = tuple(self.calculator.quote_all(trip, lead_time, options_fee))
            selected = None
        else:
            chosen = vehicle_id or self._radio_vehicle_id or self.config.vehicles[0].id
            if self.config.get_vehicle(chosen) is None:
                chosen = self.config.vehicles[0].id
            selected = self.calculator.quote(trip, chosen, lead_time, options_fee)
            quotes = (selected,)
            self._radio_vehicle_id = chosen

        self._trip = trip
        self._lead_time = lead_time
        self._quotes = quotes
        self._selected = selected
        logger.info(
            "Trip resolved: %.1f km, %d stops, mode %s, lead time %s",
            trip.distance_km,
            trip.stops_count,
            self.display_mode.value,
            lead_time.mode.value,
        )
        return True

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def set_radio_vehicle(self, vehicle_id: str) -> None:
        """Record the mode A radio choice used by the next resolution."""
        if self.config.get_vehicle(vehicle_id) is None:
            raise SessionError(f"Unknown vehicle: {vehicle_id!r}")
        self._radio_vehicle_id = vehicle_id

    def select_vehicle(self, vehicle_id: str) -> FareQuote:
        """Pick a vehicle from the compare list (mode B).

        The quote is recomputed against the stored trip and lead time.
        """
        if self.display_mode != DisplayMode.B:
            raise SessionError("Vehicle selection from the compare list requires display mode B")
        if self._trip is None or self._lead_time is None:
            raise SessionError("No resolved trip to select a vehicle for")
        if self.config.get_vehicle(vehicle_id) is None:
            raise SessionError(f"Unknown vehicle: {vehicle_id!r}")

        quote = self.calculator.quote(self._trip, vehicle_id, self._lead_time, self.options_fee)
        self._replace_quote(quote)
        self._selected = quote
        return quote

    def clear_selection(self) -> None:
        """Drop the active selection and its price."""
        self._selected = None

    def toggle_option(self, option_id: str, selected: Optional[bool] = None) -> SessionSnapshot:
        """Flip (or set) an option and recompute the active price in place.

        The stored lead-time classification is reused rather than
        re-sampled against the current time.
        """
        if self.config.get_option(option_id) is None:
            raise SessionError(f"Unknown option: {option_id!r}")

        currently = option_id in self._selected_option_ids
        wanted = (not currently) if selected is None else bool(selected)
        if wanted and not currently:
            self._selected_option_ids.append(option_id)
        elif not wanted and currently:
            self._selected_option_ids.remove(option_id)

        self._recompute()
        return self.snapshot()

    def set_custom_option_text(self, text: str) -> None:
        self._custom_option_text = (text or "").strip()

    def _replace_quote(self, quote: FareQuote) -> None:
        self._quotes = tuple(quote if q.vehicle_id == quote.vehicle_id else q for q in self._quotes)

    def _recompute(self) -> None:
        if self._trip is None or self._lead_time is None:
            return
        fee = self.options_fee

        if self.display_mode == DisplayMode.B:
            self._quotes = tuple(self.calculator.quote_all(self._trip, self._lead_time, fee))
            if self._selected is not None:
                self._selected = self.calculator.quote(
                    self._trip, self._selected.vehicle_id, self._lead_time, fee
                )
                self._replace_quote(self._selected)
            return

        if self._selected is not None:
            self._selected = self.calculator.quote(
                self._trip, self._selected.vehicle_id, self._lead_time, fee
            )
            self._quotes = (self._selected,)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        """Current session contents; always reflects the latest mutation."""
        selected = self._selected
        lead = self._lead_time

        pricing_mode = None
        lead_label = None
        threshold = None
        if lead is not None:
            threshold = lead.threshold_minutes
            if self.config.uses_lead_time:
                pricing_mode = lead.mode.value
                lead_label = self.config.lead_time_label(lead.mode)
        if selected is not None and selected.pricing_mode:
            pricing_mode = selected.pricing_mode

        return SessionSnapshot(
            resolved=self._trip is not None,
            display_mode=self.display_mode,
            trip=self._trip,
            lead_time=lead,
            quotes=self._quotes,
            selected_vehicle_id=selected.vehicle_id if selected else None,
            selected_vehicle_label=selected.vehicle_label if selected else None,
            selected_is_quote=selected.is_quote if selected else False,
            selected_total=(0.0 if selected.is_quote else selected.total) if selected else None,
            selected_quote=selected,
            selected_options=self.selected_options,
            pricing_mode=pricing_mode,
            lead_time_label=lead_label,
            lead_time_threshold_minutes=threshold,
            surcharges_applied=selected.surcharges_applied if selected else None,
            custom_option_text=self._custom_option_text,
        )
