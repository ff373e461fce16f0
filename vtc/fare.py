"""Fare calculator for VTC trips.

Computes a per-vehicle fare from a resolved trip, the vehicle's tariff and
the widget pricing policy. Steps run in a fixed order; the discount and the
fare floor are applied before the lead-time surcharge, and the floor is not
re-checked afterwards.

1. Quote-only vehicle or ``all_quote`` policy: no price.
2. Extra stops fee.
3. Selected options fee.
4. Night surcharge (22h-05h).
5. Volume discount above 600.
6. Fare floor at the vehicle base fare.
7. Lead-time surcharge (``lead_time_pricing`` only).
"""

import datetime
import logging
from typing import Iterable, Optional

from vtc.lead_time import classify_lead_time, parse_pickup_hour
from vtc.models import (
    FareConfig,
    FareQuote,
    LeadTimeMode,
    LeadTimeResult,
    PricingBehavior,
    SurchargeDescriptor,
    TripInput,
    Vehicle,
)

logger = logging.getLogger(__name__)

NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 5
NIGHT_MULTIPLIER = 1.10

DISCOUNT_THRESHOLD = 600.0
DISCOUNT_MULTIPLIER = 0.90


def is_night_hour(hour: Optional[int]) -> bool:
    """True for hours in [22, 24) or [0, 5)."""
    if hour is None:
        return False
    return hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR


def _quote_result(vehicle_id: str, vehicle_label: str, config: FareConfig) -> FareQuote:
    pricing_mode = "all_quote" if config.pricing_behavior == PricingBehavior.ALL_QUOTE else None
    return FareQuote(
        vehicle_id=vehicle_id,
        vehicle_label=vehicle_label,
        is_quote=True,
        total=0.0,
        pricing_mode=pricing_mode,
        quote_message=config.quote_message,
    )


def _lead_time_adjustment(
    total: float,
    vehicle: Vehicle,
    config: FareConfig,
    lead_time: LeadTimeResult,
) -> tuple[float, SurchargeDescriptor]:
    """Apply the immediate-pickup surcharge, if any, on top of the floored total."""
    if lead_time.mode == LeadTimeMode.IMMEDIATE and config.immediate_surcharge_enabled:
        base_delta_amount = config.immediate_base_delta_amount
        base_delta_percent = config.immediate_base_delta_percent
        total_delta_percent = config.immediate_total_delta_percent

        total += base_delta_amount + vehicle.base_fare * (base_delta_percent / 100)
        if total_delta_percent > 0:
            total *= 1 + total_delta_percent / 100

        return total, SurchargeDescriptor(
            kind=LeadTimeMode.IMMEDIATE,
            threshold_minutes=lead_time.threshold_minutes,
            delta_minutes=lead_time.delta_minutes,
            base_delta_amount=base_delta_amount,
            base_delta_percent=base_delta_percent,
            total_delta_percent=total_delta_percent,
        )

    return total, SurchargeDescriptor(
        kind=lead_time.mode,
        threshold_minutes=lead_time.threshold_minutes,
        delta_minutes=lead_time.delta_minutes,
    )


def compute_fare(
    trip: TripInput,
    vehicle: Vehicle,
    config: FareConfig,
    lead_time: LeadTimeResult,
    options_fee: float = 0.0,
) -> FareQuote:
    """Compute the fare for one vehicle.

    Args:
        trip: Resolved trip (distance, stops, pickup date/time).
        vehicle: Vehicle to price.
        config: Widget pricing policy.
        lead_time: Classification shared by every vehicle of the batch.
        options_fee: Sum of the currently selected option fees.

    Returns:
        A FareQuote. Quote-only results carry ``total == 0``.
    """
    if config.pricing_behavior == PricingBehavior.ALL_QUOTE or vehicle.quote_only:
        return _quote_result(vehicle.id, vehicle.label, config)

    total = trip.distance_km * vehicle.price_per_km

    extra_stops_total = trip.stops_count * config.stop_fee
    total += extra_stops_total

    options_fee = max(0.0, options_fee or 0.0)
    total += options_fee

    if is_night_hour(parse_pickup_hour(trip.pickup_time)):
        total *= NIGHT_MULTIPLIER

    if total > DISCOUNT_THRESHOLD:
        total *= DISCOUNT_MULTIPLIER

    if total < vehicle.base_fare:
        total = vehicle.base_fare

    pricing_mode = None
    surcharges = None
    if config.pricing_behavior == PricingBehavior.LEAD_TIME:
        pricing_mode = lead_time.mode.value
        total, surcharges = _lead_time_adjustment(total, vehicle, config, lead_time)

    logger.debug(
        "Fare %s: %.1f km, %d stops, options %.2f -> %.2f (%s)",
        vehicle.id,
        trip.distance_km,
        trip.stops_count,
        options_fee,
        total,
        pricing_mode or config.pricing_behavior.value,
    )

    return FareQuote(
        vehicle_id=vehicle.id,
        vehicle_label=vehicle.label,
        is_quote=False,
        total=total,
        options_fee=options_fee,
        extra_stops_total=extra_stops_total,
        pricing_mode=pricing_mode,
        surcharges_applied=surcharges,
    )


class FareCalculator:
    """Prices vehicles of one widget configuration."""

    def __init__(self, config: FareConfig) -> None:
        self.config = config

    def lead_time(self, trip: TripInput, now: Optional[datetime.datetime] = None) -> LeadTimeResult:
        """Classify the trip pickup against the configured threshold."""
        return classify_lead_time(
            trip.pickup_date, trip.pickup_time, self.config.lead_time_threshold_minutes, now=now
        )

    def quote(
        self,
        trip: TripInput,
        vehicle_id: str,
        lead_time: LeadTimeResult,
        options_fee: float = 0.0,
    ) -> FareQuote:
        """Price one vehicle by id. Unknown ids yield a quote-only result."""
        vehicle = self.config.get_vehicle(vehicle_id)
        if vehicle is None:
            logger.warning("Unknown vehicle %r, returning quote", vehicle_id)
            return _quote_result(vehicle_id, vehicle_id, self.config)
        return compute_fare(trip, vehicle, self.config, lead_time, options_fee)

    def quote_all(
        self,
        trip: TripInput,
        lead_time: LeadTimeResult,
        options_fee: float = 0.0,
        vehicles: Optional[Iterable[Vehicle]] = None,
    ) -> list[FareQuote]:
        """Price several vehicles (all by default) with one shared lead time."""
        targets = list(vehicles) if vehicles is not None else list(self.config.vehicles)
        return [compute_fare(trip, v, self.config, lead_time, options_fee) for v in targets]
