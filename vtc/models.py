"""Domain models for the VTC fare engine.

Pydantic models for the vehicle catalog, widget fare configuration,
resolved trip inputs, lead-time classification, fare quotes, session
snapshots, and the booking payload sent to the notification relay.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# --- Enums ---


class DisplayMode(str, Enum):
    """Widget display flow."""

    A = "A"  # Pick a vehicle, then calculate
    B = "B"  # Calculate every vehicle, then pick


class PricingBehavior(str, Enum):
    """Pricing policy active for a widget configuration."""

    NORMAL = "normal_prices"
    ALL_QUOTE = "all_quote"
    LEAD_TIME = "lead_time_pricing"


class LeadTimeMode(str, Enum):
    """Lead-time classification of a pickup."""

    IMMEDIATE = "immediate"
    RESERVATION = "reservation"


class OptionsDisplayMode(str, Enum):
    """When the options list is shown to the user."""

    BEFORE_CALC = "before_calc"
    AFTER_CALC = "after_calc"
    BEFORE_BOOKING = "before_booking"


# --- Catalog ---


class Vehicle(BaseModel):
    """A vehicle catalog entry."""

    id: str = Field(min_length=1)
    label: str
    base_fare: float = Field(default=0.0, ge=0)
    price_per_km: float = Field(default=0.0, ge=0)
    quote_only: bool = False
    image_url: str = ""

    model_config = ConfigDict(frozen=True)


class Option(BaseModel):
    """A selectable trip option with an additive fee."""

    id: str = Field(min_length=1)
    label: str
    fee: float = Field(default=0.0, ge=0)

    model_config = ConfigDict(frozen=True)


class FareConfig(BaseModel):
    """Canonical, defaulted widget configuration.

    Produced once per widget instance by ``vtc.config.resolve_config`` and
    never mutated afterwards.
    """

    display_mode: DisplayMode = DisplayMode.A
    stop_fee: float = Field(default=0.0, ge=0)
    quote_message: str = "Sur devis — merci de nous contacter."
    pricing_behavior: PricingBehavior = PricingBehavior.NORMAL
    lead_time_threshold_minutes: float = Field(default=120.0, ge=0)
    immediate_label: str = "Immédiat"
    reservation_label: str = "Réservation"
    immediate_surcharge_enabled: bool = True
    immediate_base_delta_amount: float = Field(default=0.0, ge=0)
    immediate_base_delta_percent: float = Field(default=0.0, ge=0)
    immediate_total_delta_percent: float = Field(default=0.0, ge=0)
    options_display_mode: OptionsDisplayMode = OptionsDisplayMode.BEFORE_CALC
    notify_endpoint: str = ""
    booking_email_to: str = ""
    vehicles: tuple[Vehicle, ...] = Field(min_length=1)
    options: tuple[Option, ...] = ()

    model_config = ConfigDict(frozen=True)

    @field_validator("vehicles", "options")
    @classmethod
    def unique_ids(cls, v: tuple) -> tuple:
        ids = [item.id for item in v]
        if len(ids) != len(set(ids)):
            raise ValueError("ids must be unique")
        return v

    def get_vehicle(self, vehicle_id: Optional[str]) -> Optional[Vehicle]:
        """Look up a vehicle by id, or None."""
        for vehicle in self.vehicles:
            if vehicle.id == vehicle_id:
                return vehicle
        return None

    def get_option(self, option_id: Optional[str]) -> Optional[Option]:
        """Look up an option by id, or None."""
        for option in self.options:
            if option.id == option_id:
                return option
        return None

    @property
    def uses_lead_time(self) -> bool:
        return self.pricing_behavior == PricingBehavior.LEAD_TIME

    def lead_time_label(self, mode: "LeadTimeMode") -> str:
        """Display label for a lead-time mode."""
        if mode == LeadTimeMode.IMMEDIATE:
            return self.immediate_label or "Immédiat"
        return self.reservation_label or "Réservation"


# --- Trip and pricing results ---


class TripInput(BaseModel):
    """A resolved itinerary, immutable for one route calculation."""

    distance_km: float = Field(ge=0)
    stops_count: int = Field(default=0, ge=0)
    pickup_date: str = ""
    pickup_time: str = ""
    start: str = ""
    end: str = ""
    stops: tuple[str, ...] = ()
    duration_minutes: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)


class LeadTimeResult(BaseModel):
    """Lead-time classification shared by every quote of a batch."""

    mode: LeadTimeMode = LeadTimeMode.RESERVATION
    threshold_minutes: float = Field(default=0.0, ge=0)
    delta_minutes: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class SurchargeDescriptor(BaseModel):
    """What the lead-time step did to a quote (for display and payload)."""

    kind: LeadTimeMode
    threshold_minutes: float
    delta_minutes: Optional[float] = None
    base_delta_amount: Optional[float] = None
    base_delta_percent: Optional[float] = None
    total_delta_percent: Optional[float] = None

    model_config = ConfigDict(frozen=True)

    @property
    def applied(self) -> bool:
        """True when an immediate surcharge changed the amount."""
        return self.kind == LeadTimeMode.IMMEDIATE and self.base_delta_amount is not None


class FareQuote(BaseModel):
    """Fare computed for one vehicle."""

    vehicle_id: str
    vehicle_label: str
    is_quote: bool = False
    total: float = Field(default=0.0, ge=0)
    options_fee: float = 0.0
    extra_stops_total: float = 0.0
    pricing_mode: Optional[str] = None  # "immediate", "reservation", "all_quote"
    surcharges_applied: Optional[SurchargeDescriptor] = None
    quote_message: str = ""

    model_config = ConfigDict(frozen=True)


class SessionSnapshot(BaseModel):
    """Read-only view of a trip session at one point in time."""

    resolved: bool = False
    display_mode: DisplayMode = DisplayMode.A
    trip: Optional[TripInput] = None
    lead_time: Optional[LeadTimeResult] = None
    quotes: tuple[FareQuote, ...] = ()
    selected_vehicle_id: Optional[str] = None
    selected_vehicle_label: Optional[str] = None
    selected_is_quote: bool = False
    selected_total: Optional[float] = None
    selected_quote: Optional[FareQuote] = None
    selected_options: tuple[Option, ...] = ()
    pricing_mode: Optional[str] = None
    lead_time_label: Optional[str] = None
    lead_time_threshold_minutes: Optional[float] = None
    surcharges_applied: Optional[SurchargeDescriptor] = None
    custom_option_text: str = ""

    model_config = ConfigDict(frozen=True)

    @property
    def has_selection(self) -> bool:
        return self.selected_vehicle_id is not None

    @property
    def options_fee(self) -> float:
        return sum(o.fee for o in self.selected_options)


# --- Booking payload (wire format uses camelCase) ---


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Contact(_WireModel):
    """Customer contact details."""

    name: str
    email: str
    phone: str


class Consents(_WireModel):
    terms_consent: bool = True
    marketing_consent: bool = False


class PayloadOption(_WireModel):
    id: str
    label: str
    fee: float = 0.0


class TripPayload(_WireModel):
    """Full trip snapshot sent with a booking request."""

    start: str = ""
    end: str = ""
    stops: list[str] = Field(default_factory=list)
    pickup_date: str = ""
    pickup_time: str = ""
    vehicle: str = ""
    vehicle_label: str = ""
    is_quote: bool = False
    pet_option: bool = False
    baby_seat_option: bool = False
    options: list[PayloadOption] = Field(default_factory=list)
    options_total_fee: float = 0.0
    custom_option: str = ""
    price: Optional[float] = None
    pricing_mode: Optional[str] = None
    lead_time_threshold_minutes: Optional[float] = None
    surcharges_applied: Optional[dict] = None
    distance_km: Optional[float] = None
    duration_minutes: Optional[int] = None


class PayloadConfig(_WireModel):
    booking_email_to: Optional[str] = None
    slack_enabled: bool = False


class BookingPayload(_WireModel):
    """Body POSTed to the booking notification relay."""

    contact: Contact
    trip: TripPayload
    consents: Consents
    config: PayloadConfig = Field(default_factory=PayloadConfig)

    def to_wire(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
