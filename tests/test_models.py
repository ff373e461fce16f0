"""Tests for VTC domain models."""

import pytest
from pydantic import ValidationError

from vtc.models import (
    BookingPayload,
    Consents,
    Contact,
    DisplayMode,
    FareConfig,
    FareQuote,
    LeadTimeMode,
    Option,
    PricingBehavior,
    SurchargeDescriptor,
    TripInput,
    TripPayload,
    Vehicle,
)


# --- Catalog Tests ---


class TestVehicle:
    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            Vehicle(id="", label="Nothing")

    def test_negative_tariff_rejected(self):
        with pytest.raises(ValidationError):
            Vehicle(id="berline", label="Berline", price_per_km=-1)

    def test_frozen(self):
        v = Vehicle(id="berline", label="Berline")
        with pytest.raises(ValidationError):
            v.base_fare = 10


class TestOption:
    def test_default_fee(self):
        assert Option(id="pet", label="Animal").fee == 0.0

    def test_negative_fee_rejected(self):
        with pytest.raises(ValidationError):
            Option(id="pet", label="Animal", fee=-5)


class TestFareConfig:
    @pytest.fixture
    def config(self):
        return FareConfig(
            vehicles=(Vehicle(id="berline", label="Berline"), Vehicle(id="van", label="Van")),
            options=(Option(id="pet", label="Animal", fee=20),),
            immediate_label="",
        )

    def test_lookups(self, config):
        assert config.get_vehicle("van").label == "Van"
        assert config.get_vehicle("limo") is None
        assert config.get_option("pet").fee == 20
        assert config.get_option(None) is None

    def test_defaults(self, config):
        assert config.display_mode == DisplayMode.A
        assert config.pricing_behavior == PricingBehavior.NORMAL
        assert config.uses_lead_time is False

    def test_lead_time_labels_fall_back(self, config):
        assert config.lead_time_label(LeadTimeMode.IMMEDIATE) == "Immédiat"
        assert config.lead_time_label(LeadTimeMode.RESERVATION) == "Réservation"

    def test_enum_values(self):
        assert PricingBehavior("lead_time_pricing") == PricingBehavior.LEAD_TIME
        assert DisplayMode("B") == DisplayMode.B


class TestTripAndQuote:
    def test_trip_rejects_negative_distance(self):
        with pytest.raises(ValidationError):
            TripInput(distance_km=-1)

    def test_quote_rejects_negative_total(self):
        with pytest.raises(ValidationError):
            FareQuote(vehicle_id="x", vehicle_label="X", total=-0.01)

    def test_surcharge_applied_only_for_immediate_amounts(self):
        assert SurchargeDescriptor(kind=LeadTimeMode.RESERVATION, threshold_minutes=120).applied is False
        applied = SurchargeDescriptor(
            kind=LeadTimeMode.IMMEDIATE, threshold_minutes=120, base_delta_amount=0.0
        )
        assert applied.applied is True


# --- Wire Format Tests ---


class TestBookingPayload:
    def test_camel_case_wire(self):
        payload = BookingPayload(
            contact=Contact(name="Jeanne", email="j@example.com", phone="0612345678"),
            trip=TripPayload(vehicle="berline", vehicle_label="Berline", pickup_date="2026-03-10", price=60.0),
            consents=Consents(marketing_consent=True),
        )
        wire = payload.to_wire()
        assert wire["trip"]["vehicleLabel"] == "Berline"
        assert wire["trip"]["pickupDate"] == "2026-03-10"
        assert wire["consents"] == {"termsConsent": True, "marketingConsent": True}
        assert wire["config"] == {"slackEnabled": False}
        assert "pricingMode" not in wire["trip"]

    def test_populate_by_alias(self):
        trip = TripPayload.model_validate({"vehicleLabel": "Van", "isQuote": True})
        assert trip.vehicle_label == "Van"
        assert trip.is_quote is True
