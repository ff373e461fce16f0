"""Tests for vtc.widget calculate and book flows."""

from unittest.mock import MagicMock, patch

import pytest

from vtc.errors import RouteError, TripInputError
from vtc.routing import RouteSummary
from vtc.widget import (
    MSG_ADDRESSES_REQUIRED,
    MSG_DATE_REQUIRED,
    MSG_ROUTE_FAILED,
    MSG_ROUTE_NOT_READY,
    Widget,
    validate_trip_input,
)

BASE_URL = "https://shop.example.com"
ROUTE_25KM = RouteSummary(distance_meters=25000, duration_seconds=1800, legs=1)


def _fetcher(route=ROUTE_25KM):
    return MagicMock(return_value=route)


@pytest.fixture
def compare_widget(load_yaml):
    raw = load_yaml("compare_widget.yaml")
    return Widget(raw["attributes"], raw["config"], base_url=BASE_URL, route_fetcher=_fetcher())


@pytest.fixture
def legacy_widget(load_yaml):
    raw = load_yaml("legacy_widget.yaml")
    return Widget(raw["attributes"], base_url=BASE_URL, route_fetcher=_fetcher())


def test_validate_trip_input():
    validate_trip_input("Paris", "Orly", "2026-03-10")
    with pytest.raises(TripInputError, match="date"):
        validate_trip_input("Paris", "Orly", " ")
    with pytest.raises(TripInputError):
        validate_trip_input("", "Orly", "2026-03-10")


class TestCalculate:
    def test_missing_date(self, legacy_widget):
        outcome = legacy_widget.calculate("Paris", "Orly", "")
        assert outcome.ok is False
        assert outcome.kind == "input"
        assert outcome.message == MSG_DATE_REQUIRED
        legacy_widget._route_fetcher.assert_not_called()

    def test_missing_addresses(self, legacy_widget):
        outcome = legacy_widget.calculate("Paris", "  ", "2026-03-10")
        assert outcome.kind == "input"
        assert outcome.message == MSG_ADDRESSES_REQUIRED

    def test_success_mode_a(self, legacy_widget, now):
        outcome = legacy_widget.calculate("Paris", "Orly", "2026-03-10", "14:07", now=now)
        assert outcome.ok is True
        snap = outcome.snapshot
        assert snap.trip.pickup_time == "14:05"
        assert snap.trip.duration_minutes == 30
        assert snap.selected_total == pytest.approx(60.0)

    def test_malformed_time_is_not_fatal(self, legacy_widget, now):
        outcome = legacy_widget.calculate("Paris", "Orly", "2026-03-10", "\u00b23:00", now=now)
        assert outcome.ok is True
        assert outcome.snapshot.selected_total == pytest.approx(60.0)

    def test_stops_forwarded(self, legacy_widget, now):
        outcome = legacy_widget.calculate(
            "Paris", "Orly", "2026-03-10", "14:00", stops=["Versailles", "", "Massy"], now=now
        )
        legacy_widget._route_fetcher.assert_called_once_with("Paris", "Orly", ["Versailles", "Massy"])
        assert outcome.snapshot.trip.stops_count == 2
        assert outcome.snapshot.selected_total == pytest.approx(80.0)

    def test_route_not_ready(self, legacy_widget):
        legacy_widget._route_fetcher.side_effect = RouteError("no key", status="NOT_READY")
        outcome = legacy_widget.calculate("Paris", "Orly", "2026-03-10")
        assert outcome.kind == "upstream"
        assert outcome.message == MSG_ROUTE_NOT_READY

    def test_route_failed(self, legacy_widget):
        legacy_widget._route_fetcher.side_effect = RouteError("boom", status="NOT_FOUND")
        outcome = legacy_widget.calculate("Paris", "Orly", "2026-03-10")
        assert outcome.message == MSG_ROUTE_FAILED

    def test_failure_clears_displayed_price(self, compare_widget, now):
        compare_widget.calculate("Paris", "Orly", "2026-03-10", "14:00", now=now)
        compare_widget.select_vehicle("berline")
        compare_widget._route_fetcher.side_effect = RouteError("boom")
        compare_widget.calculate("Paris", "Orly", "2026-03-10")
        snap = compare_widget.snapshot()
        assert snap.has_selection is False
        assert snap.resolved is True

    def test_unknown_vehicle(self, legacy_widget, now):
        outcome = legacy_widget.calculate("Paris", "Orly", "2026-03-10", vehicle_id="limo", now=now)
        assert outcome.ok is False
        assert outcome.kind == "input"

    def test_stale_resolution(self, legacy_widget, now):
        older = legacy_widget.session.begin_resolution()
        legacy_widget.calculate("Paris", "Orly", "2026-03-10", "14:00", now=now)
        outcome = legacy_widget.complete_resolution(
            older, ROUTE_25KM, "Paris", "Lyon", "2026-03-10", "14:00", now=now
        )
        assert outcome.kind == "stale"
        assert outcome.snapshot.trip.end == "Orly"


class TestInteraction:
    def test_compare_select_and_toggle(self, compare_widget, now):
        outcome = compare_widget.calculate("Paris", "Orly", "2026-03-10", "14:00", now=now)
        assert len(outcome.snapshot.quotes) == 3
        compare_widget.select_vehicle("van")
        snap = compare_widget.toggle_option("baby_seat")
        assert snap.selected_total == pytest.approx(102.5)

    def test_custom_option_time_normalized(self, legacy_widget):
        legacy_widget.set_custom_option_text("14:07")
        assert legacy_widget.snapshot().custom_option_text == "14:05"

    def test_summary(self, legacy_widget, now):
        legacy_widget.calculate("Paris", "Orly", "2026-03-10", "14:00", now=now)
        assert legacy_widget.summary().headline == "Tarif estimé : 60.00 €"

    def test_config_resolved_once(self, legacy_widget):
        assert legacy_widget.session.config is legacy_widget.config
        assert legacy_widget.calculator.config is legacy_widget.config
        assert legacy_widget.guard.config is legacy_widget.config


class TestBook:
    CONTACT = {"name": "Jeanne", "email": "jeanne@example.com", "phone": "0612345678"}

    def test_validation_outcome(self, compare_widget, now):
        compare_widget.calculate("Paris", "Orly", "2026-03-10", "14:00", now=now)
        outcome = compare_widget.book(**self.CONTACT, terms_consent=True)
        assert outcome.ok is False
        assert outcome.kind == "validation"
        assert outcome.field == "vehicle"

    @patch("vtc.submission.requests.post")
    def test_success(self, mock_post, compare_widget, now):
        resp = MagicMock(status_code=200, text='{"ok": true}')
        resp.json.return_value = {"ok": True, "requestId": "srv-9"}
        mock_post.return_value = resp

        compare_widget.calculate("Paris", "Orly", "2026-03-10", "14:00", now=now)
        compare_widget.select_vehicle("berline")
        outcome = compare_widget.book(**self.CONTACT, terms_consent=True, marketing_consent=True)

        assert outcome.ok is True
        assert outcome.result.request_id == "srv-9"
        payload = mock_post.call_args.kwargs["json"]
        assert payload["trip"]["vehicle"] == "berline"
        assert payload["consents"]["marketingConsent"] is True
        assert payload["config"]["bookingEmailTo"] == "dispatch@example.com"

    @patch("vtc.submission.requests.post")
    def test_transport_outcome(self, mock_post, legacy_widget, now):
        resp = MagicMock(status_code=401, text="")
        resp.json.side_effect = ValueError
        mock_post.return_value = resp

        legacy_widget.calculate("Paris", "Orly", "2026-03-10", "14:00", now=now)
        outcome = legacy_widget.book(**self.CONTACT, terms_consent=True)
        assert outcome.kind == "transport"
        assert "(code 401)" in outcome.message

    @patch("vtc.submission.requests.post")
    def test_webhook_configuration_outcome(self, mock_post, now):
        widget = Widget(
            {"notifyEndpoint": "https://hooks.slack.com/services/x"},
            base_url=BASE_URL,
            route_fetcher=_fetcher(),
        )
        widget.calculate("Paris", "Orly", "2026-03-10", "14:00", now=now)
        outcome = widget.book(**self.CONTACT, terms_consent=True)
        assert outcome.kind == "configuration"
        mock_post.assert_not_called()
