"""Tests for vtc.config widget configuration resolution."""

import logging

import pytest
from pydantic import ValidationError

from vtc.config import (
    DEFAULT_QUOTE_MESSAGE,
    ConfigResolver,
    normalize_option,
    normalize_vehicle,
    options_from_attribute,
    options_visible,
    parse_boolean,
    parse_number,
    resolve_config,
    safe_json_parse,
)
from vtc.models import (
    DisplayMode,
    FareConfig,
    OptionsDisplayMode,
    PricingBehavior,
    Vehicle,
)


class TestParseNumber:
    """Lenient numeric parsing."""

    def test_comma_decimal(self):
        assert parse_number("2,4", 0.0) == 2.4

    def test_dot_decimal(self):
        assert parse_number("29.99", 0.0) == 29.99

    def test_int_and_float(self):
        assert parse_number(10, 0.0) == 10.0
        assert parse_number(2.5, 0.0) == 2.5

    @pytest.mark.parametrize("value", [None, "", "  ", "abc", True, [], "nan", "inf"])
    def test_unusable_falls_back(self, value):
        assert parse_number(value, 7.0) == 7.0


class TestParseBoolean:
    @pytest.mark.parametrize("value", ["1", "true", "YES", "on", True])
    def test_truthy(self, value):
        assert parse_boolean(value, False) is True

    @pytest.mark.parametrize("value", ["0", "false", "No", "off", False])
    def test_falsy(self, value):
        assert parse_boolean(value, True) is False

    def test_unknown_token_falls_back(self):
        assert parse_boolean("maybe", True) is True
        assert parse_boolean(None, False) is False


class TestSafeJsonParse:
    def test_valid(self):
        assert safe_json_parse('{"a": 1}') == {"a": 1}

    def test_malformed_returns_none(self):
        assert safe_json_parse("{not json") is None

    def test_empty_returns_none(self):
        assert safe_json_parse("") is None
        assert safe_json_parse(None) is None

    def test_mapping_passthrough(self):
        assert safe_json_parse({"b": 2}) == {"b": 2}


class TestNormalizeCatalog:
    """Vehicle and option normalization."""

    def test_vehicle_camel_keys(self):
        v = normalize_vehicle({"id": "berline", "label": "Berline", "baseFare": "29,99", "pricePerKm": 2.4})
        assert v == Vehicle(id="berline", label="Berline", base_fare=29.99, price_per_km=2.4)

    def test_vehicle_empty_id_dropped(self):
        assert normalize_vehicle({"id": "  ", "label": "Ghost"}) is None
        assert normalize_vehicle("berline") is None

    def test_vehicle_negative_prices_clamped(self):
        v = normalize_vehicle({"id": "x", "baseFare": -5, "pricePerKm": "-1"})
        assert v.base_fare == 0.0
        assert v.price_per_km == 0.0
        assert v.label == "x"

    def test_autre_is_always_quote_only(self):
        v = normalize_vehicle({"id": "autre", "label": "Autre", "baseFare": 50, "pricePerKm": 3})
        assert v.quote_only is True

    def test_option_amount_fallback(self):
        o = normalize_option({"id": "wifi", "label": "Wifi", "amount": "5,5"})
        assert o.fee == 5.5

    def test_percent_option_read_as_flat_fee(self, caplog):
        with caplog.at_level(logging.WARNING, logger="vtc.config"):
            o = normalize_option({"id": "tip", "label": "Pourboire", "type": "percent", "fee": 10})
        assert o.fee == 10.0
        assert "tip" in caplog.text
        assert "percent" in caplog.text

    def test_flat_option_logs_nothing(self, caplog):
        with caplog.at_level(logging.WARNING, logger="vtc.config"):
            normalize_option({"id": "pet", "type": "fixed", "fee": 20})
        assert caplog.text == ""

    def test_option_negative_fee_clamped(self):
        assert normalize_option({"id": "x", "fee": -3}).fee == 0.0

    def test_options_attribute_derives_ids(self):
        items = options_from_attribute('[{"label": "Siège bébé", "fee": 15}, {"label": ""}, {"fee": 2}]')
        assert len(items) == 1
        assert items[0]["id"] == "si_ge_b_b"
        assert items[0]["label"] == "Siège bébé"

    def test_options_attribute_malformed(self):
        assert options_from_attribute("[oops") == []


class TestResolveConfig:
    """Full resolution with defaults."""

    def test_empty_source_yields_legacy_defaults(self):
        config = resolve_config()
        assert config.display_mode == DisplayMode.A
        assert config.pricing_behavior == PricingBehavior.NORMAL
        assert config.stop_fee == 0.0
        assert config.quote_message == DEFAULT_QUOTE_MESSAGE
        assert config.lead_time_threshold_minutes == 120.0
        assert [v.id for v in config.vehicles] == ["berline", "van"]
        assert config.get_vehicle("van").label == "Van 7 places"
        assert config.get_vehicle("berline").price_per_km == 2.4
        assert {o.id: o.fee for o in config.options} == {"pet": 20.0, "baby_seat": 15.0}

    def test_legacy_attributes(self, legacy_config):
        berline = legacy_config.get_vehicle("berline")
        assert berline.base_fare == 29.99
        assert berline.price_per_km == 2.4
        assert legacy_config.get_vehicle("van").base_fare == 39.99
        assert legacy_config.stop_fee == 10.0
        assert legacy_config.booking_email_to == "contact@example.com"

    def test_config_mapping(self, compare_config):
        assert compare_config.display_mode == DisplayMode.B
        assert [v.id for v in compare_config.vehicles] == ["berline", "van", "autre"]
        assert compare_config.get_vehicle("autre").quote_only is True
        assert compare_config.quote_message == "Sur devis, nous vous rappelons."
        assert compare_config.notify_endpoint == "/apps/vtc/api/booking-notify"

    def test_config_json_string(self, lead_time_config):
        assert lead_time_config.pricing_behavior == PricingBehavior.LEAD_TIME
        assert lead_time_config.immediate_base_delta_amount == 5.0
        assert lead_time_config.immediate_base_delta_percent == 10.0
        assert lead_time_config.options == ()

    def test_config_attribute_used_when_no_blob(self):
        config = resolve_config({"config": '{"displayMode": "B", "stopFee": "7,5"}'})
        assert config.display_mode == DisplayMode.B
        assert config.stop_fee == 7.5

    def test_malformed_json_uses_defaults(self):
        config = resolve_config({}, "{broken")
        assert config.display_mode == DisplayMode.A
        assert len(config.vehicles) == 2

    def test_unknown_enums_fall_back(self):
        config = resolve_config({}, {"displayMode": "Z", "pricingBehavior": "free", "optionsDisplayMode": "x"})
        assert config.display_mode == DisplayMode.A
        assert config.pricing_behavior == PricingBehavior.NORMAL
        assert config.options_display_mode == OptionsDisplayMode.BEFORE_CALC

    def test_negative_threshold_clamped(self):
        config = resolve_config({}, {"leadTimeThresholdMinutes": -30})
        assert config.lead_time_threshold_minutes == 0.0

    def test_duplicate_vehicle_ids_first_wins(self):
        config = resolve_config(
            {},
            {
                "vehicles": [
                    {"id": "berline", "label": "First", "pricePerKm": 2},
                    {"id": "berline", "label": "Second", "pricePerKm": 9},
                ]
            },
        )
        assert len(config.vehicles) == 1
        assert config.vehicles[0].label == "First"

    def test_all_vehicles_invalid_falls_back_to_legacy(self):
        config = resolve_config({}, {"vehicles": [{"id": ""}, {"label": "no id"}]})
        assert [v.id for v in config.vehicles] == ["berline", "van"]

    def test_options_attribute_overrides_blob(self):
        config = resolve_config(
            {"optionsConfig": '[{"id": "wifi", "label": "Wifi", "fee": 3}]'},
            {"options": [{"id": "pet", "label": "Animal", "fee": 20}]},
        )
        assert [o.id for o in config.options] == ["wifi"]

    def test_notify_endpoint_attribute_aliases(self):
        assert resolve_config({"slackEndpointUrl": "/a/b"}).notify_endpoint == "/a/b"
        assert resolve_config({"slackEndpoint": "/c"}).notify_endpoint == "/c"

    def test_result_is_frozen(self, legacy_config):
        with pytest.raises(ValidationError):
            legacy_config.stop_fee = 99


class TestFareConfigModel:
    def test_requires_a_vehicle(self):
        with pytest.raises(ValidationError):
            FareConfig(vehicles=())

    def test_rejects_duplicate_ids(self):
        v = Vehicle(id="a", label="A")
        with pytest.raises(ValidationError):
            FareConfig(vehicles=(v, v))


class TestConfigResolver:
    def test_memoized_identity(self):
        resolver = ConfigResolver({"stopFee": "5"})
        first = resolver.resolve()
        assert resolver.resolve() is first

    def test_attributes_copy(self):
        attrs = {"stopFee": "5"}
        resolver = ConfigResolver(attrs)
        attrs["stopFee"] = "50"
        assert resolver.resolve().stop_fee == 5.0


class TestOptionsVisible:
    def _config(self, mode):
        return resolve_config({}, {"optionsDisplayMode": mode})

    def test_before_calc_always(self):
        config = self._config("before_calc")
        assert options_visible(config, "initial")
        assert options_visible(config, "after_calc")

    def test_after_calc(self):
        config = self._config("after_calc")
        assert not options_visible(config, "initial")
        assert options_visible(config, "after_calc")

    def test_before_booking(self):
        config = self._config("before_booking")
        assert not options_visible(config, "after_calc")
        assert options_visible(config, "before_booking")

    def test_no_options_never_visible(self):
        config = resolve_config({}, {"options": []})
        assert not options_visible(config, "initial")
