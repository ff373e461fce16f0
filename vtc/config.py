"""Widget configuration resolver.

Turns the raw configuration source of a widget instance (its data
attributes plus an optional JSON blob) into a canonical, defaulted
``FareConfig``. Missing or malformed pieces fall back to documented
defaults; nothing here raises for bad input.
"""

import json
import logging
import math
import re
from collections.abc import Mapping
from typing import Any, Optional, Union

from vtc.models import (
    DisplayMode,
    FareConfig,
    Option,
    OptionsDisplayMode,
    PricingBehavior,
    Vehicle,
)

logger = logging.getLogger(__name__)

DEFAULT_QUOTE_MESSAGE = "Sur devis — merci de nous contacter."
DEFAULT_LEAD_TIME_THRESHOLD_MINUTES = 120.0

# Vehicle id that is always priced on quote
_QUOTE_ONLY_VEHICLE_ID = "autre"

_TRUE_TOKENS = {"1", "true", "yes", "on"}
_FALSE_TOKENS = {"0", "false", "no", "off"}

RawSource = Union[str, Mapping, None]


# ---------------------------------------------------------------------------
# Scalar parsing
# ---------------------------------------------------------------------------


def parse_number(value: Any, fallback: float) -> float:
    """Parse a number, accepting comma decimals ("2,4"). Fallback if unusable."""
    if isinstance(value, bool) or value is None:
        return fallback
    if isinstance(value, str):
        text = value.strip().replace(",", ".")
        if not text:
            return fallback
        try:
            n = float(text)
        except ValueError:
            return fallback
    elif isinstance(value, (int, float)):
        try:
            n = float(value)
        except OverflowError:
            return fallback
    else:
        return fallback
    return n if math.isfinite(n) else fallback


def parse_boolean(value: Any, fallback: bool) -> bool:
    """Parse a boolean from on/off style tokens. Fallback if unrecognised."""
    if value is None or value == "":
        return fallback
    if isinstance(value, bool):
        return value
    token = str(value).strip().lower()
    if token in _FALSE_TOKENS:
        return False
    if token in _TRUE_TOKENS:
        return True
    return fallback


def safe_json_parse(value: RawSource) -> Optional[Any]:
    """Parse a JSON string; malformed or empty input yields None."""
    if isinstance(value, Mapping):
        return dict(value)
    if not value or not isinstance(value, str):
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring malformed widget config JSON: %s", exc)
        return None


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def normalize_pricing_behavior(value: Any) -> PricingBehavior:
    try:
        return PricingBehavior(_text(value))
    except ValueError:
        return PricingBehavior.NORMAL


def normalize_display_mode(value: Any) -> DisplayMode:
    return DisplayMode.B if _text(value).upper() == "B" else DisplayMode.A


def normalize_options_display_mode(value: Any) -> OptionsDisplayMode:
    try:
        return OptionsDisplayMode(_text(value))
    except ValueError:
        return OptionsDisplayMode.BEFORE_CALC


# ---------------------------------------------------------------------------
# Catalog normalization
# ---------------------------------------------------------------------------


def normalize_vehicle(raw: Any) -> Optional[Vehicle]:
    """Build a Vehicle from a raw mapping. Returns None when the id is empty."""
    if not isinstance(raw, Mapping):
        return None
    vehicle_id = _text(raw.get("id"))
    if not vehicle_id:
        return None
    label = _text(raw.get("label"))
    return Vehicle(
        id=vehicle_id,
        label=label or vehicle_id,
        base_fare=max(0.0, parse_number(raw.get("baseFare"), 0.0)),
        price_per_km=max(0.0, parse_number(raw.get("pricePerKm"), 0.0)),
        quote_only=bool(raw.get("quoteOnly")) or vehicle_id == _QUOTE_ONLY_VEHICLE_ID,
        image_url=_text(raw.get("imageUrl")),
    )


def normalize_option(raw: Any) -> Optional[Option]:
    """Build an Option from a raw mapping. Returns None when the id is empty.

    The fee is read from ``fee`` or the older ``amount`` key.
    """
    if not isinstance(raw, Mapping):
        return None
    option_id = _text(raw.get("id"))
    if not option_id:
        return None
    if _text(raw.get("type")).lower() == "percent":
        logger.warning("Option %r has type \"percent\"; its value is applied as a flat fee", option_id)
    label = _text(raw.get("label"))
    fee = parse_number(raw.get("fee"), parse_number(raw.get("amount"), 0.0))
    return Option(id=option_id, label=label or option_id, fee=max(0.0, fee))


def _slugify_label(label: str, index: int) -> str:
    cleaned = re.sub(r"[^a-z0-9]+", "_", label.strip().lower()).strip("_")
    return cleaned or f"option_{index + 1}"


def options_from_attribute(raw_value: RawSource) -> list[dict]:
    """Read the ``optionsConfig`` attribute (a JSON list of options).

    Items without a label are skipped; a missing id is derived from the label.
    """
    raw = raw_value if isinstance(raw_value, list) else safe_json_parse(raw_value)
    if not isinstance(raw, list):
        return []
    items = []
    for index, item in enumerate(raw):
        if not isinstance(item, Mapping):
            continue
        label = _text(item.get("label"))
        if not label:
            continue
        option_id = _text(item.get("id")) or _slugify_label(label, index)
        items.append({**item, "id": option_id, "label": label})
    return items


def _dedupe(items: list) -> list:
    seen: set[str] = set()
    unique = []
    for item in items:
        if item is None or item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


def legacy_catalog(attributes: Mapping) -> tuple[list[dict], list[dict]]:
    """Two-vehicle, two-option catalog used when none is configured."""
    vehicles = [
        {
            "id": "berline",
            "label": "Berline",
            "baseFare": parse_number(attributes.get("baseFareBerline"), 29.99),
            "pricePerKm": parse_number(attributes.get("pricePerKmBerline"), 2.4),
            "imageUrl": attributes.get("vehicleImageBerline") or attributes.get("berlineImg") or "",
        },
        {
            "id": "van",
            "label": "Van 7 places",
            "baseFare": parse_number(attributes.get("baseFareVan"), 29.99),
            "pricePerKm": parse_number(attributes.get("pricePerKmVan"), 3.5),
            "imageUrl": attributes.get("vehicleImageVan") or attributes.get("vanImg") or "",
        },
    ]
    options = [
        {"id": "pet", "label": "Animal de compagnie", "fee": 20},
        {"id": "baby_seat", "label": "Siège bébé", "fee": 15},
    ]
    return vehicles, options


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def resolve_config(attributes: Optional[Mapping] = None, raw_json: RawSource = None) -> FareConfig:
    """Resolve a widget's raw configuration into a FareConfig.

    Args:
        attributes: Widget data attributes (camelCase keys). May omit anything.
        raw_json: JSON config blob (string or already-decoded mapping). When
            None, the ``config`` attribute is used.

    Returns:
        A frozen FareConfig with every field defaulted.
    """
    attributes = attributes or {}
    if raw_json is None:
        raw_json = attributes.get("config")
    cfg = safe_json_parse(raw_json)
    if not isinstance(cfg, Mapping):
        cfg = {}

    legacy_vehicles, legacy_options = legacy_catalog(attributes)

    vehicles_raw = cfg.get("vehicles") if isinstance(cfg.get("vehicles"), list) else legacy_vehicles
    vehicles = _dedupe([normalize_vehicle(v) for v in vehicles_raw])
    if not vehicles:
        logger.warning("No usable vehicle in widget config, using legacy catalog")
        vehicles = _dedupe([normalize_vehicle(v) for v in legacy_vehicles])

    attribute_options = options_from_attribute(attributes.get("optionsConfig"))
    if attribute_options:
        options_raw = attribute_options
    elif isinstance(cfg.get("options"), list):
        options_raw = cfg["options"]
    else:
        options_raw = legacy_options
    options = _dedupe([normalize_option(o) for o in options_raw])

    quote_message = _text(cfg.get("quoteMessage") or attributes.get("quoteMessage")) or DEFAULT_QUOTE_MESSAGE
    notify_endpoint = _text(
        attributes.get("notifyEndpoint")
        or attributes.get("slackEndpoint")
        or attributes.get("slackEndpointUrl")
        or cfg.get("notifyEndpoint")
    )

    config = FareConfig(
        display_mode=normalize_display_mode(cfg.get("displayMode")),
        stop_fee=max(0.0, parse_number(cfg.get("stopFee"), parse_number(attributes.get("stopFee"), 0.0))),
        quote_message=quote_message,
        pricing_behavior=normalize_pricing_behavior(cfg.get("pricingBehavior")),
        lead_time_threshold_minutes=max(
            0.0, parse_number(cfg.get("leadTimeThresholdMinutes"), DEFAULT_LEAD_TIME_THRESHOLD_MINUTES)
        ),
        immediate_label=_text(cfg.get("immediateLabel")) or "Immédiat",
        reservation_label=_text(cfg.get("reservationLabel")) or "Réservation",
        immediate_surcharge_enabled=parse_boolean(cfg.get("immediateSurchargeEnabled"), True),
        immediate_base_delta_amount=max(0.0, parse_number(cfg.get("immediateBaseDeltaAmount"), 0.0)),
        immediate_base_delta_percent=max(0.0, parse_number(cfg.get("immediateBaseDeltaPercent"), 0.0)),
        immediate_total_delta_percent=max(0.0, parse_number(cfg.get("immediateTotalDeltaPercent"), 0.0)),
        options_display_mode=normalize_options_display_mode(
            cfg.get("optionsDisplayMode") or attributes.get("optionsDisplayMode")
        ),
        notify_endpoint=notify_endpoint,
        booking_email_to=_text(attributes.get("bookingEmailTo") or cfg.get("bookingEmailTo")),
        vehicles=tuple(vehicles),
        options=tuple(options),
    )
    logger.debug(
        "Resolved widget config: mode=%s pricing=%s vehicles=%d options=%d",
        config.display_mode.value,
        config.pricing_behavior.value,
        len(config.vehicles),
        len(config.options),
    )
    return config


class ConfigResolver:
    """Resolves a widget's configuration once and keeps the result."""

    def __init__(self, attributes: Optional[Mapping] = None, raw_json: RawSource = None) -> None:
        self._attributes = dict(attributes or {})
        self._raw_json = raw_json
        self._config: Optional[FareConfig] = None

    def resolve(self) -> FareConfig:
        """Return the canonical config, computing it on first call only."""
        if self._config is None:
            self._config = resolve_config(self._attributes, self._raw_json)
        return self._config


def options_visible(config: FareConfig, phase: str) -> bool:
    """Whether the options list is shown in a UI phase.

    Phases: "initial", "after_calc", "before_booking".
    """
    if not config.options:
        return False
    mode = config.options_display_mode
    if mode == OptionsDisplayMode.BEFORE_CALC:
        return True
    if mode == OptionsDisplayMode.AFTER_CALC:
        return phase == "after_calc"
    return phase == "before_booking"
