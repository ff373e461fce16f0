"""Booking submission: validation, payload building and relay POST.

Checks run in order before anything is built or sent:

1. Contact fields (name, email, phone).
2. Terms consent.
3. In display mode B, an actively selected vehicle.

The payload is then POSTed once (no retry) to the relay endpoint. Direct
chat-webhook URLs are refused outright; secrets for those channels live
on the relay side only.
"""

from __future__ import annotations

import logging
import os
import re
import secrets
import time
from typing import Optional
from urllib.parse import urljoin, urlparse

import requests
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from vtc.errors import (
    SubmissionError,
    SubmissionTransportError,
    SubmissionValidationError,
    UnsafeEndpointError,
)
from vtc.models import (
    BookingPayload,
    Consents,
    Contact,
    DisplayMode,
    FareConfig,
    PayloadConfig,
    PayloadOption,
    SessionSnapshot,
    TripPayload,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_ENDPOINT = "/apps/vtc/api/booking-notify"
_TIMEOUT_S = 15
_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
_MIN_PHONE_LENGTH = 6

MESSAGES = {
    "contact_missing": "Merci de remplir tous les champs (nom, e-mail, téléphone).",
    "email_invalid": "L'adresse e-mail semble invalide.",
    "phone_short": "Le numéro de téléphone semble trop court.",
    "terms_required": "Merci d’accepter les Conditions et la Politique de confidentialité pour réserver.",
    "vehicle_required": "Merci de choisir un véhicule dans la liste des tarifs.",
    "trip_required": "Merci de calculer votre trajet avant de réserver.",
    "unsafe_endpoint": (
        "Configuration invalide : n'utilisez pas une URL de webhook de messagerie "
        "dans le thème. Utilisez uniquement un endpoint serveur (par défaut: "
        f"{DEFAULT_ENDPOINT})."
    ),
    "unreachable": "Impossible de contacter le serveur…",
    "timeout": "Le serveur met trop de temps à répondre…",
    "invalid_response": "Réponse serveur invalide",
    "email_not_configured": "Email non configuré côté application (SMTP_* / BOOKING_EMAIL_FROM).",
    "email_failed": "Erreur lors de l'envoi de l'e-mail côté application.",
    "unauthorized": "Accès refusé (App Proxy / signature invalide).",
    "not_found": "Endpoint introuvable (App Proxy non configuré ?)",
    "rejected": "Requête refusée par le serveur.",
    "warn_email": "le chauffeur n’a pas été notifié par e-mail (configuration manquante).",
    "warn_slack": "la notification Slack n’a pas été envoyée (configuration manquante).",
}

# (host regex, required path prefix)
_CHAT_WEBHOOK_PATTERNS = [
    (re.compile(r"^hooks\.slack\.com$"), ""),
    (re.compile(r"^(?:[\w-]+\.)*discord(?:app)?\.com$"), "/api/webhooks"),
    (re.compile(r"^chat\.googleapis\.com$"), ""),
    (re.compile(r"^(?:[\w-]+\.)+webhook\.office\.com$"), ""),
    (re.compile(r"^outlook\.office\.com$"), "/webhook"),
]


class SubmissionResult(BaseModel):
    """Outcome of a successful relay call."""

    ok: bool = True
    request_id: str
    warnings: list[str] = Field(default_factory=list)
    response: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_contact(name: str, email: str, phone: str) -> Contact:
    """Check contact fields and return a trimmed Contact.

    Raises:
        SubmissionValidationError: a field is empty or malformed.
    """
    name = (name or "").strip()
    email = (email or "").strip()
    phone = (phone or "").strip()

    if not name or not email or not phone:
        missing = next(f for f, v in (("name", name), ("email", email), ("phone", phone)) if not v)
        raise SubmissionValidationError(missing, MESSAGES["contact_missing"])
    if not _EMAIL_RE.search(email):
        raise SubmissionValidationError("email", MESSAGES["email_invalid"])
    if len(phone) < _MIN_PHONE_LENGTH:
        raise SubmissionValidationError("phone", MESSAGES["phone_short"])

    return Contact(name=name, email=email, phone=phone)


# ---------------------------------------------------------------------------
# Endpoint policy
# ---------------------------------------------------------------------------


def is_chat_webhook(url: str) -> bool:
    """True if the URL targets a chat service's incoming webhook."""
    text = (url or "").strip()
    if text.startswith("//"):
        text = "https:" + text
    parsed = urlparse(text)
    host = (parsed.hostname or "").lower()
    if not host:
        return False
    for host_re, path_prefix in _CHAT_WEBHOOK_PATTERNS:
        if host_re.match(host) and parsed.path.lower().startswith(path_prefix):
            return True
    return False


def _origin(url: str) -> tuple[str, str]:
    parsed = urlparse(url)
    return parsed.scheme.lower(), parsed.netloc.lower()


def resolve_endpoint(configured: str, base_url: str) -> str:
    """Turn the configured endpoint into the absolute URL to POST to.

    Chat webhooks are refused. Absolute URLs on another origin than the
    storefront, and anything that is not a path, fall back to the default
    relay path.

    Raises:
        UnsafeEndpointError: the endpoint is a direct chat webhook.
        SubmissionError: no storefront base URL to resolve against.
    """
    raw = (configured or "").strip() or DEFAULT_ENDPOINT
    if is_chat_webhook(raw):
        logger.warning("Blocked direct chat webhook endpoint: %s", raw)
        raise UnsafeEndpointError(MESSAGES["unsafe_endpoint"], endpoint=raw)

    base = (base_url or "").strip()
    if not base:
        raise SubmissionError("No storefront base URL configured for the booking relay")

    is_absolute = bool(re.match(r"^https?://", raw, re.IGNORECASE)) or raw.startswith("//")
    if is_absolute:
        absolute = "https:" + raw if raw.startswith("//") else raw
        if _origin(absolute) == _origin(base):
            return absolute
        logger.warning("Ignoring cross-origin endpoint %s, using %s", raw, DEFAULT_ENDPOINT)
        raw = DEFAULT_ENDPOINT
    elif not raw.startswith("/"):
        logger.warning("Ignoring non-path endpoint %r, using %s", raw, DEFAULT_ENDPOINT)
        raw = DEFAULT_ENDPOINT

    return urljoin(base, raw)


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------


def build_payload(
    snapshot: SessionSnapshot,
    contact: Contact,
    config: FareConfig,
    marketing_consent: bool = False,
) -> BookingPayload:
    """Build the booking payload from a session snapshot."""
    trip = snapshot.trip
    quote = snapshot.selected_quote
    option_ids = {o.id for o in snapshot.selected_options}

    price: Optional[float] = None
    if quote is not None:
        price = 0.0 if quote.is_quote else quote.total

    surcharges = None
    if snapshot.surcharges_applied is not None:
        dumped = snapshot.surcharges_applied.model_dump(mode="json", exclude_none=True)
        surcharges = {to_camel(k): v for k, v in dumped.items()}

    trip_payload = TripPayload(
        start=trip.start if trip else "",
        end=trip.end if trip else "",
        stops=list(trip.stops) if trip else [],
        pickup_date=trip.pickup_date if trip else "",
        pickup_time=trip.pickup_time if trip else "",
        vehicle=snapshot.selected_vehicle_id or "",
        vehicle_label=snapshot.selected_vehicle_label or "",
        is_quote=snapshot.selected_is_quote,
        pet_option="pet" in option_ids,
        baby_seat_option="baby_seat" in option_ids,
        options=[PayloadOption(id=o.id, label=o.label, fee=o.fee) for o in snapshot.selected_options],
        options_total_fee=quote.options_fee if quote is not None else 0.0,
        custom_option=snapshot.custom_option_text,
        price=price,
        pricing_mode=snapshot.pricing_mode,
        lead_time_threshold_minutes=snapshot.lead_time_threshold_minutes if config.uses_lead_time else None,
        surcharges_applied=surcharges,
        distance_km=trip.distance_km if trip else None,
        duration_minutes=trip.duration_minutes if trip else None,
    )

    return BookingPayload(
        contact=contact,
        trip=trip_payload,
        consents=Consents(terms_consent=True, marketing_consent=bool(marketing_consent)),
        config=PayloadConfig(booking_email_to=config.booking_email_to or None, slack_enabled=False),
    )


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------


def _new_request_id() -> str:
    return f"vtc_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


def _error_message(status: int, data: Optional[dict]) -> str:
    """User-facing message for a non-2xx relay response."""
    code = str(data.get("error") or "") if isinstance(data, dict) else ""
    if code == "EMAIL_NOT_CONFIGURED":
        return MESSAGES["email_not_configured"]
    if code == "EMAIL_FAILED":
        return MESSAGES["email_failed"]
    if code:
        return code
    if status == 401:
        return MESSAGES["unauthorized"]
    if status == 404:
        return MESSAGES["not_found"]
    if 400 <= status < 500:
        return MESSAGES["rejected"]
    return MESSAGES["unreachable"]


def _response_warnings(data: dict) -> list[str]:
    warnings = []
    email = data.get("email")
    if isinstance(email, dict) and email.get("sent") is False:
        warnings.append(MESSAGES["warn_email"])
    slack = data.get("slack")
    if isinstance(slack, dict) and slack.get("enabled") is True and slack.get("sent") is False:
        warnings.append(MESSAGES["warn_slack"])
    return warnings


class SubmissionGuard:
    """Validates a session and forwards the booking to the relay endpoint."""

    def __init__(
        self,
        config: FareConfig,
        base_url: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout: float = _TIMEOUT_S,
    ) -> None:
        self.config = config
        self.base_url = base_url if base_url is not None else os.environ.get("VTC_STOREFRONT_URL", "")
        self.endpoint = endpoint if endpoint is not None else config.notify_endpoint
        self.timeout = timeout

    def validate(
        self,
        snapshot: SessionSnapshot,
        name: str,
        email: str,
        phone: str,
        terms_consent: bool,
    ) -> Contact:
        """Run the pre-submission checks in order.

        Raises:
            SubmissionValidationError: the first failing check.
        """
        contact = validate_contact(name, email, phone)
        if not terms_consent:
            raise SubmissionValidationError("terms_consent", MESSAGES["terms_required"])
        if snapshot.display_mode == DisplayMode.B and not snapshot.has_selection:
            raise SubmissionValidationError("vehicle", MESSAGES["vehicle_required"])
        if not snapshot.resolved or not snapshot.has_selection:
            raise SubmissionValidationError("trip", MESSAGES["trip_required"])
        return contact

    def submit(
        self,
        snapshot: SessionSnapshot,
        name: str,
        email: str,
        phone: str,
        terms_consent: bool,
        marketing_consent: bool = False,
    ) -> SubmissionResult:
        """Validate, build and send the booking once.

        Raises:
            SubmissionValidationError: a check failed; nothing was sent.
            UnsafeEndpointError: endpoint is a chat webhook; nothing was sent.
            SubmissionTransportError: the relay call failed.
        """
        contact = self.validate(snapshot, name, email, phone, terms_consent)
        url = resolve_endpoint(self.endpoint, self.base_url)
        payload = build_payload(snapshot, contact, self.config, marketing_consent)
        return self.send(url, payload)

    def send(self, url: str, payload: BookingPayload) -> SubmissionResult:
        """POST the payload; one attempt, no retry."""
        request_id = _new_request_id()
        logger.info("booking-notify: POST %s (request %s)", url, request_id)

        try:
            resp = requests.post(
                url,
                json=payload.to_wire(),
                headers={"Content-Type": "application/json", "X-Request-Id": request_id},
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning("booking-notify: timeout (request %s)", request_id)
            raise SubmissionTransportError(MESSAGES["timeout"], request_id=request_id)
        except requests.RequestException as exc:
            logger.warning("booking-notify: network error (request %s): %s", request_id, exc)
            raise SubmissionTransportError(MESSAGES["unreachable"], detail=str(exc), request_id=request_id)

        raw_text = resp.text or ""
        try:
            data = resp.json() if raw_text else None
        except ValueError:
            data = None

        logger.info("booking-notify: response %d (request %s)", resp.status_code, request_id)

        if not 200 <= resp.status_code < 300:
            detail = str(data.get("error")) if isinstance(data, dict) and data.get("error") else raw_text or None
            logger.warning("booking-notify: HTTP %d (request %s): %s", resp.status_code, request_id, detail)
            raise SubmissionTransportError(
                _error_message(resp.status_code, data),
                detail=detail,
                status=resp.status_code,
                request_id=request_id,
            )

        if not isinstance(data, dict):
            logger.warning("booking-notify: non-JSON body (request %s): %s", request_id, raw_text[:200])
            raise SubmissionTransportError(
                MESSAGES["invalid_response"], detail=raw_text or None, request_id=request_id
            )

        if data.get("ok") is not True:
            detail = data.get("detail") or data.get("error")
            logger.warning("booking-notify: relay reported failure (request %s): %s", request_id, detail)
            raise SubmissionTransportError(
                str(data.get("error") or MESSAGES["unreachable"]),
                detail=str(detail) if detail else None,
                request_id=request_id,
            )

        return SubmissionResult(
            request_id=str(data.get("requestId") or request_id),
            warnings=_response_warnings(data),
            response=data,
        )
