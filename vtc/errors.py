"""Exception hierarchy for the VTC fare engine."""

from typing import Optional


class VtcError(Exception):
    """Base exception for the fare engine."""


class TripInputError(VtcError):
    """Missing or invalid trip input (date, start, end)."""


class RouteError(VtcError):
    """Route resolution not ready or failed upstream."""

    def __init__(self, message: str, status: str = "") -> None:
        super().__init__(message)
        self.status = status


class SessionError(VtcError):
    """Operation not allowed in the current session state."""


class SubmissionError(VtcError):
    """Base exception for booking submission failures."""


class SubmissionValidationError(SubmissionError):
    """Contact, consent or vehicle selection check failed."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class UnsafeEndpointError(SubmissionError):
    """Configured endpoint points at a direct chat webhook."""

    def __init__(self, message: str, endpoint: str) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class SubmissionTransportError(SubmissionError):
    """Relay unreachable, non-2xx, malformed, or reported ok=false."""

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        status: Optional[int] = None,
        request_id: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.status = status
        self.request_id = request_id

    @property
    def user_message(self) -> str:
        """Message shown to the user, with status code and reference."""
        ref = f" (réf: {self.request_id})" if self.request_id else ""
        if self.status:
            return f"{self.message} (code {self.status}){ref}"
        return f"{self.message}{ref}"
