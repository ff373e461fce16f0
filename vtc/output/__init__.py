"""Output formatters for the VTC fare engine.

Provides a Formatter protocol and three implementations:
- RichFormatter: colored Rich tables and panels
- PlainFormatter: plain text without ANSI escapes
- JsonFormatter: valid JSON for piping to jq
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from vtc.models import FareConfig, FareQuote
    from vtc.submission import SubmissionResult
    from vtc.summary import TripSummary


class Formatter(Protocol):
    """Protocol for formatting fare engine results."""

    def format_quotes(self, quotes: list[FareQuote], config: FareConfig) -> str:
        """Format one or more fare quotes."""
        ...

    def format_summary(self, summary: TripSummary) -> str:
        """Format a trip summary."""
        ...

    def format_config(self, config: FareConfig) -> str:
        """Format a resolved widget configuration."""
        ...

    def format_booking(self, result: SubmissionResult) -> str:
        """Format a booking submission result."""
        ...


def get_formatter(name: str = "rich") -> Formatter:
    """Get a formatter by name.

    Args:
        name: One of "rich", "plain", "json".

    Returns:
        A Formatter instance.

    Raises:
        ValueError: If the name is not recognized.
    """
    if name == "rich":
        from vtc.output.rich_formatter import RichFormatter

        return RichFormatter()
    elif name == "plain":
        from vtc.output.plain_formatter import PlainFormatter

        return PlainFormatter()
    elif name == "json":
        from vtc.output.json_formatter import JsonFormatter

        return JsonFormatter()
    else:
        raise ValueError(f"Unknown formatter: {name!r}. Use 'rich', 'plain', or 'json'.")
