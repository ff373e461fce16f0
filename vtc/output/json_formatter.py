"""JSON output formatter -- valid JSON suitable for piping to jq."""

from __future__ import annotations

import json

from vtc.models import FareConfig, FareQuote
from vtc.submission import SubmissionResult
from vtc.summary import TripSummary


class JsonFormatter:
    """Format fare engine results as pretty-printed JSON."""

    def format_quotes(self, quotes: list[FareQuote], config: FareConfig) -> str:
        """Format quotes as JSON."""
        data = {
            "type": "fare_quotes",
            "pricing_behavior": config.pricing_behavior.value,
            "display_mode": config.display_mode.value,
            "quotes": [q.model_dump(mode="json") for q in quotes],
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def format_summary(self, summary: TripSummary) -> str:
        """Format a trip summary as JSON."""
        data = {
            "type": "trip_summary",
            **summary.model_dump(mode="json"),
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def format_config(self, config: FareConfig) -> str:
        """Format a resolved config as JSON."""
        data = {
            "type": "fare_config",
            **config.model_dump(mode="json"),
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def format_booking(self, result: SubmissionResult) -> str:
        """Format a booking result as JSON."""
        data = {
            "type": "booking_result",
            **result.model_dump(mode="json"),
        }
        return json.dumps(data, indent=2, ensure_ascii=False)
