"""Plain text output formatter -- no ANSI escapes."""

from __future__ import annotations

from vtc.models import FareConfig, FareQuote
from vtc.submission import SubmissionResult
from vtc.summary import TripSummary, format_price


def _header(title: str) -> str:
    """Create a plain text section header."""
    return f"\n{'=' * 60}\n  {title}\n{'=' * 60}\n"


def _subheader(title: str) -> str:
    """Create a plain text sub-header."""
    return f"\n--- {title} ---\n"


def _price_cell(quote: FareQuote) -> str:
    return "Sur devis" if quote.is_quote else format_price(quote.total)


def _surcharge_text(quote: FareQuote) -> str:
    s = quote.surcharges_applied
    if s is None:
        return ""
    if s.applied:
        return (
            f"+{s.base_delta_amount:.2f} € +{s.base_delta_percent:g}% base "
            f"x{1 + (s.total_delta_percent or 0) / 100:g}"
        )
    return s.kind.value


class PlainFormatter:
    """Format fare engine results as plain text without ANSI escapes."""

    def format_quotes(self, quotes: list[FareQuote], config: FareConfig) -> str:
        """Format quotes as a plain text table."""
        lines: list[str] = []
        lines.append(_header("Tarifs"))
        lines.append(f"  Pricing:  {config.pricing_behavior.value}")
        lines.append(f"  Mode:     {config.display_mode.value}")

        lines.append(_subheader("Vehicles"))
        lines.append(f"  {'Vehicle':<20} {'Price':>12} {'Stops':>9} {'Options':>9} {'Mode':<12} Surcharge")
        lines.append(f"  {'-' * 20} {'-' * 12} {'-' * 9} {'-' * 9} {'-' * 12} {'-' * 20}")

        for q in quotes:
            lines.append(
                f"  {q.vehicle_label:<20} {_price_cell(q):>12} {q.extra_stops_total:>9.2f} "
                f"{q.options_fee:>9.2f} {q.pricing_mode or '-':<12} {_surcharge_text(q)}"
            )

        if any(q.is_quote for q in quotes):
            lines.append("")
            lines.append(f"  Sur devis: {config.quote_message}")

        return "\n".join(lines)

    def format_summary(self, summary: TripSummary) -> str:
        """Format a trip summary as plain text."""
        lines: list[str] = []
        lines.append(_header("Résumé du trajet"))
        if summary.vehicle_prompt:
            lines.append(f"  {summary.vehicle_prompt}")
        for line in summary.lines:
            lines.append(f"  {line.label + ' :':<24} {line.value}")
        if summary.headline:
            lines.append("")
            lines.append(f"  {summary.headline}")
        return "\n".join(lines)

    def format_config(self, config: FareConfig) -> str:
        """Format a resolved config as plain text."""
        lines: list[str] = []
        lines.append(_header("Widget Configuration"))
        lines.append(f"  Display mode:    {config.display_mode.value}")
        lines.append(f"  Pricing:         {config.pricing_behavior.value}")
        lines.append(f"  Stop fee:        {config.stop_fee:.2f} €")
        lines.append(f"  Quote message:   {config.quote_message}")
        if config.uses_lead_time:
            lines.append(f"  Lead threshold:  {config.lead_time_threshold_minutes:g} min")
            lines.append(
                f"  Immediate:       {'on' if config.immediate_surcharge_enabled else 'off'} "
                f"(+{config.immediate_base_delta_amount:.2f} €, "
                f"+{config.immediate_base_delta_percent:g}% base, "
                f"+{config.immediate_total_delta_percent:g}% total)"
            )

        lines.append(_subheader("Vehicles"))
        for v in config.vehicles:
            tariff = "quote only" if v.quote_only else f"{v.base_fare:.2f} € min, {v.price_per_km:.2f} €/km"
            lines.append(f"  {v.id:<12} {v.label:<20} {tariff}")

        lines.append(_subheader("Options"))
        if not config.options:
            lines.append("  (none)")
        for o in config.options:
            lines.append(f"  {o.id:<12} {o.label:<20} +{o.fee:.2f} €")

        return "\n".join(lines)

    def format_booking(self, result: SubmissionResult) -> str:
        """Format a booking result as plain text."""
        lines: list[str] = []
        lines.append(_header("Réservation envoyée"))
        lines.append(f"  Reference: {result.request_id}")
        for w in result.warnings:
            lines.append(f"  Attention : {w}")
        return "\n".join(lines)
