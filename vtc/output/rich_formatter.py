"""Rich-based output formatter with colored tables and panels."""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vtc.models import FareConfig, FareQuote
from vtc.submission import SubmissionResult
from vtc.summary import TripSummary, format_price

# Pricing mode -> Rich style mapping
_MODE_STYLES = {
    "immediate": "bold yellow",
    "reservation": "blue",
    "all_quote": "magenta",
}


def _render(renderable) -> str:
    """Render a Rich object to a string."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=True, width=120)
    console.print(renderable)
    return buf.getvalue()


class RichFormatter:
    """Format fare engine results using Rich tables and panels."""

    def format_quotes(self, quotes: list[FareQuote], config: FareConfig) -> str:
        """Format quotes as a table, quote-only rows dimmed."""
        table = Table(title="Tarifs", show_lines=True)
        table.add_column("Vehicle", style="cyan", min_width=12)
        table.add_column("Price", justify="right", min_width=10)
        table.add_column("Stops", justify="right")
        table.add_column("Options", justify="right")
        table.add_column("Mode")
        table.add_column("Surcharge")

        for q in quotes:
            if q.is_quote:
                price = Text("Sur devis", style="dim")
            else:
                price = Text(format_price(q.total), style="bold green")

            mode = q.pricing_mode or ""
            surcharge = ""
            s = q.surcharges_applied
            if s is not None and s.applied:
                surcharge = f"+{s.base_delta_amount:.2f} € / +{s.base_delta_percent:g}% / x{1 + (s.total_delta_percent or 0) / 100:g}"

            table.add_row(
                q.vehicle_label,
                price,
                f"{q.extra_stops_total:.2f}",
                f"{q.options_fee:.2f}",
                Text(mode, style=_MODE_STYLES.get(mode, "")),
                surcharge,
            )

        parts = [_render(table)]
        if any(q.is_quote for q in quotes):
            parts.append(_render(Panel(config.quote_message, title="Sur devis", border_style="magenta")))
        return "\n".join(parts)

    def format_summary(self, summary: TripSummary) -> str:
        """Format a trip summary as a panel."""
        text = Text()
        if summary.vehicle_prompt:
            text.append(summary.vehicle_prompt + "\n", style="italic")
        for line in summary.lines:
            text.append(f"{line.label} : ", style="bold")
            text.append(line.value + "\n")
        if summary.headline:
            text.append("\n")
            text.append(summary.headline, style="bold green")
        return _render(Panel(text, title="Résumé du trajet", border_style="cyan"))

    def format_config(self, config: FareConfig) -> str:
        """Format a resolved config as a panel plus catalog tables."""
        lines = [
            f"Display mode:  {config.display_mode.value}",
            f"Pricing:       {config.pricing_behavior.value}",
            f"Stop fee:      {config.stop_fee:.2f} €",
            f"Quote message: {config.quote_message}",
        ]
        if config.uses_lead_time:
            lines.append(f"Lead threshold: {config.lead_time_threshold_minutes:g} min")
        parts = [_render(Panel(Text("\n".join(lines)), title="Widget Configuration", border_style="green"))]

        vehicles = Table(title="Vehicles")
        vehicles.add_column("Id", style="cyan")
        vehicles.add_column("Label")
        vehicles.add_column("Base fare", justify="right")
        vehicles.add_column("€/km", justify="right")
        vehicles.add_column("Quote only")
        for v in config.vehicles:
            vehicles.add_row(
                v.id,
                v.label,
                f"{v.base_fare:.2f}",
                f"{v.price_per_km:.2f}",
                Text("yes", style="magenta") if v.quote_only else "no",
            )
        parts.append(_render(vehicles))

        if config.options:
            options = Table(title="Options")
            options.add_column("Id", style="cyan")
            options.add_column("Label")
            options.add_column("Fee", justify="right")
            for o in config.options:
                options.add_row(o.id, o.label, f"{o.fee:.2f}")
            parts.append(_render(options))

        return "\n".join(parts)

    def format_booking(self, result: SubmissionResult) -> str:
        """Format a booking result, warnings in yellow."""
        text = Text(f"Reference: {result.request_id}")
        border = "green"
        if result.warnings:
            border = "yellow"
            for w in result.warnings:
                text.append(f"\nAttention : {w}", style="yellow")
        return _render(Panel(text, title="Réservation envoyée", border_style=border))
