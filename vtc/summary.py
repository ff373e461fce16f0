"""Trip summary line items derived from a session snapshot."""

from typing import Optional

from pydantic import BaseModel, Field

from vtc.models import FareConfig, SessionSnapshot


class SummaryLine(BaseModel):
    """One labelled line of the trip summary."""

    key: str
    label: str
    value: str


class TripSummary(BaseModel):
    """Ordered summary lines plus the price headline."""

    lines: list[SummaryLine] = Field(default_factory=list)
    headline: str = ""
    vehicle_prompt: Optional[str] = None

    def get(self, key: str) -> Optional[SummaryLine]:
        for line in self.lines:
            if line.key == key:
                return line
        return None


def format_price(total: Optional[float]) -> str:
    """Price as shown to the user, e.g. ``60.00 €``."""
    if total is None:
        return "Tarif indisponible"
    return f"{total:.2f} €"


def price_headline(snapshot: SessionSnapshot, config: FareConfig) -> str:
    """Headline for the active selection: price, quote message, or nothing."""
    if not snapshot.has_selection:
        return ""
    if snapshot.selected_is_quote:
        message = snapshot.selected_quote.quote_message if snapshot.selected_quote else ""
        return f"Sur devis — {message or config.quote_message}"
    return f"Tarif estimé : {format_price(snapshot.selected_total)}"


def build_summary(snapshot: SessionSnapshot, config: FareConfig) -> TripSummary:
    """Build the trip summary shown next to the booking button."""
    summary = TripSummary(headline=price_headline(snapshot, config))
    trip = snapshot.trip
    if trip is None:
        return summary

    lines = summary.lines

    def add(key: str, label: str, value: str) -> None:
        lines.append(SummaryLine(key=key, label=label, value=value))

    add("date", "Date", trip.pickup_date)
    add("time", "Heure", trip.pickup_time)
    add("start", "Départ", trip.start)
    for i, stop in enumerate(trip.stops, start=1):
        add(f"stop_{i}", f"Arrêt {i}", stop)
    add("end", "Arrivée", trip.end)
    add("distance", "Distance", f"{trip.distance_km:.1f} km")
    if trip.duration_minutes is not None:
        add("duration", "Durée", f"{trip.duration_minutes} min")
    else:
        add("duration", "Durée", "(inconnu)")

    if config.uses_lead_time and snapshot.lead_time_label:
        add("lead_time", "Type", snapshot.lead_time_label)
        if snapshot.lead_time_threshold_minutes is not None:
            add("threshold", "Seuil", f"{round(snapshot.lead_time_threshold_minutes)} min")

    if snapshot.has_selection:
        add("vehicle", "Véhicule", snapshot.selected_vehicle_label or "")
    else:
        summary.vehicle_prompt = "Choisissez un véhicule dans la liste des tarifs."

    if snapshot.selected_options:
        parts = []
        for option in snapshot.selected_options:
            if option.fee:
                parts.append(f"{option.label} (+{option.fee:.2f} €)")
            else:
                parts.append(option.label)
        add("options", "Options", " · ".join(parts))
    else:
        add("options", "Options", "(aucune)")

    if snapshot.custom_option_text:
        add("custom_option", "Option personnalisée", snapshot.custom_option_text)

    if config.stop_fee > 0 and trip.stops_count:
        add("stop_fees", "Frais arrêts", f"{trip.stops_count} × {config.stop_fee:.2f} €")

    if snapshot.selected_is_quote:
        add("quote", "Sur devis", config.quote_message)

    return summary
