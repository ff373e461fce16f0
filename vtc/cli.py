"""VTC fare engine CLI -- price and book chauffeur trips from a widget config.

Provides commands for quoting one vehicle, comparing every vehicle of a
widget, showing the resolved configuration, and sending a booking request
to the storefront relay.
"""

import datetime
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
import yaml

from vtc.models import TripInput

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="vtc",
    help="VTC booking fare engine -- quote, compare, book.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Global option types
# ---------------------------------------------------------------------------

JsonFlag = Annotated[bool, typer.Option("--json", help="Output as JSON.")]
PlainFlag = Annotated[bool, typer.Option("--plain", help="Output as plain text (no color).")]
VerboseFlag = Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output.")]
QuietFlag = Annotated[bool, typer.Option("--quiet", "-q", help="Suppress non-essential output.")]

WidgetArg = Annotated[str, typer.Argument(help="Path to widget YAML file")]
KmOpt = Annotated[float, typer.Option("--km", min=0, help="Route distance in km.")]
StopsOpt = Annotated[int, typer.Option("--stops", min=0, help="Number of intermediate stops.")]
DateOpt = Annotated[str, typer.Option("--date", help="Pickup date (YYYY-MM-DD).")]
TimeOpt = Annotated[str, typer.Option("--time", help="Pickup time (HH:MM).")]
VehicleOpt = Annotated[Optional[str], typer.Option("--vehicle", help="Vehicle id.")]
OptionOpt = Annotated[
    Optional[list[str]], typer.Option("--option", help="Option id (repeatable).")
]
NowOpt = Annotated[
    Optional[str], typer.Option("--now", help="Reference time (ISO 8601) for lead-time pricing.")
]
StartOpt = Annotated[str, typer.Option("--from", help="Start address (for the summary).")]
EndOpt = Annotated[str, typer.Option("--to", help="End address (for the summary).")]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_format(json_flag: bool = False, plain_flag: bool = False) -> str:
    """Determine output format: json > plain > TTY auto-detect > rich."""
    if json_flag:
        return "json"
    if plain_flag:
        return "plain"
    # Auto-detect: use rich if stdout is a TTY, plain otherwise
    if sys.stdout.isatty():
        return "rich"
    return "plain"


def _setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging based on verbosity flags."""
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)


def _load_widget_source(file: str) -> tuple[dict, object]:
    """Load a widget YAML file into (attributes, raw config).

    The file holds an ``attributes:`` mapping (the widget's data
    attributes) and an optional ``config:`` entry, either a mapping or a
    JSON string. Provides helpful error messages for:
    - File not found
    - YAML parse errors (with line/column)
    - Wrong top-level shape
    """
    path = Path(file)

    if not path.exists():
        hint = ""
        if not path.is_absolute():
            hint = f" (looked in {Path.cwd()})"
        raise typer.BadParameter(
            f"File not found: {file}{hint}\n  Hint: Check the file path and try again."
        )

    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        msg = f"YAML parse error in {file}"
        if hasattr(exc, "problem_mark") and exc.problem_mark is not None:
            mark = exc.problem_mark
            msg += f" at line {mark.line + 1}, column {mark.column + 1}"
        if hasattr(exc, "problem") and exc.problem:
            msg += f": {exc.problem}"
        raise typer.BadParameter(msg)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise typer.BadParameter(
            f"Expected a YAML mapping (dict) in {file}, got {type(raw).__name__}"
        )

    attributes = raw.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise typer.BadParameter(f"'attributes' in {file} must be a mapping")
    return attributes, raw.get("config")


def _load_widget(file: str, base_url: Optional[str] = None):
    from vtc.widget import Widget

    attributes, raw_config = _load_widget_source(file)
    return Widget(attributes=attributes, raw_json=raw_config, base_url=base_url)


def _parse_now(value: Optional[str]) -> Optional[datetime.datetime]:
    if not value:
        return None
    try:
        return datetime.datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid --now value: {value!r} (expected ISO 8601)")


def _build_trip(
    km: float,
    stops: int,
    date: str,
    time: str,
    start: str = "",
    end: str = "",
) -> TripInput:
    from vtc.lead_time import normalize_time_to_5_minutes

    return TripInput(
        distance_km=km,
        stops_count=stops,
        pickup_date=date.strip(),
        pickup_time=normalize_time_to_5_minutes(time),
        start=start,
        end=end,
        stops=tuple(f"Arrêt {i}" for i in range(1, stops + 1)),
    )


def _options_fee(widget, option_ids: Optional[list[str]]) -> float:
    total = 0.0
    for option_id in option_ids or []:
        option = widget.config.get_option(option_id)
        if option is None:
            known = ", ".join(o.id for o in widget.config.options) or "(none)"
            raise typer.BadParameter(f"Unknown option: {option_id!r}. Known options: {known}")
        total += option.fee
    return total


def _error_panel(message: str) -> None:
    """Print an error message, using Rich panel if available."""
    try:
        from rich.console import Console
        from rich.panel import Panel

        console = Console(stderr=True)
        console.print(Panel(message, title="Error", border_style="red"))
    except Exception:
        typer.echo(f"Error: {message}", err=True)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def quote(
    widget_file: WidgetArg,
    km: KmOpt,
    date: DateOpt,
    time: TimeOpt = "",
    stops: StopsOpt = 0,
    vehicle: VehicleOpt = None,
    option: OptionOpt = None,
    now: NowOpt = None,
    json: JsonFlag = False,
    plain: PlainFlag = False,
    verbose: VerboseFlag = False,
    quiet: QuietFlag = False,
) -> None:
    """Price one vehicle (the first in the catalog unless --vehicle is given)."""
    _setup_logging(verbose, quiet)
    try:
        widget = _load_widget(widget_file)
        from vtc.output import get_formatter

        vehicle_id = vehicle or widget.config.vehicles[0].id
        if widget.config.get_vehicle(vehicle_id) is None:
            _error_panel(f"Unknown vehicle: {vehicle_id!r}")
            raise typer.Exit(code=1)

        trip = _build_trip(km, stops, date, time)
        lead_time = widget.calculator.lead_time(trip, now=_parse_now(now))
        result = widget.calculator.quote(trip, vehicle_id, lead_time, _options_fee(widget, option))

        fmt = get_formatter(_get_format(json, plain))
        typer.echo(fmt.format_quotes([result], widget.config))
    except typer.Exit:
        raise
    except typer.BadParameter:
        raise
    except Exception as exc:
        _error_panel(str(exc))
        raise typer.Exit(code=2)


@app.command()
def compare(
    widget_file: WidgetArg,
    km: KmOpt,
    date: DateOpt,
    time: TimeOpt = "",
    stops: StopsOpt = 0,
    option: OptionOpt = None,
    now: NowOpt = None,
    json: JsonFlag = False,
    plain: PlainFlag = False,
    verbose: VerboseFlag = False,
    quiet: QuietFlag = False,
) -> None:
    """Price every vehicle of the widget with one shared lead time."""
    _setup_logging(verbose, quiet)
    try:
        widget = _load_widget(widget_file)
        from vtc.output import get_formatter

        trip = _build_trip(km, stops, date, time)
        lead_time = widget.calculator.lead_time(trip, now=_parse_now(now))
        quotes = widget.calculator.quote_all(trip, lead_time, _options_fee(widget, option))

        fmt = get_formatter(_get_format(json, plain))
        typer.echo(fmt.format_quotes(quotes, widget.config))
    except typer.Exit:
        raise
    except typer.BadParameter:
        raise
    except Exception as exc:
        _error_panel(str(exc))
        raise typer.Exit(code=2)


@app.command()
def config(
    widget_file: WidgetArg,
    json: JsonFlag = False,
    plain: PlainFlag = False,
    verbose: VerboseFlag = False,
    quiet: QuietFlag = False,
) -> None:
    """Show the resolved widget configuration."""
    _setup_logging(verbose, quiet)
    try:
        widget = _load_widget(widget_file)
        from vtc.output import get_formatter

        fmt = get_formatter(_get_format(json, plain))
        typer.echo(fmt.format_config(widget.config))
    except typer.Exit:
        raise
    except typer.BadParameter:
        raise
    except Exception as exc:
        _error_panel(str(exc))
        raise typer.Exit(code=2)


@app.command()
def book(
    widget_file: WidgetArg,
    km: KmOpt,
    date: DateOpt,
    name: Annotated[str, typer.Option("--name", help="Customer name.")],
    email: Annotated[str, typer.Option("--email", help="Customer email.")],
    phone: Annotated[str, typer.Option("--phone", help="Customer phone.")],
    time: TimeOpt = "",
    stops: StopsOpt = 0,
    start: StartOpt = "",
    end: EndOpt = "",
    vehicle: VehicleOpt = None,
    option: OptionOpt = None,
    custom_option: Annotated[
        str, typer.Option("--custom-option", help="Free-text option request.")
    ] = "",
    accept_terms: Annotated[
        bool, typer.Option("--accept-terms", help="Customer accepts the terms of sale.")
    ] = False,
    marketing: Annotated[
        bool, typer.Option("--marketing", help="Customer opts in to marketing.")
    ] = False,
    endpoint: Annotated[
        Optional[str], typer.Option("--endpoint", help="Override the booking relay endpoint.")
    ] = None,
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", help="Storefront origin (default: $VTC_STOREFRONT_URL)."),
    ] = None,
    now: NowOpt = None,
    json: JsonFlag = False,
    plain: PlainFlag = False,
    verbose: VerboseFlag = False,
    quiet: QuietFlag = False,
) -> None:
    """Price the trip and send a booking request to the storefront relay."""
    _setup_logging(verbose, quiet)
    try:
        widget = _load_widget(widget_file, base_url=base_url)
        from vtc.errors import SessionError
        from vtc.models import DisplayMode
        from vtc.output import get_formatter

        if endpoint is not None:
            widget.guard.endpoint = endpoint

        _options_fee(widget, option)
        for option_id in option or []:
            widget.toggle_option(option_id, True)
        if custom_option:
            widget.set_custom_option_text(custom_option)

        trip = _build_trip(km, stops, date, time, start=start, end=end)
        try:
            widget.session.resolve(trip, vehicle_id=vehicle, now=_parse_now(now))
            if widget.config.display_mode == DisplayMode.B and vehicle:
                widget.select_vehicle(vehicle)
        except SessionError as exc:
            _error_panel(str(exc))
            raise typer.Exit(code=1)

        fmt = get_formatter(_get_format(json, plain))
        if not quiet and not json:
            typer.echo(fmt.format_summary(widget.summary()))

        outcome = widget.book(
            name=name,
            email=email,
            phone=phone,
            terms_consent=accept_terms,
            marketing_consent=marketing,
        )
        if not outcome.ok:
            _error_panel(outcome.message)
            raise typer.Exit(code=1 if outcome.kind in ("validation", "configuration") else 2)

        typer.echo(fmt.format_booking(outcome.result))
    except typer.Exit:
        raise
    except typer.BadParameter:
        raise
    except Exception as exc:
        _error_panel(str(exc))
        raise typer.Exit(code=2)
