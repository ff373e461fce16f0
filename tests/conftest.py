"""Shared test fixtures for the VTC fare engine."""

import datetime

import yaml
import pytest
from pathlib import Path

from vtc.config import resolve_config
from vtc.models import TripInput

FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Fixed reference time used for lead-time classification
NOW = datetime.datetime(2026, 3, 10, 12, 0)


@pytest.fixture
def load_yaml():
    """Return a function that loads a YAML fixture file."""

    def _load(name: str) -> dict:
        path = FIXTURES_DIR / name
        with open(path) as f:
            return yaml.safe_load(f)

    return _load


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def legacy_config(load_yaml):
    """Config resolved from data attributes only."""
    raw = load_yaml("legacy_widget.yaml")
    return resolve_config(raw["attributes"])


@pytest.fixture
def compare_config(load_yaml):
    """Mode B config with berline, van and a quote-only vehicle."""
    raw = load_yaml("compare_widget.yaml")
    return resolve_config(raw["attributes"], raw["config"])


@pytest.fixture
def lead_time_config(load_yaml):
    """Lead-time pricing config, 120 min threshold, +5 / +10% base surcharge."""
    raw = load_yaml("lead_time_widget.yaml")
    return resolve_config(raw["attributes"], raw["config"])


@pytest.fixture
def make_trip():
    """Return a function that builds a TripInput on the reference day."""

    def _make(distance_km=25.0, pickup_time="14:00", stops_count=0, pickup_date="2026-03-10", **kw):
        return TripInput(
            distance_km=distance_km,
            stops_count=stops_count,
            pickup_date=pickup_date,
            pickup_time=pickup_time,
            start=kw.pop("start", "Gare de Lyon, Paris"),
            end=kw.pop("end", "Aéroport CDG"),
            stops=kw.pop("stops", tuple(f"Arrêt {i}" for i in range(1, stops_count + 1))),
            **kw,
        )

    return _make
