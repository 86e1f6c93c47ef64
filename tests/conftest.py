"""Shared test fixtures for bookcheck."""

import copy

import yaml
import pytest
from pathlib import Path

from bookcheck.collector import FailureCollector
from bookcheck.config import load_config
from bookcheck.models import Stage

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def load_yaml():
    """Return a function that loads a YAML fixture file."""

    def _load(name: str) -> dict:
        path = FIXTURES_DIR / name
        with open(path) as f:
            return yaml.safe_load(f)

    return _load


@pytest.fixture
def config():
    """USD / AirCairo validation config."""
    return load_config(FIXTURES_DIR / "config.yaml")


@pytest.fixture
def search_payload(load_yaml):
    """Round trip CAI-DXB request for 2 ADT + 1 CHD."""
    return load_yaml("search_payload.yaml")


@pytest.fixture
def search_response(load_yaml):
    """Two valid offers for search_payload, cheapest first."""
    return load_yaml("search_response.yaml")


@pytest.fixture
def fare_confirm(load_yaml):
    """FareConfirm of the first Search offer."""
    return load_yaml("fare_confirm.yaml")


@pytest.fixture
def book(load_yaml):
    """Book of the confirmed offer, one breakdown entry per passenger."""
    return load_yaml("book.yaml")


@pytest.fixture
def retrieve(book):
    """Retrieve response identical to the Book response."""
    return copy.deepcopy(book)


@pytest.fixture
def add_pax(load_yaml):
    """AddPax request for the three booked passengers."""
    return load_yaml("add_pax.yaml")


@pytest.fixture
def collector():
    return FailureCollector(Stage.SEARCH)


@pytest.fixture
def out(collector):
    """A recorder bound to a throwaway check id."""
    return collector.bind("test_check", "Test Check")
