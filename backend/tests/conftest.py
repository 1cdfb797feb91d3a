"""
Shared fixtures for AutoRank backend tests.
"""
import pytest
import sys
import os
from datetime import datetime, timezone

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from autorank.data.reference_data import load_reference_data  # noqa: E402
from autorank.schemas.vehicles import VehicleRecord  # noqa: E402
from autorank.utils.query_analysis import QueryParser  # noqa: E402
from autorank.utils.ranking import ResultRanker  # noqa: E402
from autorank.utils.scoring import RelevanceScorer  # noqa: E402

# Scores below are computed against this year
TEST_YEAR = 2025


def make_record(**kwargs) -> VehicleRecord:
    defaults = {
        "id": "car-1",
        "make": "Toyota",
        "model": "Corolla",
        "year": 2020,
        "price": 20000,
        "mileage": 50000,
        "fuel_type": "petrol",
        "transmission": "manual",
        "location": "Dublin",
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }
    defaults.update(kwargs)
    return VehicleRecord(**defaults)


@pytest.fixture(scope="session")
def reference():
    return load_reference_data()


@pytest.fixture
def parser(reference):
    return QueryParser(reference)


@pytest.fixture
def scorer():
    return RelevanceScorer(current_year=TEST_YEAR)


@pytest.fixture
def ranker(parser, scorer):
    return ResultRanker(parser, scorer)


@pytest.fixture
def showroom():
    """A small mixed inventory."""
    return [
        make_record(id="bmw-3", make="BMW", model="3 Series", year=2021, price=35000, body_style="Sedan"),
        make_record(id="camry", make="Toyota", model="Camry", year=2020, price=22000, fuel_type="hybrid",
                    transmission="automatic", body_style="Sedan"),
        make_record(id="leaf", make="Nissan", model="Leaf", year=2022, price=21000, fuel_type="electric",
                    transmission="automatic", body_style="Hatchback"),
        make_record(id="tesla-3", make="Tesla", model="Model 3", year=2023, price=41000, fuel_type="electric",
                    transmission="automatic", body_style="Sedan"),
        make_record(id="q5", make="Audi", model="Q5", year=2021, price=44000, fuel_type="diesel",
                    transmission="automatic", body_style="SUV"),
        make_record(id="golf", make="Volkswagen", model="Golf", year=2019, price=17500, fuel_type="diesel",
                    body_style="Hatchback", location="Galway"),
    ]
