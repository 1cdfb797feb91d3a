"""
Pydantic schemas for vehicle listings that take part in a ranking pass.
"""

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from autorank.utils.normalization import normalize_fuel_type, normalize_transmission

FuelType = Literal["petrol", "diesel", "electric", "hybrid", "unknown"]
Transmission = Literal["automatic", "manual", "unknown"]

MIN_MODEL_YEAR = 1900


class VehicleRecord(BaseModel):
    """One car listing available for ranking. Treated as immutable during a pass."""

    id: str
    make: str
    model: str
    year: int
    price: float = Field(ge=0)
    mileage: int = Field(ge=0)
    fuel_type: FuelType = "unknown"
    transmission: Transmission = "unknown"
    location: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    body_style: str | None = None  # "SUV", "Sedan", ... matched against the parsed body style
    relevance_score: float | None = None  # only set on copies returned by the ranker

    @field_validator("fuel_type", mode="before")
    @classmethod
    def _coerce_fuel_type(cls, value):
        return normalize_fuel_type(value)

    @field_validator("transmission", mode="before")
    @classmethod
    def _coerce_transmission(cls, value):
        return normalize_transmission(value)

    @model_validator(mode="after")
    def _check_year(self):
        latest = datetime.now(UTC).year + 1
        if not MIN_MODEL_YEAR <= self.year <= latest:
            raise ValueError(f"year {self.year} outside {MIN_MODEL_YEAR}..{latest}")
        return self

    @property
    def display_name(self) -> str:
        return f"{self.year} {self.make} {self.model}"
