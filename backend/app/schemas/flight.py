from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class FlightPrice(BaseModel):
    total: float = Field(ge=0)
    currency: str

    model_config = {**_CAMEL, "frozen": True}


class FlightEndpoint(BaseModel):
    airport: str
    time: str

    model_config = {**_CAMEL, "frozen": True}


class FlightSegment(BaseModel):
    """One directional leg of an offer."""

    departure: FlightEndpoint
    arrival: FlightEndpoint
    duration: str
    stops: int = Field(ge=0)
    carrier: str
    flight_number: str

    model_config = {**_CAMEL, "frozen": True}


class FlightOffer(BaseModel):
    """A priced flight option as returned by a search, read-only once built."""

    id: str
    price: FlightPrice
    outbound: FlightSegment
    return_segment: FlightSegment | None = Field(default=None, alias="return")
    cabin_class: str = "ECONOMY"
    booking_class: str | None = None
    seats_available: int | None = None

    model_config = {**_CAMEL, "frozen": True}

    @field_validator("cabin_class")
    @classmethod
    def _upper_cabin(cls, v: str) -> str:
        return v.upper()


class FilterConfiguration(BaseModel):
    """User-selected filters. Empty inclusion lists accept everything."""

    price_range: tuple[float, float]
    stops: list[int] = Field(default_factory=list)
    airlines: list[str] = Field(default_factory=list)
    cabin_classes: list[str] = Field(default_factory=list)
    departure_time_range: tuple[int, int] = (0, 24)
    arrival_time_range: tuple[int, int] = (0, 24)

    model_config = _CAMEL

    @field_validator("price_range")
    @classmethod
    def _ordered_price_range(cls, v: tuple[float, float]) -> tuple[float, float]:
        low, high = v
        if low < 0:
            raise ValueError("priceRange minimum must not be negative")
        if low > high:
            raise ValueError("priceRange minimum must not exceed maximum")
        return v

    @field_validator("departure_time_range", "arrival_time_range")
    @classmethod
    def _ordered_hour_range(cls, v: tuple[int, int]) -> tuple[int, int]:
        low, high = v
        if not 0 <= low <= high <= 24:
            raise ValueError("time range must satisfy 0 <= start <= end <= 24")
        return v


class FilterBounds(BaseModel):
    """Selectable filter options observed in a set of offers."""

    min_price: int
    max_price: int
    stops: list[int]
    airlines: list[str]
    cabin_classes: list[str]

    model_config = _CAMEL


class SortKey(str, Enum):
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"
    DURATION_ASC = "duration-asc"
    DURATION_DESC = "duration-desc"
    STOPS_ASC = "stops-asc"
    DEPARTURE_ASC = "departure-asc"
    DEPARTURE_DESC = "departure-desc"


class SortOption(BaseModel):
    value: SortKey
    label: str
