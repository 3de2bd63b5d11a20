from datetime import date

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.flight import FilterBounds, FilterConfiguration, FlightOffer, SortOption

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class FlightSearchRequest(BaseModel):
    origin: str = Field(min_length=3, max_length=3)
    destination: str = Field(min_length=3, max_length=3)
    departure_date: date
    return_date: date | None = None
    adults: int = Field(default=1, ge=1, le=9)
    cabin_class: str | None = None

    model_config = _CAMEL

    @field_validator("origin", "destination", "cabin_class")
    @classmethod
    def _upper(cls, v: str | None) -> str | None:
        return v.strip().upper() if v else v


class FlightSearchMeta(BaseModel):
    count: int
    currency: str


class FlightSearchResponse(BaseModel):
    flights: list[FlightOffer]
    carriers: dict[str, str] = Field(default_factory=dict)
    meta: FlightSearchMeta

    model_config = _CAMEL


class FilterRequest(BaseModel):
    flights: list[FlightOffer]
    filters: FilterConfiguration | None = None
    sort_by: str = "price-asc"

    model_config = _CAMEL


class FilterResponse(BaseModel):
    flights: list[FlightOffer]
    count: int
    total: int
    has_active_filters: bool
    active_filter_count: int

    model_config = _CAMEL


class OffersRequest(BaseModel):
    flights: list[FlightOffer]


class FilterOptionsResponse(BaseModel):
    bounds: FilterBounds | None
    sort_options: list[SortOption]

    model_config = _CAMEL
