"""Flight filter engine — filters, sorts and derives filter defaults for flight offers.

Everything here is pure: inputs are never mutated and every call returns new
objects, so the functions can run on each UI interaction or concurrently.
"""

import logging
import math
import re
from datetime import datetime
from typing import Any, Callable, Iterable, Sequence

from pydantic.alias_generators import to_camel

from app.config import settings
from app.schemas.flight import (
    FilterBounds,
    FilterConfiguration,
    FlightOffer,
    SortKey,
    SortOption,
)

logger = logging.getLogger(__name__)

# Returned by hour_of_day for timestamps that cannot be parsed
INVALID_HOUR = -1

FULL_DAY = (0, 24)

_DURATION_RE = re.compile(r"PT(\d+H)?(\d+M)?")

Predicate = Callable[[FlightOffer, FilterConfiguration], bool]


# --- Parsing ---


def parse_duration_minutes(duration: str | None) -> int:
    """Parse a vendor duration (PT2H30M) to minutes.

    Hours and minutes are both optional. Anything that does not match gives 0,
    which callers should read as "unknown" rather than "instant".
    """
    if not isinstance(duration, str):
        return 0
    match = _DURATION_RE.search(duration)
    if not match:
        return 0
    hours = int(match.group(1)[:-1]) if match.group(1) else 0
    minutes = int(match.group(2)[:-1]) if match.group(2) else 0
    return hours * 60 + minutes


def _parse_timestamp(timestamp: Any) -> datetime | None:
    if not isinstance(timestamp, str):
        return None
    try:
        return datetime.fromisoformat(timestamp)
    except ValueError:
        return None


def hour_of_day(timestamp: str) -> int:
    """Return the hour (0-23) of a vendor timestamp, or INVALID_HOUR.

    Naive timestamps are read as-is, matching the vendor convention of local
    airport time. Zoned timestamps are converted to the local timezone of this
    process. There is no correction to the airport's own timezone, so a zoned
    value can land on a different hour than the airport clock showed.
    """
    dt = _parse_timestamp(timestamp)
    if dt is None:
        return INVALID_HOUR
    if dt.tzinfo is not None:
        try:
            dt = dt.astimezone()
        except (OverflowError, OSError, ValueError):
            return INVALID_HOUR
    return dt.hour


def _instant(timestamp: str) -> float | None:
    """POSIX time of a timestamp; naive values are taken as process-local time."""
    dt = _parse_timestamp(timestamp)
    if dt is None:
        return None
    try:
        return dt.timestamp()
    except (OverflowError, OSError, ValueError):
        return None


# --- Predicates (outbound leg only) ---


def price_in_range(offer: FlightOffer, filters: FilterConfiguration) -> bool:
    low, high = filters.price_range
    return low <= offer.price.total <= high


def stops_accepted(offer: FlightOffer, filters: FilterConfiguration) -> bool:
    return not filters.stops or offer.outbound.stops in filters.stops


def airline_accepted(offer: FlightOffer, filters: FilterConfiguration) -> bool:
    return not filters.airlines or offer.outbound.carrier in filters.airlines


def cabin_class_accepted(offer: FlightOffer, filters: FilterConfiguration) -> bool:
    return not filters.cabin_classes or offer.cabin_class in filters.cabin_classes


def _hour_in_range(hour: int, hour_range: tuple[int, int]) -> bool:
    if hour == INVALID_HOUR:
        return True
    low, high = hour_range
    return low <= hour <= high


def departure_hour_in_range(offer: FlightOffer, filters: FilterConfiguration) -> bool:
    return _hour_in_range(
        hour_of_day(offer.outbound.departure.time), filters.departure_time_range
    )


def arrival_hour_in_range(offer: FlightOffer, filters: FilterConfiguration) -> bool:
    return _hour_in_range(
        hour_of_day(offer.outbound.arrival.time), filters.arrival_time_range
    )


FILTER_PREDICATES: tuple[Predicate, ...] = (
    price_in_range,
    stops_accepted,
    airline_accepted,
    cabin_class_accepted,
    departure_hour_in_range,
    arrival_hour_in_range,
)


def is_included(offer: FlightOffer, filters: FilterConfiguration) -> bool:
    """True if the offer passes every filter predicate."""
    return all(predicate(offer, filters) for predicate in FILTER_PREDICATES)


# --- Sorting ---


def _price_key(offer: FlightOffer) -> float:
    return offer.price.total


def _duration_key(offer: FlightOffer) -> int:
    return parse_duration_minutes(offer.outbound.duration)


def _stops_key(offer: FlightOffer) -> int:
    return offer.outbound.stops


def _departure_asc_key(offer: FlightOffer) -> float:
    instant = _instant(offer.outbound.departure.time)
    return math.inf if instant is None else instant


def _departure_desc_key(offer: FlightOffer) -> float:
    instant = _instant(offer.outbound.departure.time)
    return -math.inf if instant is None else instant


# sorted() is stable in both directions, so ties keep their input order
SORTERS: dict[SortKey, tuple[Callable[[FlightOffer], float], bool]] = {
    SortKey.PRICE_ASC: (_price_key, False),
    SortKey.PRICE_DESC: (_price_key, True),
    SortKey.DURATION_ASC: (_duration_key, False),
    SortKey.DURATION_DESC: (_duration_key, True),
    SortKey.STOPS_ASC: (_stops_key, False),
    SortKey.DEPARTURE_ASC: (_departure_asc_key, False),
    SortKey.DEPARTURE_DESC: (_departure_desc_key, True),
}


def sort_offers(offers: Iterable[FlightOffer], sort_by: SortKey | str) -> list[FlightOffer]:
    """Stable sort by sort key. Unknown keys keep the input order."""
    try:
        key, reverse = SORTERS[SortKey(sort_by)]
    except ValueError:
        logger.debug(f"Unknown sort key {sort_by!r}, keeping input order")
        return list(offers)
    return sorted(offers, key=key, reverse=reverse)


def apply_filters_and_sort(
    offers: Sequence[FlightOffer],
    filters: FilterConfiguration,
    sort_by: SortKey | str = SortKey.PRICE_ASC,
) -> list[FlightOffer]:
    """Filter offers (input order kept), then stable-sort the survivors.

    Returns a new list; ``offers`` is left untouched.
    """
    filtered = [offer for offer in offers if is_included(offer, filters)]
    logger.debug(f"Filters kept {len(filtered)} of {len(offers)} offers")
    return sort_offers(filtered, sort_by)


# --- Defaults and bounds ---


def compute_default_filters(offers: Sequence[FlightOffer]) -> FilterConfiguration:
    """Filters that accept every offer in ``offers``.

    The price range spans the floor of the cheapest to the ceiling of the
    most expensive offer. With no offers the range falls back to
    [0, settings.fallback_max_price].
    """
    if not offers:
        return FilterConfiguration(price_range=(0, settings.fallback_max_price))

    prices = [offer.price.total for offer in offers]
    return FilterConfiguration(
        price_range=(math.floor(min(prices)), math.ceil(max(prices))),
    )


def compute_filter_bounds(offers: Sequence[FlightOffer]) -> FilterBounds | None:
    """Options a user can pick from, or None when there are no offers."""
    if not offers:
        return None

    prices = [offer.price.total for offer in offers]
    return FilterBounds(
        min_price=math.floor(min(prices)),
        max_price=math.ceil(max(prices)),
        stops=sorted({offer.outbound.stops for offer in offers}),
        airlines=list(dict.fromkeys(offer.outbound.carrier for offer in offers)),
        cabin_classes=list(dict.fromkeys(offer.cabin_class for offer in offers)),
    )


def _active_groups(filters: FilterConfiguration, bounds: FilterBounds | None) -> list[bool]:
    low, high = filters.price_range
    price_active = bounds is not None and (low > bounds.min_price or high < bounds.max_price)
    return [
        price_active,
        bool(filters.stops),
        bool(filters.airlines),
        bool(filters.cabin_classes),
        tuple(filters.departure_time_range) != FULL_DAY,
        tuple(filters.arrival_time_range) != FULL_DAY,
    ]


def has_active_filters(filters: FilterConfiguration, bounds: FilterBounds | None) -> bool:
    return any(_active_groups(filters, bounds))


def active_filter_count(filters: FilterConfiguration, bounds: FilterBounds | None) -> int:
    """Number of filter groups (price, stops, airlines, cabin, departure, arrival) in use."""
    return sum(_active_groups(filters, bounds))


# --- Filter state updates ---

_FIELD_NAMES = {
    **{to_camel(name): name for name in FilterConfiguration.model_fields},
    **{name: name for name in FilterConfiguration.model_fields},
}
_TOGGLE_FIELDS = ("stops", "airlines", "cabin_classes")


def _field_name(field: str) -> str:
    try:
        return _FIELD_NAMES[field]
    except KeyError:
        raise ValueError(f"Unknown filter field: {field}") from None


def update_filter(filters: FilterConfiguration, field: str, value: Any) -> FilterConfiguration:
    """Return a re-validated copy of ``filters`` with one field replaced.

    ``field`` may be the attribute name or its camelCase alias.
    Raises ValueError for unknown fields and pydantic.ValidationError for
    values that break the range rules.
    """
    data = filters.model_dump()
    data[_field_name(field)] = value
    return FilterConfiguration.model_validate(data)


def toggle_filter_value(filters: FilterConfiguration, field: str, value: Any) -> FilterConfiguration:
    """Add ``value`` to a list filter, or remove it if already selected."""
    name = _field_name(field)
    if name not in _TOGGLE_FIELDS:
        raise ValueError(f"Filter field {field} is not a selection list")

    current = getattr(filters, name)
    if value in current:
        updated = [v for v in current if v != value]
    else:
        updated = [*current, value]
    return update_filter(filters, name, updated)


# --- Display helpers ---

SORT_OPTIONS: list[SortOption] = [
    SortOption(value=SortKey.PRICE_ASC, label="Price: Low to High"),
    SortOption(value=SortKey.PRICE_DESC, label="Price: High to Low"),
    SortOption(value=SortKey.DURATION_ASC, label="Duration: Shortest"),
    SortOption(value=SortKey.DURATION_DESC, label="Duration: Longest"),
    SortOption(value=SortKey.STOPS_ASC, label="Stops: Fewest"),
    SortOption(value=SortKey.DEPARTURE_ASC, label="Departure: Earliest"),
    SortOption(value=SortKey.DEPARTURE_DESC, label="Departure: Latest"),
]


def format_duration(duration: str) -> str:
    """PT2H30M -> '2h 30m'. Unparseable strings are returned unchanged."""
    match = _DURATION_RE.search(duration or "")
    if not match:
        return duration
    hours = match.group(1).replace("H", "h ") if match.group(1) else ""
    minutes = match.group(2).replace("M", "m") if match.group(2) else ""
    return f"{hours}{minutes}".strip()


def format_hour(hour: int) -> str:
    """Slider label for an hour boundary, e.g. 0 -> '12 AM', 15 -> '3 PM'."""
    if hour in (0, 24):
        return "12 AM"
    if hour == 12:
        return "12 PM"
    if hour < 12:
        return f"{hour} AM"
    return f"{hour - 12} PM"
