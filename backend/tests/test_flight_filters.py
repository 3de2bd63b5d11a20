from datetime import datetime

import pytest
from pydantic import ValidationError

from app.schemas.flight import FilterConfiguration, SortKey
from app.services.flight_filters import (
    FILTER_PREDICATES,
    INVALID_HOUR,
    SORT_OPTIONS,
    active_filter_count,
    airline_accepted,
    apply_filters_and_sort,
    arrival_hour_in_range,
    cabin_class_accepted,
    compute_default_filters,
    compute_filter_bounds,
    departure_hour_in_range,
    format_duration,
    format_hour,
    has_active_filters,
    hour_of_day,
    is_included,
    parse_duration_minutes,
    price_in_range,
    sort_offers,
    stops_accepted,
    toggle_filter_value,
    update_filter,
)
from conftest import make_offer


def _ids(offers):
    return [o.id for o in offers]


def _filters(**overrides) -> FilterConfiguration:
    data = {"price_range": (0, 10000)}
    data.update(overrides)
    return FilterConfiguration(**data)


# --- Duration parser ---


@pytest.mark.parametrize(
    "duration, minutes",
    [
        ("PT2H30M", 150),
        ("PT45M", 45),
        ("PT3H", 180),
        ("PT", 0),
        ("PT10H5M", 605),
        ("garbage", 0),
        ("", 0),
    ],
)
def test_parse_duration_minutes(duration, minutes):
    assert parse_duration_minutes(duration) == minutes


def test_parse_duration_never_raises_on_non_strings():
    assert parse_duration_minutes(None) == 0
    assert parse_duration_minutes(90) == 0


# --- Time extractor ---


def test_hour_of_day_naive_timestamp_is_taken_as_is():
    assert hour_of_day("2025-06-01T08:30:00") == 8
    assert hour_of_day("2025-06-01T23:59:00") == 23
    assert hour_of_day("2025-06-01T00:05:00") == 0


def test_hour_of_day_zoned_timestamp_uses_process_local_time():
    ts = "2025-06-01T08:30:00+02:00"
    assert hour_of_day(ts) == datetime.fromisoformat(ts).astimezone().hour


EDGE_OF_RANGE_TIMESTAMPS = ["0001-01-01T00:30:00+05:00", "9999-12-31T23:30:00-05:00"]


@pytest.mark.parametrize("ts", EDGE_OF_RANGE_TIMESTAMPS)
def test_hour_of_day_zoned_timestamp_at_range_limit_does_not_raise(ts):
    assert hour_of_day(ts) in (INVALID_HOUR, *range(24))


@pytest.mark.parametrize("ts", EDGE_OF_RANGE_TIMESTAMPS)
def test_pipeline_keeps_offer_with_range_limit_timestamp(ts):
    offer = make_offer(depart=ts, arrive=ts)
    filters = _filters()
    assert is_included(offer, filters)
    assert apply_filters_and_sort([offer], filters, "departure-asc") == [offer]


def test_hour_of_day_malformed_returns_sentinel():
    assert hour_of_day("not a time") == INVALID_HOUR
    assert hour_of_day("") == INVALID_HOUR
    assert hour_of_day(None) == INVALID_HOUR


# --- Predicates ---


def test_predicates_are_ordered_and_named():
    assert [p.__name__ for p in FILTER_PREDICATES] == [
        "price_in_range",
        "stops_accepted",
        "airline_accepted",
        "cabin_class_accepted",
        "departure_hour_in_range",
        "arrival_hour_in_range",
    ]


def test_price_range_is_inclusive():
    filters = _filters(price_range=(100, 200))
    assert price_in_range(make_offer(price=100), filters)
    assert price_in_range(make_offer(price=200), filters)
    assert not price_in_range(make_offer(price=200.01), filters)
    assert not price_in_range(make_offer(price=99.99), filters)


def test_empty_stops_set_accepts_everything():
    filters = _filters()
    for stops in (0, 1, 2):
        assert stops_accepted(make_offer(stops=stops), filters)


def test_stops_set_restricts():
    filters = _filters(stops=[0, 2])
    assert stops_accepted(make_offer(stops=0), filters)
    assert not stops_accepted(make_offer(stops=1), filters)


def test_airline_and_cabin_sets():
    filters = _filters(airlines=["DL"], cabin_classes=["BUSINESS"])
    assert airline_accepted(make_offer(carrier="DL"), filters)
    assert not airline_accepted(make_offer(carrier="AA"), filters)
    assert cabin_class_accepted(make_offer(cabin="business"), filters)
    assert not cabin_class_accepted(make_offer(cabin="ECONOMY"), filters)


def test_time_ranges_are_inclusive():
    filters = _filters(departure_time_range=(8, 14), arrival_time_range=(0, 12))
    assert departure_hour_in_range(make_offer(depart="2025-06-01T08:00:00"), filters)
    assert departure_hour_in_range(make_offer(depart="2025-06-01T14:59:00"), filters)
    assert not departure_hour_in_range(make_offer(depart="2025-06-01T15:00:00"), filters)
    assert arrival_hour_in_range(make_offer(arrive="2025-06-01T12:10:00"), filters)
    assert not arrival_hour_in_range(make_offer(arrive="2025-06-01T13:00:00"), filters)


def test_malformed_time_is_not_excluded():
    filters = _filters(departure_time_range=(8, 10))
    assert departure_hour_in_range(make_offer(depart="whenever"), filters)


def test_only_outbound_leg_is_checked():
    inbound = make_offer(stops=3, carrier="ZZ", depart="2025-06-10T02:00:00").outbound
    offer = make_offer(stops=0, carrier="AA", depart="2025-06-01T09:00:00", return_segment=inbound)
    filters = _filters(stops=[0], airlines=["AA"], departure_time_range=(8, 10))
    assert is_included(offer, filters)


# --- Sorting ---


def test_sort_price_asc_is_stable(offers):
    assert _ids(sort_offers(offers, SortKey.PRICE_ASC)) == ["2", "4", "1", "3"]


def test_sort_price_desc_keeps_ties_in_input_order(offers):
    assert _ids(sort_offers(offers, "price-desc")) == ["3", "1", "2", "4"]


def test_sort_duration(offers):
    assert _ids(sort_offers(offers, "duration-asc")) == ["4", "2", "1", "3"]
    assert _ids(sort_offers(offers, "duration-desc")) == ["3", "1", "2", "4"]


def test_sort_stops_asc(offers):
    assert _ids(sort_offers(offers, "stops-asc")) == ["2", "4", "1", "3"]


def test_sort_departure(offers):
    assert _ids(sort_offers(offers, "departure-asc")) == ["4", "1", "2", "3"]
    assert _ids(sort_offers(offers, "departure-desc")) == ["3", "2", "1", "4"]


def test_sort_departure_puts_malformed_last_both_ways():
    offers = [
        make_offer(id="bad", depart="??"),
        make_offer(id="late", depart="2025-06-01T20:00:00"),
        make_offer(id="early", depart="2025-06-01T06:00:00"),
    ]
    assert _ids(sort_offers(offers, "departure-asc")) == ["early", "late", "bad"]
    assert _ids(sort_offers(offers, "departure-desc")) == ["late", "early", "bad"]


def test_unknown_sort_key_keeps_input_order(offers):
    assert _ids(sort_offers(offers, "stops-desc")) == ["1", "2", "3", "4"]
    assert _ids(sort_offers(offers, "")) == ["1", "2", "3", "4"]


def test_price_asc_reversed_equals_price_desc_without_ties(offers):
    distinct = [o for o in offers if o.id != "4"]
    asc = sort_offers(distinct, "price-asc")
    desc = sort_offers(distinct, "price-desc")
    assert list(reversed(asc)) == desc


def test_sorting_twice_is_idempotent(offers):
    once = sort_offers(offers, "price-asc")
    assert sort_offers(once, "price-asc") == once


# --- Pipeline ---


def test_end_to_end_stops_filter_with_price_sort():
    offers = [
        make_offer(id="a", price=300, stops=1, depart="2025-06-01T08:00:00"),
        make_offer(id="b", price=150, stops=0, depart="2025-06-01T14:00:00"),
    ]
    result = apply_filters_and_sort(offers, _filters(stops=[0]), "price-asc")
    assert _ids(result) == ["b"]


def test_pipeline_does_not_mutate_input(offers):
    before = list(offers)
    result = apply_filters_and_sort(offers, _filters(), "price-desc")
    assert offers == before
    assert result is not offers


def test_pipeline_output_is_subset_of_input(offers):
    result = apply_filters_and_sort(offers, _filters(price_range=(100, 400)), "duration-asc")
    assert len(result) <= len(offers)
    assert all(o in offers for o in result)


def test_filtering_is_idempotent(offers):
    filters = _filters(airlines=["AA", "DL"], departure_time_range=(6, 15))
    once = apply_filters_and_sort(offers, filters, "none")
    assert apply_filters_and_sort(once, filters, "none") == once
    assert _ids(once) == ["1", "2", "4"]


def test_pipeline_on_empty_list():
    assert apply_filters_and_sort([], _filters(), "price-asc") == []


# --- Defaults and bounds ---


def test_default_price_range_spans_offer_prices():
    offers = [make_offer(price=p) for p in (100, 250, 80)]
    filters = compute_default_filters(offers)
    assert filters.price_range == (80, 250)
    assert filters.stops == [] and filters.airlines == [] and filters.cabin_classes == []
    assert filters.departure_time_range == (0, 24)
    assert filters.arrival_time_range == (0, 24)


def test_default_price_range_floors_and_ceils():
    filters = compute_default_filters([make_offer(price=99.5), make_offer(price=480.2)])
    assert filters.price_range == (99, 481)


def test_default_filters_for_no_offers():
    filters = compute_default_filters([])
    assert filters.price_range == (0, 10000)
    assert filters.stops == []


def test_defaults_never_exclude(offers):
    filters = compute_default_filters(offers)
    assert all(is_included(o, filters) for o in offers)


def test_filter_bounds(offers):
    bounds = compute_filter_bounds(offers)
    assert bounds.min_price == 150
    assert bounds.max_price == 481
    assert bounds.stops == [0, 1, 2]
    assert bounds.airlines == ["AA", "DL", "UA"]
    assert bounds.cabin_classes == ["ECONOMY", "BUSINESS"]


def test_filter_bounds_for_no_offers():
    assert compute_filter_bounds([]) is None


def test_defaults_are_not_active(offers):
    bounds = compute_filter_bounds(offers)
    filters = compute_default_filters(offers)
    assert not has_active_filters(filters, bounds)
    assert active_filter_count(filters, bounds) == 0


def test_active_filter_count(offers):
    bounds = compute_filter_bounds(offers)
    filters = compute_default_filters(offers)
    filters = update_filter(filters, "price_range", (200, 481))
    filters = update_filter(filters, "stops", [0])
    filters = update_filter(filters, "arrivalTimeRange", (0, 20))
    assert has_active_filters(filters, bounds)
    assert active_filter_count(filters, bounds) == 3


# --- Filter state updates ---


def test_update_filter_returns_new_configuration(offers):
    filters = compute_default_filters(offers)
    updated = update_filter(filters, "airlines", ["DL"])
    assert updated.airlines == ["DL"]
    assert filters.airlines == []


def test_update_filter_validates_ranges():
    with pytest.raises(ValidationError):
        update_filter(_filters(), "departure_time_range", (20, 8))
    with pytest.raises(ValidationError):
        update_filter(_filters(), "price_range", (500, 100))
    with pytest.raises(ValidationError):
        update_filter(_filters(), "arrival_time_range", (0, 25))


def test_update_filter_rejects_unknown_field():
    with pytest.raises(ValueError, match="Unknown filter field"):
        update_filter(_filters(), "seats", 2)


def test_toggle_filter_value_adds_then_removes():
    filters = toggle_filter_value(_filters(), "stops", 1)
    filters = toggle_filter_value(filters, "stops", 0)
    assert filters.stops == [1, 0]
    filters = toggle_filter_value(filters, "stops", 1)
    assert filters.stops == [0]


def test_toggle_filter_value_accepts_camel_case_field():
    filters = toggle_filter_value(_filters(), "cabinClasses", "FIRST")
    assert filters.cabin_classes == ["FIRST"]


def test_toggle_rejects_range_fields():
    with pytest.raises(ValueError):
        toggle_filter_value(_filters(), "price_range", 5)


# --- Display helpers ---


def test_format_duration():
    assert format_duration("PT2H30M") == "2h 30m"
    assert format_duration("PT3H") == "3h"
    assert format_duration("PT45M") == "45m"
    assert format_duration("n/a") == "n/a"


@pytest.mark.parametrize(
    "hour, label",
    [(0, "12 AM"), (5, "5 AM"), (12, "12 PM"), (15, "3 PM"), (24, "12 AM")],
)
def test_format_hour(hour, label):
    assert format_hour(hour) == label


def test_sort_options_cover_every_sort_key():
    assert [o.value for o in SORT_OPTIONS] == list(SortKey)
