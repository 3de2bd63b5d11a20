"""Flights router — offer search, filtering/sorting, and filter panel options."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from app.schemas.flight import FilterConfiguration
from app.schemas.search import (
    FilterOptionsResponse,
    FilterRequest,
    FilterResponse,
    FlightSearchRequest,
    FlightSearchResponse,
    OffersRequest,
)
from app.services.amadeus_client import AmadeusClient, FlightSearchError, amadeus_client
from app.services.cache_service import CacheService, cache_service
from app.services.flight_filters import (
    SORT_OPTIONS,
    active_filter_count,
    apply_filters_and_sort,
    compute_default_filters,
    compute_filter_bounds,
    has_active_filters,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_search_client() -> AmadeusClient:
    return amadeus_client


def get_cache() -> CacheService:
    return cache_service


@router.post("/search", response_model=FlightSearchResponse)
async def search_flights(
    req: FlightSearchRequest,
    client: AmadeusClient = Depends(get_search_client),
    cache: CacheService = Depends(get_cache),
):
    """Search flight offers for a route and dates."""
    key = cache.search_key(
        req.origin, req.destination, req.departure_date, req.return_date, req.adults, req.cabin_class
    )
    cached = await cache.get_search(key)
    if cached is not None:
        try:
            response = FlightSearchResponse.model_validate(cached)
        except ValidationError as e:
            logger.warning(f"Discarding stale search cache entry {key}: {e}")
        else:
            logger.info(f"Search cache hit: {key}")
            return response

    try:
        result = await client.search_flight_offers(
            origin=req.origin,
            destination=req.destination,
            departure_date=req.departure_date,
            return_date=req.return_date,
            adults=req.adults,
            cabin_class=req.cabin_class,
        )
    except FlightSearchError as e:
        logger.error(f"Flight search failed for {req.origin}->{req.destination}: {e}")
        raise HTTPException(status_code=502, detail="Unable to search flights. Please try again.")

    await cache.set_search(key, result.model_dump(mode="json", by_alias=True))
    return result


@router.post("/filter", response_model=FilterResponse)
async def filter_flights(req: FilterRequest):
    """Apply filters and sorting to a set of offers.

    Without filters in the request, the defaults for the supplied offers are
    used, which keep every offer.
    """
    filters = req.filters or compute_default_filters(req.flights)
    bounds = compute_filter_bounds(req.flights)
    flights = apply_filters_and_sort(req.flights, filters, req.sort_by)
    return FilterResponse(
        flights=flights,
        count=len(flights),
        total=len(req.flights),
        has_active_filters=has_active_filters(filters, bounds),
        active_filter_count=active_filter_count(filters, bounds),
    )


@router.post("/filters/defaults", response_model=FilterConfiguration)
async def default_filters(req: OffersRequest):
    return compute_default_filters(req.flights)


@router.post("/filters/options", response_model=FilterOptionsResponse)
async def filter_options(req: OffersRequest):
    """Selectable filter values and sort options for the filter panel."""
    return FilterOptionsResponse(
        bounds=compute_filter_bounds(req.flights),
        sort_options=SORT_OPTIONS,
    )
