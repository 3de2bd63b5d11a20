import os
import tempfile

# Keep tests off real Amadeus / Redis and out of the source tree's log dir
os.environ["AMADEUS_CLIENT_ID"] = ""
os.environ["AMADEUS_CLIENT_SECRET"] = ""
os.environ["SEARCH_CACHE_ENABLED"] = "false"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="tripfare-logs-"))

import pytest

from app.schemas.flight import FlightEndpoint, FlightOffer, FlightPrice, FlightSegment


def make_offer(
    id: str = "1",
    price: float = 200.0,
    stops: int = 0,
    carrier: str = "AA",
    cabin: str = "ECONOMY",
    depart: str = "2025-06-01T08:00:00",
    arrive: str = "2025-06-01T11:30:00",
    duration: str = "PT3H30M",
    return_segment: FlightSegment | None = None,
) -> FlightOffer:
    return FlightOffer(
        id=id,
        price=FlightPrice(total=price, currency="USD"),
        outbound=FlightSegment(
            departure=FlightEndpoint(airport="JFK", time=depart),
            arrival=FlightEndpoint(airport="LAX", time=arrive),
            duration=duration,
            stops=stops,
            carrier=carrier,
            flight_number=f"{carrier}100",
        ),
        return_segment=return_segment,
        cabin_class=cabin,
    )


@pytest.fixture
def offers() -> list[FlightOffer]:
    return [
        make_offer(id="1", price=300.0, stops=1, carrier="AA", depart="2025-06-01T08:15:00",
                   arrive="2025-06-01T14:00:00", duration="PT5H45M"),
        make_offer(id="2", price=150.0, stops=0, carrier="DL", depart="2025-06-01T14:00:00",
                   arrive="2025-06-01T17:10:00", duration="PT3H10M"),
        make_offer(id="3", price=480.5, stops=2, carrier="UA", cabin="BUSINESS",
                   depart="2025-06-01T21:30:00", arrive="2025-06-02T06:05:00", duration="PT8H35M"),
        make_offer(id="4", price=150.0, stops=0, carrier="AA", depart="2025-06-01T06:45:00",
                   arrive="2025-06-01T09:50:00", duration="PT3H5M"),
    ]
