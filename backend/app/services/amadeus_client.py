"""Amadeus API client — adapter for flight-offer search with OAuth2 and rate limiting."""

import asyncio
import hashlib
import logging
import random
from datetime import date, datetime, timedelta, timezone

import httpx
from pydantic import ValidationError

from app.config import settings
from app.schemas.flight import FlightEndpoint, FlightOffer, FlightPrice, FlightSegment
from app.schemas.search import FlightSearchMeta, FlightSearchResponse

logger = logging.getLogger(__name__)

CABIN_CLASSES = ("ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST")

# Airline name lookup (common ones), used for demo-mode carrier dictionaries
AIRLINE_NAMES = {
    "AC": "Air Canada", "WS": "WestJet", "AA": "American Airlines",
    "DL": "Delta Air Lines", "UA": "United Airlines", "B6": "JetBlue Airways",
    "NK": "Spirit Airlines", "BA": "British Airways",
    "LH": "Lufthansa", "AF": "Air France", "KL": "KLM",
    "LX": "Swiss", "EK": "Emirates", "QR": "Qatar Airways",
    "SQ": "Singapore Airlines", "CX": "Cathay Pacific",
    "NH": "ANA", "JL": "Japan Airlines", "AS": "Alaska Airlines",
    "WN": "Southwest Airlines", "VS": "Virgin Atlantic", "IB": "Iberia",
}

MOCK_HUBS = ["ORD", "DFW", "ATL", "DEN", "LAX", "JFK", "EWR", "YYZ", "LHR", "FRA"]


class FlightSearchError(Exception):
    """The flight search provider failed or could not be reached."""


class AmadeusClient:
    """Adapter for the Amadeus Self-Service flight-offer search.

    Without credentials the client runs in demo mode and builds
    deterministic offers in Amadeus response shape, so both modes share the
    same normalization path.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client_id = settings.amadeus_client_id if client_id is None else client_id
        self._client_secret = (
            settings.amadeus_client_secret if client_secret is None else client_secret
        )
        self._base_url = base_url or settings.amadeus_base_url
        self._transport = transport
        self._token: str | None = None
        self._token_expires: datetime | None = None
        self._semaphore = asyncio.Semaphore(10)  # 10 req/s rate limit
        self._client: httpx.AsyncClient | None = None
        self._use_mock = not self._client_id

    @property
    def demo_mode(self) -> bool:
        return self._use_mock

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=settings.amadeus_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def _ensure_token(self):
        """Get or refresh OAuth2 token."""
        if self._token and self._token_expires and datetime.now(timezone.utc) < self._token_expires:
            return

        client = await self._get_client()
        for attempt in range(3):
            try:
                resp = await client.post(
                    "/v1/security/oauth2/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
                resp.raise_for_status()
                data = resp.json()
                self._token = data["access_token"]
                self._token_expires = datetime.now(timezone.utc) + timedelta(
                    seconds=data.get("expires_in", 1799) - 60
                )
                logger.info("Amadeus token refreshed")
                return
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                logger.error(f"Amadeus auth error: {e.response.status_code} {e.response.text}")
                raise FlightSearchError("Failed to authenticate with Amadeus") from e
            except httpx.RequestError as e:
                if attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                logger.error(f"Amadeus auth request error: {e}")
                raise FlightSearchError("Failed to authenticate with Amadeus") from e
            except (ValueError, KeyError, TypeError) as e:
                logger.error(f"Amadeus auth returned an unreadable token payload: {e}")
                raise FlightSearchError("Failed to authenticate with Amadeus") from e

    async def search_flight_offers(
        self,
        origin: str,
        destination: str,
        departure_date: date,
        return_date: date | None = None,
        adults: int = 1,
        cabin_class: str | None = None,
    ) -> FlightSearchResponse:
        """Search flight offers and normalize them for the filter engine.

        Raises FlightSearchError when Amadeus fails.
        """
        origin = origin.upper()
        destination = destination.upper()
        logger.info(
            f"Searching flights {origin}->{destination} on {departure_date}"
            f" return={return_date} adults={adults}"
        )

        if self._use_mock:
            data = self._generate_mock_response(
                origin, destination, departure_date, return_date, cabin_class
            )
            return self._build_response(data)

        params = {
            "originLocationCode": origin,
            "destinationLocationCode": destination,
            "departureDate": departure_date.isoformat(),
            "adults": adults or 1,
            "max": settings.amadeus_max_results,
            "currencyCode": settings.amadeus_currency,
        }
        if return_date:
            params["returnDate"] = return_date.isoformat()
        if cabin_class:
            params["travelClass"] = cabin_class.upper()

        async with self._semaphore:
            await self._ensure_token()
            data = await self._fetch_offers(params)
        return self._build_response(data)

    async def _fetch_offers(self, params: dict) -> dict:
        client = await self._get_client()
        for attempt in range(3):
            try:
                resp = await client.get(
                    "/v2/shopping/flight-offers",
                    params=params,
                    headers={"Authorization": f"Bearer {self._token}"},
                )
                if resp.status_code == 429 and attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                resp.raise_for_status()
                data = resp.json()
                if not isinstance(data, dict):
                    raise ValueError(f"expected a JSON object, got {type(data).__name__}")
                return data
            except ValueError as e:
                logger.error(f"Amadeus search returned an unreadable body: {e}")
                raise FlightSearchError("Flight search returned an invalid response") from e
            except httpx.HTTPStatusError as e:
                logger.error(f"Amadeus search error: {e.response.status_code} {e.response.text}")
                raise FlightSearchError(f"Flight search failed: {e.response.status_code}") from e
            except httpx.RequestError as e:
                if attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                logger.error(f"Amadeus request error: {e}")
                raise FlightSearchError("Flight search provider unreachable") from e
        raise FlightSearchError("Flight search failed")

    def _build_response(self, data: dict) -> FlightSearchResponse:
        flights = []
        for raw in data.get("data") or []:
            try:
                flights.append(self.parse_offer(raw))
            except (KeyError, IndexError, TypeError, ValueError, ValidationError) as e:
                logger.warning(f"Skipping malformed Amadeus offer: {e}")

        logger.info(f"Found {len(flights)} flight offers")
        carriers = (data.get("dictionaries") or {}).get("carriers") or {}
        return FlightSearchResponse(
            flights=flights,
            carriers=carriers,
            meta=FlightSearchMeta(count=len(flights), currency=settings.amadeus_currency),
        )

    @staticmethod
    def parse_offer(offer: dict) -> FlightOffer:
        """Parse one Amadeus offer JSON into a FlightOffer.

        The first itinerary is the outbound leg, the second (if any) the
        return leg. Cabin and booking class come from the first fare detail
        of the first traveler.
        """
        itineraries = offer["itineraries"]
        outbound = AmadeusClient._parse_itinerary(itineraries[0])
        return_segment = (
            AmadeusClient._parse_itinerary(itineraries[1]) if len(itineraries) > 1 else None
        )

        fare = {}
        traveler_pricings = offer.get("travelerPricings") or []
        if traveler_pricings:
            fare_details = traveler_pricings[0].get("fareDetailsBySegment") or []
            if fare_details:
                fare = fare_details[0]

        return FlightOffer(
            id=str(offer["id"]),
            price=FlightPrice(
                total=float(offer["price"]["total"]),
                currency=offer["price"].get("currency", settings.amadeus_currency),
            ),
            outbound=outbound,
            return_segment=return_segment,
            cabin_class=fare.get("cabin") or "ECONOMY",
            booking_class=fare.get("class"),
            seats_available=offer.get("numberOfBookableSeats"),
        )

    @staticmethod
    def _parse_itinerary(itinerary: dict) -> FlightSegment:
        segments = itinerary["segments"]
        first_seg = segments[0]
        last_seg = segments[-1]
        return FlightSegment(
            departure=FlightEndpoint(
                airport=first_seg["departure"]["iataCode"],
                time=first_seg["departure"]["at"],
            ),
            arrival=FlightEndpoint(
                airport=last_seg["arrival"]["iataCode"],
                time=last_seg["arrival"]["at"],
            ),
            duration=itinerary.get("duration", ""),
            stops=len(segments) - 1,
            carrier=first_seg["carrierCode"],
            flight_number=f"{first_seg['carrierCode']}{first_seg['number']}",
        )

    # --- Mock data generation for demo mode ---

    def _generate_mock_response(
        self,
        origin: str,
        destination: str,
        departure_date: date,
        return_date: date | None,
        cabin_class: str | None,
    ) -> dict:
        """Generate a realistic Amadeus-shaped response for demo/development."""
        cabin = (cabin_class or "ECONOMY").upper()
        if cabin not in CABIN_CLASSES:
            cabin = "ECONOMY"

        # Deterministic seed based on route+dates+cabin for consistency
        seed_str = f"{origin}{destination}{departure_date.isoformat()}{return_date}{cabin}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        base_price = self._estimate_base_price(origin, destination, cabin)
        if return_date:
            base_price *= 1.8
        airlines = self._get_route_airlines(origin, destination)

        offers = []
        for i in range(rng.randint(5, max(5, settings.amadeus_max_results))):
            airline = rng.choice(airlines)
            itineraries = [self._mock_itinerary(rng, origin, destination, departure_date, airline)]
            if return_date:
                itineraries.append(
                    self._mock_itinerary(rng, destination, origin, return_date, airline)
                )
            price = round(base_price * rng.uniform(0.8, 1.8), 2)
            offer = {
                "id": str(i + 1),
                "price": {"total": f"{price:.2f}", "currency": settings.amadeus_currency},
                "itineraries": itineraries,
                "travelerPricings": [
                    {"fareDetailsBySegment": [{"cabin": cabin, "class": rng.choice("YBMHQ")}]}
                ],
            }
            if rng.random() < 0.3:
                offer["numberOfBookableSeats"] = rng.randint(1, 9)
            offers.append(offer)

        offers.sort(key=lambda o: float(o["price"]["total"]))
        used = {o["itineraries"][0]["segments"][0]["carrierCode"] for o in offers}
        return {
            "data": offers,
            "dictionaries": {"carriers": {code: AIRLINE_NAMES.get(code, code) for code in used}},
        }

    def _mock_itinerary(
        self,
        rng: random.Random,
        origin: str,
        destination: str,
        day: date,
        airline: str,
    ) -> dict:
        # Departure between 6:00 and 21:00, local airport time
        dep_time = datetime(day.year, day.month, day.day, rng.randint(6, 21), rng.choice([0, 15, 30, 45]))
        stops = rng.choices([0, 1, 2], weights=[60, 30, 10])[0]
        duration = self._estimate_duration(origin, destination) + stops * rng.randint(45, 90)

        hubs = [h for h in MOCK_HUBS if h not in (origin, destination)]
        points = [origin, *rng.sample(hubs, stops), destination]
        leg_minutes = duration // (stops + 1)

        segments = []
        leg_start = dep_time
        for i in range(stops + 1):
            minutes = duration if i == stops else leg_minutes * (i + 1)
            leg_end = dep_time + timedelta(minutes=minutes)
            segments.append({
                "departure": {"iataCode": points[i], "at": leg_start.isoformat()},
                "arrival": {"iataCode": points[i + 1], "at": leg_end.isoformat()},
                "carrierCode": airline,
                "number": str(rng.randint(100, 9999)),
            })
            leg_start = leg_end

        return {"duration": f"PT{duration // 60}H{duration % 60}M", "segments": segments}

    @staticmethod
    def _estimate_base_price(origin: str, destination: str, cabin_class: str) -> float:
        """Rough base price estimate by route characteristics."""
        route_key = f"{origin}-{destination}"
        if any(a in route_key for a in ["LHR", "CDG", "ORY", "FRA", "AMS"]):
            base = 850  # Transatlantic
        elif any(a in route_key for a in ["NRT", "HND", "SIN", "HKG"]):
            base = 1200  # Transpacific
        else:
            base = 380

        cabin_multiplier = {
            "ECONOMY": 1.0, "PREMIUM_ECONOMY": 1.8,
            "BUSINESS": 3.5, "FIRST": 6.0,
        }.get(cabin_class, 1.0)

        return base * cabin_multiplier

    @staticmethod
    def _estimate_duration(origin: str, destination: str) -> int:
        """Rough flight duration in minutes."""
        route_key = f"{origin}-{destination}"
        if any(a in route_key for a in ["LHR", "CDG", "ORY", "FRA", "AMS"]):
            return 420  # 7h transatlantic
        if any(a in route_key for a in ["NRT", "HND", "SIN", "HKG"]):
            return 780  # 13h transpacific
        return 180  # Default ~3h

    @staticmethod
    def _get_route_airlines(origin: str, destination: str) -> list[str]:
        """Return plausible airlines for a route."""
        european = {"LHR", "LGW", "CDG", "ORY", "AMS", "FRA", "MUC", "ZRH", "MAD", "FCO"}
        middle_east = {"DXB", "DOH", "AUH"}
        asia_pacific = {"NRT", "HND", "SIN", "HKG"}
        route = {origin, destination}

        if route & european:
            return ["BA", "LH", "AF", "KL", "LX", "VS", "AA", "DL", "UA"]
        if route & middle_east:
            return ["EK", "QR", "BA", "LH"]
        if route & asia_pacific:
            return ["NH", "JL", "CX", "SQ", "UA"]
        return ["AA", "DL", "UA", "B6", "AS", "WN"]

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


amadeus_client = AmadeusClient()
