from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, List

import requests

from .journey_search import BASE_HEADERS, JourneySearch, ProviderError
from .models import Journey, Station

logger = logging.getLogger(__name__)


class SncfFetcher(JourneySearch):
    """Client of the SNCF Connect itinerary search."""

    name = "sncf"

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://www.sncf-connect.com",
        api_url: str = "https://www.sncf-connect.com/bff/api/v1/itineraries",
        **kwargs: Any,
    ) -> None:
        super().__init__(base_url, api_url, **kwargs)
        self.api_key = api_key

    # ──────────────────────────────────────────────────────────

    def fetch_page(
        self,
        origin: Station,
        destination: Station,
        departure_min: datetime,
        card_number: str,
    ) -> List[Journey]:
        headers = dict(BASE_HEADERS)
        headers["x-bff-key"] = self.api_key
        headers["Cookie"] = self.session_cookies()

        resp = requests.post(
            self.api_url,
            json=self._payload(origin, destination, departure_min, card_number),
            headers=headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        try:
            proposals = data["longDistance"]["proposals"]["proposals"]
        except (KeyError, TypeError):
            raise ProviderError("Missing longDistance proposals in SNCF answer")
        if isinstance(proposals, dict):
            proposals = list(proposals.values())

        journeys = [self._to_journey(item) for item in proposals]
        logger.debug(
            "SNCF page from %s: %d journeys", departure_min.isoformat(), len(journeys)
        )
        return journeys

    def _payload(
        self,
        origin: Station,
        destination: Station,
        departure_min: datetime,
        card_number: str,
    ) -> dict:
        outward = departure_min.replace(tzinfo=None).isoformat(timespec="seconds")
        return {
            "schedule": {"outward": {"date": f"{outward}.000Z"}},
            "mainJourney": {
                "origin": {"label": origin.name, "id": origin.sncf_id},
                "destination": {"label": destination.name, "id": destination.sncf_id},
            },
            "passengers": [
                {
                    "discountCards": [
                        {"code": "HAPPY_CARD", "number": card_number, "label": "MAX JEUNE"}
                    ],
                    "typology": "YOUNG",
                    "withoutSeatAssignment": False,
                    "dateOfBirth": self.passenger_birth_date,
                }
            ],
            "itineraryId": str(uuid.uuid4()),
            "forceDisplayResults": True,
            "trainExpected": True,
            "strictMode": False,
            "directJourney": False,
        }

    def _to_journey(self, item: dict) -> Journey:
        travel_id = item.get("travelId") if isinstance(item, dict) else None
        if not isinstance(travel_id, str):
            raise ProviderError("SNCF proposal without travelId")
        departure = self.parse_departure(travel_id.split("_")[0])
        bookable = bool((item.get("status") or {}).get("isBookable"))
        return Journey(
            departure=departure,
            price=parse_price_label(item.get("bestPriceLabel")),
            bookable=bookable,
        )


def parse_price_label(label: str | None) -> float:
    """Turn a label such as ``"0 €"`` or ``"12,50 €"`` into a float.

    Missing or unreadable labels count as not free.
    """
    if not label:
        return float("inf")
    cleaned = label.replace("€", "").replace("\u00a0", " ").strip().replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        return float("inf")


__all__ = ["SncfFetcher", "parse_price_label"]
