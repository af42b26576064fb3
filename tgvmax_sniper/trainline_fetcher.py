from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping

import requests

from .journey_search import BASE_HEADERS, JourneySearch, ProviderError
from .models import Journey, Station

logger = logging.getLogger(__name__)


class TrainlineFetcher(JourneySearch):
    """Client of the Trainline journey-search API."""

    name = "trainline"

    def __init__(
        self,
        card_id: str = "",
        card_type_id: str = "",
        base_url: str = "https://www.thetrainline.com",
        api_url: str = "https://www.thetrainline.com/api/journey-search/",
        *,
        version: str = "4.6.22225",
        **kwargs: Any,
    ) -> None:
        super().__init__(base_url, api_url, **kwargs)
        self.card_id = card_id
        self.card_type_id = card_type_id
        self.version = version

    # ──────────────────────────────────────────────────────────

    def fetch_page(
        self,
        origin: Station,
        destination: Station,
        departure_min: datetime,
        card_number: str,
    ) -> List[Journey]:
        headers = dict(BASE_HEADERS)
        headers["Cookie"] = self.session_cookies()
        headers["x-version"] = self.version
        headers["origin"] = self.base_url

        resp = requests.post(
            self.api_url,
            json=self._payload(origin, destination, departure_min, card_number),
            headers=headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()

        try:
            search = data["data"]["journeySearch"]
        except (KeyError, TypeError):
            raise ProviderError("Missing journeySearch in Trainline answer")
        if not isinstance(search, dict):
            raise ProviderError("Malformed journeySearch in Trainline answer")

        sections = _by_id(search.get("sections", {}))
        alternatives = _by_id(search.get("alternatives", {}))
        journeys: List[Journey] = []
        for raw in _values(search.get("journeys", {})):
            section_ids = raw.get("sections") or []
            if not section_ids:
                continue
            journeys.append(
                Journey(
                    departure=self.parse_departure(raw["departAt"]),
                    price=journey_price(section_ids, sections, alternatives),
                )
            )
        logger.debug(
            "Trainline page from %s: %d journeys",
            departure_min.isoformat(),
            len(journeys),
        )
        return journeys

    def _payload(
        self,
        origin: Station,
        destination: Station,
        departure_min: datetime,
        card_number: str,
    ) -> dict:
        return {
            "passengers": [
                {
                    "id": str(uuid.uuid4()),
                    "dateOfBirth": self.passenger_birth_date,
                    "cardIds": [self.card_id],
                }
            ],
            "isEurope": True,
            "cards": [
                {
                    "id": self.card_id,
                    "cardTypeId": self.card_type_id,
                    "number": card_number,
                    "uuid": self.card_id,
                }
            ],
            "transitDefinitions": [
                {
                    "direction": "outward",
                    "origin": origin.trainline_id,
                    "destination": destination.trainline_id,
                    "journeyDate": {
                        "type": "departAfter",
                        "time": departure_min.replace(tzinfo=None).isoformat(
                            timespec="seconds"
                        ),
                    },
                }
            ],
            "type": "single",
            "maximumJourneys": 5,
            "includeRealtime": True,
            "transportModes": ["mixed"],
            "directSearch": False,
            "composition": ["through"],
        }


def journey_price(
    section_ids: List[str],
    sections: Mapping[str, dict],
    alternatives: Mapping[str, dict],
) -> float:
    """Sum over the sections of the cheapest alternative of each one.

    A section without any priced alternative costs ``inf``; an unknown
    section id is ignored.
    """
    total = 0.0
    for section_id in section_ids:
        section = sections.get(section_id)
        if section is None:
            continue
        prices = [
            alternatives[alt_id]["price"]["amount"]
            if alt_id in alternatives
            else float("inf")
            for alt_id in section.get("alternatives") or []
        ]
        total += min(prices, default=float("inf"))
    return total


def _values(items: Any) -> List[dict]:
    return list(items.values()) if isinstance(items, dict) else list(items)


def _by_id(items: Any) -> Dict[str, dict]:
    return {item["id"]: item for item in _values(items)}


__all__ = ["TrainlineFetcher", "journey_price"]
