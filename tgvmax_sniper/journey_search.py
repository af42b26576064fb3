"""Paginated journey search shared by the provider fetchers.

Backends only return a bounded page of upcoming departures.  A search keeps
a cursor on the departure time: each page is requested for departures at or
after the cursor, and the cursor then moves to the last departure of that
page.  The loop ends once the page reaches the end of the window, or when a
page does not move the cursor forward.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, tzinfo
from typing import List
from zoneinfo import ZoneInfo

import requests

from .models import Availability, Journey, Station, TimeWindow

logger = logging.getLogger(__name__)

BASE_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "fr-FR,fr;q=0.9,en;q=0.8",
    "Content-Type": "application/json",
}


class ProviderError(RuntimeError):
    """Unexpected answer from a booking backend."""


class JourneySearch(ABC):
    """Base class of a booking backend client."""

    name = "provider"

    def __init__(
        self,
        base_url: str,
        api_url: str,
        *,
        timeout: float = 15.0,
        tz: tzinfo | str = "Europe/Paris",
        passenger_birth_date: str = "1996-08-27",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_url = api_url
        self.timeout = timeout
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz
        self.passenger_birth_date = passenger_birth_date

    # ──────────────────────────────────────────────────────────

    def check_availability(
        self,
        origin: Station,
        destination: Station,
        window: TimeWindow,
        card_number: str,
    ) -> Availability:
        """Return the free departures of *window* for the route."""
        logger.info(
            "Using %s provider for %s ➔ %s", self.name, origin.name, destination.name
        )
        hours = self.search_free_hours(origin, destination, window, card_number)
        return Availability.from_hours(hours)

    def search_free_hours(
        self,
        origin: Station,
        destination: Station,
        window: TimeWindow,
        card_number: str,
    ) -> List[str]:
        """Page through the backend and return free departure times (HH:MM).

        Network and parse failures stop the paging; whatever was collected
        up to that point is still filtered and returned.
        """
        departure_min = self.localize(window.from_time)
        departure_max = self.localize(window.to_time)
        results: List[Journey] = []

        try:
            while True:
                page = self.fetch_page(origin, destination, departure_min, card_number)
                results.extend(j for j in page if j.bookable)
                if not page:
                    logger.info("%s returned an empty page", self.name)
                    break

                page_last = self.localize(page[-1].departure)
                if departure_max <= page_last:
                    break
                if page_last <= departure_min:
                    logger.info(
                        "%s made no progress past %s, stopping",
                        self.name,
                        departure_min.isoformat(),
                    )
                    break
                departure_min = page_last
        except (
            requests.RequestException,
            ProviderError,
            AttributeError,
            IndexError,
            KeyError,
            TypeError,
            ValueError,
        ) as exc:
            self._log_failure(exc)

        return [
            self.localize(j.departure).strftime("%H:%M")
            for j in results
            if j.price == 0 and self.localize(j.departure) <= departure_max
        ]

    @abstractmethod
    def fetch_page(
        self,
        origin: Station,
        destination: Station,
        departure_min: datetime,
        card_number: str,
    ) -> List[Journey]:
        """Return one page of journeys departing at or after *departure_min*.

        Journeys are in departure order; non-bookable ones are included
        with ``bookable=False`` so that the cursor can still advance.
        """

    # ──────────────────────────────────────────────────────────

    def localize(self, value: datetime) -> datetime:
        """Return *value* in the provider timezone (naive means local)."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def parse_departure(self, raw: str) -> datetime:
        return self.localize(datetime.fromisoformat(raw))

    def session_cookies(self) -> str:
        """Open a fresh session on the backend home page.

        Returns the ``Cookie`` header value built from the ``Set-Cookie``
        answers.
        """
        resp = requests.get(self.base_url, headers=BASE_HEADERS, timeout=self.timeout)
        return ";".join(f"{k}={v}" for k, v in resp.cookies.items())

    def _log_failure(self, exc: Exception) -> None:
        response = getattr(exc, "response", None)
        status = ""
        status_text = ""
        label = ""
        if response is not None:
            status = response.status_code
            status_text = response.reason or ""
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                label = body.get("label", "")
        else:
            status_text = str(exc)
        logger.warning(
            "%s API ERROR : %s %s %s", self.name.upper(), status, status_text, label
        )


__all__ = ["BASE_HEADERS", "JourneySearch", "ProviderError"]
