from __future__ import annotations

import logging
from typing import Sequence

from .journey_search import JourneySearch
from .models import Availability, Station, TimeWindow

logger = logging.getLogger(__name__)


class FailoverPolicy:
    """Ask each provider in turn until one of them finds a free seat."""

    def __init__(self, providers: Sequence[JourneySearch]) -> None:
        if not providers:
            raise ValueError("At least one provider is required")
        self.providers = list(providers)

    def check(
        self,
        origin: Station,
        destination: Station,
        window: TimeWindow,
        card_number: str,
    ) -> Availability:
        for provider in self.providers:
            availability = provider.check_availability(
                origin, destination, window, card_number
            )
            if availability.is_available:
                logger.info(
                    "%s found %d free departures", provider.name, len(availability.hours)
                )
                return availability
            logger.debug("%s found nothing, trying next provider", provider.name)
        return Availability.empty()


__all__ = ["FailoverPolicy"]
