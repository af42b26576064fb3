from datetime import datetime
from zoneinfo import ZoneInfo

from tgvmax_sniper.journey_search import JourneySearch
from tgvmax_sniper.models import Journey

PARIS = ZoneInfo("Europe/Paris")


def paris(day: int, hour: int, minute: int = 0, month: int = 6) -> datetime:
    return datetime(2024, month, day, hour, minute, tzinfo=PARIS)


def free(day, hour, minute=0):
    return Journey(departure=paris(day, hour, minute), price=0.0)


def priced(day, hour, minute=0, price=25.0):
    return Journey(departure=paris(day, hour, minute), price=price)


class TimelineSearch(JourneySearch):
    """Backend stub serving pages of *page_size* journeys from a timeline."""

    name = "timeline"

    def __init__(self, timeline, page_size=3):
        super().__init__("https://stub.example", "https://stub.example/api")
        self.timeline = sorted(timeline, key=lambda j: j.departure)
        self.page_size = page_size
        self.cursors = []

    def fetch_page(self, origin, destination, departure_min, card_number):
        self.cursors.append(departure_min)
        upcoming = [j for j in self.timeline if j.departure >= departure_min]
        return upcoming[: self.page_size]


class ScriptedSearch(JourneySearch):
    """Backend stub returning (or raising) the given pages in order."""

    name = "stub"

    def __init__(self, pages):
        super().__init__("https://stub.example", "https://stub.example/api")
        self.pages = list(pages)
        self.cursors = []

    def fetch_page(self, origin, destination, departure_min, card_number):
        self.cursors.append(departure_min)
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page
