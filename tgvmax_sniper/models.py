"""Data models used throughout the project."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

PENDING = "pending"
TRIGGERED = "triggered"


@dataclass(slots=True, frozen=True)
class Station:
    name: str
    sncf_id: str
    trainline_id: str


@dataclass(slots=True, frozen=True)
class TimeWindow:
    from_time: datetime
    to_time: datetime

    def __post_init__(self) -> None:
        if self.from_time >= self.to_time:
            raise ValueError(
                f"from_time {self.from_time} must be before to_time {self.to_time}"
            )


@dataclass(slots=True)
class Journey:
    departure: datetime
    price: float
    bookable: bool = True


@dataclass(slots=True)
class Availability:
    is_available: bool
    hours: List[str] = field(default_factory=list)

    @classmethod
    def from_hours(cls, hours: Iterable[str]) -> "Availability":
        """Deduplicate *hours* keeping the first occurrence of each."""
        unique = list(dict.fromkeys(hours))
        return cls(is_available=bool(unique), hours=unique)

    @classmethod
    def empty(cls) -> "Availability":
        return cls(is_available=False, hours=[])


@dataclass(slots=True)
class User:
    id: int
    email: str
    card_number: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        return cls(
            id=row["id"],
            email=row["email"],
            card_number=row["card_number"],
            created_at=_parse_dt(row.get("created_at")),
        )


@dataclass(slots=True)
class TravelAlert:
    id: int
    user_id: int
    origin: Station
    destination: Station
    window: TimeWindow
    card_number: str
    status: str = PENDING
    last_check: Optional[datetime] = None
    triggered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TravelAlert":
        """Build an alert from a flat ``alerts`` table record."""
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            origin=Station(
                name=row["origin_name"],
                sncf_id=row["origin_sncf_id"],
                trainline_id=row["origin_trainline_id"],
            ),
            destination=Station(
                name=row["destination_name"],
                sncf_id=row["destination_sncf_id"],
                trainline_id=row["destination_trainline_id"],
            ),
            window=TimeWindow(
                from_time=datetime.fromisoformat(row["from_time"]),
                to_time=datetime.fromisoformat(row["to_time"]),
            ),
            card_number=row["card_number"],
            status=row["status"],
            last_check=_parse_dt(row.get("last_check")),
            triggered_at=_parse_dt(row.get("triggered_at")),
            created_at=_parse_dt(row.get("created_at")),
        )


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


__all__ = [
    "PENDING",
    "TRIGGERED",
    "Station",
    "TimeWindow",
    "Journey",
    "Availability",
    "User",
    "TravelAlert",
]
