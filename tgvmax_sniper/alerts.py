from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

from .db import DB_FILE, delete_one, find_many, insert_one, replace_all
from .models import PENDING, Station, TimeWindow, TravelAlert, User

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """Referenced record does not exist."""


# ────────────────────────────────────────────────────────────────
# Users
# ────────────────────────────────────────────────────────────────


def add_user(email: str, card_number: str, db_path: str = DB_FILE) -> int:
    """Register a user with its discount card number; return its id."""
    logger.info("Adding user %s", email)
    return insert_one(
        "users",
        {
            "email": email,
            "card_number": card_number,
            "created_at": datetime.now(timezone.utc),
        },
        db_path=db_path,
    )


def get_user(user_id: int, db_path: str = DB_FILE) -> User:
    rows = find_many("users", {"id": user_id}, db_path=db_path)
    if not rows:
        raise NotFoundError(f"user {user_id} not found")
    return User.from_row(rows[0])


# ────────────────────────────────────────────────────────────────
# Travel alerts
# ────────────────────────────────────────────────────────────────


def add_travel_alert(
    user_id: int,
    origin: Station,
    destination: Station,
    window: TimeWindow,
    db_path: str = DB_FILE,
) -> int:
    """Store a pending alert for *user_id* and return its id.

    The user must exist (raises :class:`NotFoundError`); its discount card
    number is copied onto the alert.
    """
    user = get_user(user_id, db_path=db_path)
    now = datetime.now(timezone.utc)
    logger.info(
        "Adding alert %s ➔ %s for user %s", origin.name, destination.name, user_id
    )
    return insert_one(
        "alerts",
        {
            "user_id": user.id,
            "card_number": user.card_number,
            "origin_name": origin.name,
            "origin_sncf_id": origin.sncf_id,
            "origin_trainline_id": origin.trainline_id,
            "destination_name": destination.name,
            "destination_sncf_id": destination.sncf_id,
            "destination_trainline_id": destination.trainline_id,
            "from_time": window.from_time,
            "to_time": window.to_time,
            "status": PENDING,
            "last_check": now,
            "created_at": now,
        },
        db_path=db_path,
    )


def get_travel_alert(
    user_id: int, alert_id: int, db_path: str = DB_FILE
) -> Optional[TravelAlert]:
    """Return alert *alert_id* if it belongs to *user_id*."""
    rows = find_many("alerts", {"id": alert_id, "user_id": user_id}, db_path=db_path)
    return TravelAlert.from_row(rows[0]) if rows else None


def list_travel_alerts(user_id: int, db_path: str = DB_FILE) -> List[TravelAlert]:
    rows = find_many("alerts", {"user_id": user_id}, db_path=db_path)
    return [TravelAlert.from_row(row) for row in rows]


def delete_travel_alert(user_id: int, alert_id: int, db_path: str = DB_FILE) -> int:
    """Delete alert *alert_id* of *user_id*; return number of deleted rows."""
    logger.info("Deleting alert %s of user %s", alert_id, user_id)
    return delete_one("alerts", {"id": alert_id, "user_id": user_id}, db_path=db_path)


# ────────────────────────────────────────────────────────────────
# Stations
# ────────────────────────────────────────────────────────────────


def load_stations(path: str, db_path: str = DB_FILE) -> int:
    """Replace the ``stations`` table with the content of JSON file *path*.

    The file holds a list of ``{"name", "sncfId", "trainlineId"}`` objects.
    """
    with open(path, "r", encoding="utf-8") as fh:
        raw = json.load(fh)

    records = [
        {
            "name": item["name"],
            "sncf_id": item["sncfId"],
            "trainline_id": item["trainlineId"],
        }
        for item in raw
    ]
    count = replace_all("stations", records, db_path=db_path)
    logger.info("Loaded %d stations from %s", count, path)
    return count


def find_station(name: str, db_path: str = DB_FILE) -> Station:
    rows = find_many("stations", {"name": name}, db_path=db_path)
    if not rows:
        raise NotFoundError(f"station {name!r} not found")
    row = rows[0]
    return Station(name=row["name"], sncf_id=row["sncf_id"], trainline_id=row["trainline_id"])


__all__ = [
    "NotFoundError",
    "add_user",
    "get_user",
    "add_travel_alert",
    "get_travel_alert",
    "list_travel_alerts",
    "delete_travel_alert",
    "load_stations",
    "find_station",
]
