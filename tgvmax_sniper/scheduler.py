"""Periodic check of pending travel alerts.

On each tick:
1. fetch alerts with status ``pending`` departing within the look-ahead range
2. for each alert, ask the providers (in order) for a free TGVmax seat
3. if found, e-mail the owner and mark the alert ``triggered``;
   otherwise only record ``last_check``
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, time as dt_time, timedelta, timezone, tzinfo
from typing import Callable, List, Optional

from .alerts import get_user
from .db import DB_FILE, find_many, update_one
from .failover import FailoverPolicy
from .models import PENDING, TRIGGERED, Availability, TravelAlert

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str, str, datetime, List[str]], None]


class AlertScheduler:
    def __init__(
        self,
        failover: FailoverPolicy,
        notify: Notifier,
        *,
        db_path: str = DB_FILE,
        lookahead_days: int = 30,
        delay_s: float = 5.0,
        enabled: bool = True,
        tz: tzinfo = timezone.utc,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.failover = failover
        self.notify = notify
        self.db_path = db_path
        self.lookahead_days = lookahead_days
        self.delay_s = delay_s
        self.enabled = enabled
        self.tz = tz
        self.sleep = sleep
        self._lock = threading.Lock()

    # ──────────────────────────────────────────────────────────

    def tick(self, now: Optional[datetime] = None) -> int:
        """Run one polling pass; return the number of alerts processed."""
        if not self._lock.acquire(blocking=False):
            logger.warning("Previous tick still running, skipping")
            return 0
        try:
            return self._run(now or datetime.now(timezone.utc))
        finally:
            self._lock.release()

    def _run(self, now: datetime) -> int:
        if not self.enabled:
            logger.info("Polling disabled, skipping tick")
            return 0

        alerts = self.fetch_due_alerts(now)
        if not alerts:
            return 0

        logger.info("Processing %d travel alerts", len(alerts))
        for alert in alerts:
            try:
                self.process_alert(alert, now)
            except Exception:
                logger.exception("Failed to process travel alert %s", alert.id)
            finally:
                self.sleep(self.delay_s)
        return len(alerts)

    def fetch_due_alerts(self, now: datetime) -> List[TravelAlert]:
        """Return pending alerts starting after *now* and before the end of
        the last day of the look-ahead range."""
        last_day = (now.astimezone(self.tz) + timedelta(days=self.lookahead_days)).date()
        horizon = datetime.combine(last_day, dt_time.max, tzinfo=self.tz)
        rows = find_many(
            "alerts",
            {
                "status": PENDING,
                "from_time": {">": now, "<": horizon},
                "to_time": {">": now},
            },
            db_path=self.db_path,
        )
        alerts: List[TravelAlert] = []
        for row in rows:
            try:
                alerts.append(TravelAlert.from_row(row))
            except (KeyError, TypeError, ValueError):
                logger.exception("Skipping malformed travel alert %s", row.get("id"))
        return alerts

    def process_alert(self, alert: TravelAlert, now: datetime) -> Availability:
        availability = self.failover.check(
            alert.origin, alert.destination, alert.window, alert.card_number
        )

        if availability.is_available:
            logger.info("Travel alert %s triggered", alert.id)
            user = get_user(alert.user_id, db_path=self.db_path)
            self.notify(
                user.email,
                alert.origin.name,
                alert.destination.name,
                alert.window.from_time.astimezone(self.tz),
                availability.hours,
            )
            update_one(
                "alerts",
                {"id": alert.id, "status": PENDING},
                {"status": TRIGGERED, "triggered_at": now},
                db_path=self.db_path,
            )
        else:
            update_one(
                "alerts", {"id": alert.id}, {"last_check": now}, db_path=self.db_path
            )
        return availability


__all__ = ["AlertScheduler", "Notifier"]
