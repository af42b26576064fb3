"""tasks.py: APScheduler wiring.

• every Settings.poll_schedule (cron): ``AlertScheduler.tick``
Builds the providers, the failover policy and the scheduler from settings.
"""

from __future__ import annotations

from functools import partial
from typing import List

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import Settings
from .db import DB_FILE
from .failover import FailoverPolicy
from .journey_search import JourneySearch
from .mailer import send_alert_email
from .scheduler import AlertScheduler
from .sncf_fetcher import SncfFetcher
from .trainline_fetcher import TrainlineFetcher


def build_providers(cfg: Settings) -> List[JourneySearch]:
    """Instantiate the providers named in ``cfg.providers``, in that order."""
    common = dict(
        timeout=cfg.request_timeout_s,
        tz=cfg.tz,
        passenger_birth_date=cfg.passenger_birth_date,
    )
    factories = {
        "sncf": lambda: SncfFetcher(
            cfg.sncf_api_key,
            base_url=cfg.sncf_base_url,
            api_url=cfg.sncf_api_url,
            **common,
        ),
        "trainline": lambda: TrainlineFetcher(
            cfg.trainline_card_id,
            cfg.trainline_card_type_id,
            base_url=cfg.trainline_base_url,
            api_url=cfg.trainline_api_url,
            version=cfg.trainline_version,
            **common,
        ),
    }
    return [factories[name]() for name in cfg.providers]


def build_alert_scheduler(cfg: Settings, db_path: str = DB_FILE) -> AlertScheduler:
    notify = partial(
        send_alert_email,
        smtp_host=cfg.smtp_host,
        smtp_user=cfg.smtp_user,
        smtp_pass=cfg.smtp_pass,
        from_addr=cfg.email_from,
        port=cfg.smtp_port,
        use_tls=cfg.smtp_use_tls,
    )
    return AlertScheduler(
        FailoverPolicy(build_providers(cfg)),
        notify,
        db_path=db_path,
        lookahead_days=cfg.lookahead_days,
        delay_s=cfg.poll_delay_s,
        enabled=not cfg.disable_polling,
        tz=cfg.tz,
    )


def build_scheduler(cfg: Settings, alert_scheduler: AlertScheduler) -> BlockingScheduler:
    """Schedule ``alert_scheduler.tick``; ticks never overlap."""
    sched = BlockingScheduler(timezone=cfg.tz)
    sched.add_job(
        alert_scheduler.tick,
        CronTrigger.from_crontab(cfg.poll_schedule, timezone=cfg.tz),
        id="alert_tick",
        max_instances=1,
        coalesce=True,
    )
    return sched


__all__ = ["build_providers", "build_alert_scheduler", "build_scheduler"]
