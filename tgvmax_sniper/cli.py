from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import click

from .alerts import (
    NotFoundError,
    add_travel_alert,
    add_user,
    delete_travel_alert,
    find_station,
    list_travel_alerts,
    load_stations,
)
from .config import get_settings
from .db import DB_FILE, init_db, migrate
from .failover import FailoverPolicy
from .models import TimeWindow
from .tasks import build_alert_scheduler, build_providers, build_scheduler

logger = logging.getLogger(__name__)

DATETIME_FORMATS = ["%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%d"]


def configure_logging(level: str, log_file: Optional[str]) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _window(from_time: datetime, to_time: datetime) -> TimeWindow:
    tz = get_settings().tz
    try:
        return TimeWindow(from_time.replace(tzinfo=tz), to_time.replace(tzinfo=tz))
    except ValueError as exc:
        raise click.BadParameter(str(exc))


@click.group()
@click.option("--db", "db_path", default=DB_FILE, show_default=True, help="SQLite database file")
@click.pass_context
def cli(ctx: click.Context, db_path: str) -> None:
    """Command line interface."""
    cfg = get_settings()
    configure_logging(cfg.log_level, cfg.log_file)
    ctx.obj = {"db_path": db_path}


@cli.command("init-db")
@click.pass_obj
def init_db_cmd(obj: dict) -> None:
    """Create the database schema."""
    init_db(db_path=obj["db_path"])


@cli.command("load-stations")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def load_stations_cmd(obj: dict, path: str) -> None:
    """Replace known stations with the content of a JSON file."""
    migrate(db_path=obj["db_path"])
    count = load_stations(path, db_path=obj["db_path"])
    click.echo(f"Loaded {count} stations")


@cli.command("add-user")
@click.argument("email")
@click.argument("card_number")
@click.pass_obj
def add_user_cmd(obj: dict, email: str, card_number: str) -> None:
    """Register a user with its TGVmax card number."""
    migrate(db_path=obj["db_path"])
    click.echo(add_user(email, card_number, db_path=obj["db_path"]))


@cli.command("add-alert")
@click.argument("user_id", type=int)
@click.argument("origin")
@click.argument("destination")
@click.argument("from_time", type=click.DateTime(DATETIME_FORMATS))
@click.argument("to_time", type=click.DateTime(DATETIME_FORMATS))
@click.pass_obj
def add_alert_cmd(
    obj: dict,
    user_id: int,
    origin: str,
    destination: str,
    from_time: datetime,
    to_time: datetime,
) -> None:
    """Watch ORIGIN ➔ DESTINATION between FROM_TIME and TO_TIME."""
    db_path = obj["db_path"]
    migrate(db_path=db_path)
    window = _window(from_time, to_time)
    try:
        alert_id = add_travel_alert(
            user_id,
            find_station(origin, db_path=db_path),
            find_station(destination, db_path=db_path),
            window,
            db_path=db_path,
        )
    except NotFoundError as exc:
        raise click.ClickException(str(exc))
    click.echo(alert_id)


@cli.command("list-alerts")
@click.argument("user_id", type=int)
@click.pass_obj
def list_alerts_cmd(obj: dict, user_id: int) -> None:
    """Print the alerts of USER_ID."""
    migrate(db_path=obj["db_path"])
    tz = get_settings().tz
    for alert in list_travel_alerts(user_id, db_path=obj["db_path"]):
        click.echo(
            f"{alert.id}\t{alert.origin.name} ➔ {alert.destination.name}\t"
            f"{alert.window.from_time.astimezone(tz):%Y-%m-%d %H:%M} – "
            f"{alert.window.to_time.astimezone(tz):%Y-%m-%d %H:%M}\t{alert.status}"
        )


@cli.command("delete-alert")
@click.argument("user_id", type=int)
@click.argument("alert_id", type=int)
@click.pass_obj
def delete_alert_cmd(obj: dict, user_id: int, alert_id: int) -> None:
    """Delete alert ALERT_ID of USER_ID."""
    migrate(db_path=obj["db_path"])
    if not delete_travel_alert(user_id, alert_id, db_path=obj["db_path"]):
        raise click.ClickException(f"alert {alert_id} not found")
    click.echo(f"Deleted alert {alert_id}")


@cli.command()
@click.argument("origin")
@click.argument("destination")
@click.argument("from_time", type=click.DateTime(DATETIME_FORMATS))
@click.argument("to_time", type=click.DateTime(DATETIME_FORMATS))
@click.option("--card", "card_number", required=True, help="TGVmax card number")
@click.pass_obj
def check(
    obj: dict,
    origin: str,
    destination: str,
    from_time: datetime,
    to_time: datetime,
    card_number: str,
) -> None:
    """Look for free seats once, without touching any alert."""
    db_path = obj["db_path"]
    migrate(db_path=db_path)
    window = _window(from_time, to_time)
    try:
        origin_station = find_station(origin, db_path=db_path)
        destination_station = find_station(destination, db_path=db_path)
    except NotFoundError as exc:
        raise click.ClickException(str(exc))

    policy = FailoverPolicy(build_providers(get_settings()))
    availability = policy.check(origin_station, destination_station, window, card_number)
    if not availability.is_available:
        click.echo("No TGVmax seat found")
    else:
        click.echo("TGVmax seats at " + ", ".join(availability.hours))


@cli.command()
@click.option("--once", is_flag=True, help="Run a single tick and exit")
@click.pass_obj
def run(obj: dict, once: bool) -> None:
    """Poll pending alerts on the configured schedule."""
    cfg = get_settings()
    migrate(db_path=obj["db_path"])
    alert_scheduler = build_alert_scheduler(cfg, db_path=obj["db_path"])
    if once:
        count = alert_scheduler.tick()
        logger.info("Processed %d travel alerts", count)
        return

    sched = build_scheduler(cfg, alert_scheduler)
    logger.info("Starting scheduler with schedule %r", cfg.poll_schedule)
    try:
        sched.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    cli()
