import smtplib
from datetime import datetime, timezone
from unittest.mock import Mock

from tgvmax_sniper.alerts import add_travel_alert, add_user, get_travel_alert
from tgvmax_sniper.db import update_one
from tgvmax_sniper.failover import FailoverPolicy
from tgvmax_sniper.models import PENDING, TRIGGERED, Availability, TimeWindow
from tgvmax_sniper.scheduler import AlertScheduler

from helpers import PARIS, TimelineSearch, free, paris, priced

NOW = datetime(2024, 5, 20, 10, 0, tzinfo=timezone.utc)


class RecordingPolicy:
    def __init__(self, availability=None, fail_for=()):
        self.availability = availability or Availability.empty()
        self.fail_for = set(fail_for)
        self.checked = []

    def check(self, origin, destination, window, card_number):
        self.checked.append(window)
        if window.from_time in self.fail_for:
            raise RuntimeError("backend exploded")
        return self.availability


def make_scheduler(db_path, policy, notify=None, sleep=None, enabled=True):
    return AlertScheduler(
        policy,
        notify or Mock(),
        db_path=db_path,
        lookahead_days=30,
        delay_s=0.5,
        enabled=enabled,
        tz=PARIS,
        sleep=sleep or Mock(),
    )


def setup_alerts(db_path, paris_station, lyon_station, windows):
    user_id = add_user("traveller@example.com", "HC000001", db_path=db_path)
    alert_ids = [
        add_travel_alert(user_id, paris_station, lyon_station, w, db_path=db_path)
        for w in windows
    ]
    return user_id, alert_ids


def test_only_alerts_within_lookahead_are_processed(
    db_path, paris_station, lyon_station
):
    beyond = TimeWindow(paris(15, 0, month=7), paris(15, 23, month=7))
    within = TimeWindow(paris(1, 0), paris(1, 23, 59))
    setup_alerts(db_path, paris_station, lyon_station, [beyond, within])
    policy = RecordingPolicy()

    processed = make_scheduler(db_path, policy).tick(now=NOW)

    assert processed == 1
    assert policy.checked == [within]


def test_lookahead_includes_whole_last_day(db_path, paris_station, lyon_station):
    # now + 30 days is 2024-06-19 in Paris
    last_day = TimeWindow(paris(19, 22), paris(19, 23))
    next_day = TimeWindow(paris(20, 0, 30), paris(20, 23))
    setup_alerts(db_path, paris_station, lyon_station, [last_day, next_day])
    policy = RecordingPolicy()

    assert make_scheduler(db_path, policy).tick(now=NOW) == 1
    assert policy.checked == [last_day]


def test_started_alerts_are_not_due(db_path, paris_station, lyon_station):
    started = TimeWindow(datetime(2024, 5, 20, 9, tzinfo=timezone.utc), paris(21, 12, month=5))
    setup_alerts(db_path, paris_station, lyon_station, [started])
    policy = RecordingPolicy()

    assert make_scheduler(db_path, policy).tick(now=NOW) == 0
    assert policy.checked == []


def test_end_to_end_trigger(db_path, paris_station, lyon_station):
    window = TimeWindow(paris(1, 0), paris(1, 23, 59))
    user_id, (alert_id,) = setup_alerts(db_path, paris_station, lyon_station, [window])
    backend = TimelineSearch([free(1, 8, 15), priced(1, 9)])
    notify = Mock()
    scheduler = make_scheduler(db_path, FailoverPolicy([backend]), notify)

    assert scheduler.tick(now=NOW) == 1

    notify.assert_called_once_with(
        "traveller@example.com",
        "Paris Gare de Lyon",
        "Lyon Part Dieu",
        paris(1, 0),
        ["08:15"],
    )
    alert = get_travel_alert(user_id, alert_id, db_path=db_path)
    assert alert.status == TRIGGERED
    assert alert.triggered_at == NOW

    fetches = len(backend.cursors)
    assert scheduler.tick(now=NOW) == 0
    assert len(backend.cursors) == fetches
    notify.assert_called_once()


def test_no_availability_updates_last_check(db_path, paris_station, lyon_station):
    window = TimeWindow(paris(1, 0), paris(1, 23, 59))
    user_id, (alert_id,) = setup_alerts(db_path, paris_station, lyon_station, [window])
    notify = Mock()
    sleep = Mock()

    make_scheduler(db_path, RecordingPolicy(), notify, sleep=sleep).tick(now=NOW)

    alert = get_travel_alert(user_id, alert_id, db_path=db_path)
    assert alert.status == PENDING
    assert alert.last_check == NOW
    assert alert.triggered_at is None
    notify.assert_not_called()
    sleep.assert_called_once_with(0.5)


def test_failing_alert_does_not_stop_the_tick(db_path, paris_station, lyon_station):
    broken = TimeWindow(paris(1, 0), paris(1, 12))
    healthy = TimeWindow(paris(2, 0), paris(2, 12))
    user_id, (broken_id, healthy_id) = setup_alerts(
        db_path, paris_station, lyon_station, [broken, healthy]
    )
    before = get_travel_alert(user_id, broken_id, db_path=db_path)
    policy = RecordingPolicy(fail_for=[broken.from_time])
    sleep = Mock()

    assert make_scheduler(db_path, policy, sleep=sleep).tick(now=NOW) == 2

    assert policy.checked == [broken, healthy]
    after = get_travel_alert(user_id, broken_id, db_path=db_path)
    assert after == before
    assert get_travel_alert(user_id, healthy_id, db_path=db_path).last_check == NOW
    assert sleep.call_count == 2


def test_failed_email_leaves_alert_pending(db_path, paris_station, lyon_station):
    window = TimeWindow(paris(1, 0), paris(1, 23, 59))
    user_id, (alert_id,) = setup_alerts(db_path, paris_station, lyon_station, [window])
    policy = RecordingPolicy(Availability(is_available=True, hours=["08:15"]))
    notify = Mock(side_effect=smtplib.SMTPException("relay denied"))

    make_scheduler(db_path, policy, notify).tick(now=NOW)

    alert = get_travel_alert(user_id, alert_id, db_path=db_path)
    assert alert.status == PENDING
    assert alert.triggered_at is None


def test_disabled_polling_is_a_no_op(db_path, paris_station, lyon_station):
    window = TimeWindow(paris(1, 0), paris(1, 23, 59))
    setup_alerts(db_path, paris_station, lyon_station, [window])
    policy = RecordingPolicy()

    assert make_scheduler(db_path, policy, enabled=False).tick(now=NOW) == 0
    assert policy.checked == []


def test_overlapping_tick_is_skipped(db_path, paris_station, lyon_station):
    window = TimeWindow(paris(1, 0), paris(1, 23, 59))
    setup_alerts(db_path, paris_station, lyon_station, [window])
    policy = RecordingPolicy()
    scheduler = make_scheduler(db_path, policy)

    scheduler._lock.acquire()
    try:
        assert scheduler.tick(now=NOW) == 0
    finally:
        scheduler._lock.release()
    assert policy.checked == []
    assert scheduler.tick(now=NOW) == 1


def test_malformed_alert_row_is_skipped(db_path, paris_station, lyon_station, caplog):
    broken = TimeWindow(paris(1, 0), paris(1, 12))
    healthy = TimeWindow(paris(2, 0), paris(2, 12))
    user_id, (broken_id, healthy_id) = setup_alerts(
        db_path, paris_station, lyon_station, [broken, healthy]
    )
    update_one("alerts", {"id": broken_id}, {"to_time": paris(1, 0)}, db_path=db_path)
    policy = RecordingPolicy()

    assert make_scheduler(db_path, policy).tick(now=NOW) == 1

    assert policy.checked == [healthy]
    assert get_travel_alert(user_id, healthy_id, db_path=db_path).last_check == NOW
    assert any("Skipping malformed travel alert" in r.getMessage() for r in caplog.records)
