from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from tests import helpers  # noqa: F401  # ensures project root on sys.path
from crmterm.services import day_window, shape_activity, split_events
from crmterm.storage import Activity

NY = ZoneInfo("America/New_York")


def ev(name, when):
    return SimpleNamespace(title=name, event_time=when)


def titles(events):
    return [e.title for e in events]


def test_day_window_uses_local_midnight():
    now = datetime(2024, 6, 1, 22, 30, tzinfo=NY)
    start, end = day_window(now)
    assert start == datetime(2024, 6, 1, 0, 0, tzinfo=NY)
    assert end - start == timedelta(hours=24)


def test_day_window_is_24_real_hours_across_dst():
    # 2024-03-10 is 23 hours long in New York
    now = datetime(2024, 3, 10, 12, 0, tzinfo=NY)
    start, end = day_window(now)
    assert end.astimezone(timezone.utc) - start.astimezone(timezone.utc) == timedelta(hours=24)


def test_event_at_day_start_is_today():
    now = datetime(2024, 6, 1, 9, 0, tzinfo=NY)
    start, _ = day_window(now)
    buckets = split_events([ev("midnight", start.astimezone(timezone.utc))], now)
    assert titles(buckets.today) == ["midnight"]


def test_event_just_before_day_start_is_never_today():
    now = datetime(2024, 6, 1, 9, 0, tzinfo=NY)
    start, _ = day_window(now)
    before = start - timedelta(microseconds=1)
    buckets = split_events([ev("late", before)], now)
    assert buckets.today == []
    assert titles(buckets.past) == ["late"]


def test_partition_and_ordering():
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    events = [
        ev("next week", now + timedelta(days=7)),
        ev("this evening", now + timedelta(hours=6)),
        ev("this morning", now - timedelta(hours=3)),
        ev("tomorrow", now + timedelta(days=1)),
        ev("last month", now - timedelta(days=30)),
        ev("yesterday", now - timedelta(days=1)),
    ]
    buckets = split_events(events, now)
    assert titles(buckets.today) == ["this morning", "this evening"]
    assert titles(buckets.upcoming) == ["tomorrow", "next week"]
    assert titles(buckets.past) == ["yesterday", "last month"]


def test_day_end_belongs_to_upcoming():
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    _, end = day_window(now)
    buckets = split_events([ev("midnight", end)], now)
    assert titles(buckets.upcoming) == ["midnight"]


def test_equal_times_keep_storage_order():
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    later = now + timedelta(days=2)
    earlier = now - timedelta(days=2)
    events = [ev("a", later), ev("b", later), ev("c", earlier), ev("d", earlier)]
    buckets = split_events(events, now)
    assert titles(buckets.upcoming) == ["a", "b"]
    assert titles(buckets.past) == ["c", "d"]


def test_shape_activity_contract():
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    rows = [
        Activity("note", 1, None, None, base),
        Activity("event", 2, "Demo", "slides", base + timedelta(hours=2)),
        Activity("invoice", 3, "?", "", base + timedelta(hours=3)),
        Activity("account", 4, "Acme", None, base + timedelta(hours=1)),
    ]
    shaped = shape_activity(rows, 2)
    assert [a.kind for a in shaped] == ["event", "account"]
    assert shaped[1].detail == ""

    everything = shape_activity(rows, 0)
    assert len(everything) == 3
    assert everything[-1].title == ""
