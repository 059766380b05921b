from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Iterable, NamedTuple

from .storage import ACTIVITY_KINDS, DEFAULT_ACTIVITY_LIMIT, Activity

UPCOMING_LIMIT = 5
PAST_LIMIT = 3


class EventBuckets(NamedTuple):
    today: list
    upcoming: list
    past: list


def day_window(now: datetime) -> tuple[datetime, datetime]:
    """Start of the calendar day containing ``now`` and 24 hours later.

    ``now`` must be aware; its zone defines the day. The end is 24 real hours
    after the start even across a DST change.
    """
    start = datetime(now.year, now.month, now.day, tzinfo=now.tzinfo)
    end = start.astimezone(timezone.utc) + timedelta(hours=24)
    return start, end


def split_events(events: Iterable, now: datetime) -> EventBuckets:
    """Partition events into today / upcoming / past relative to ``now``.

    Today and upcoming are soonest first, past is most recent first. Events
    with identical times keep the order they were given in.
    """
    start, end = day_window(now)
    today, upcoming, past = [], [], []
    for event in events:
        t = event.event_time
        if start <= t < end:
            today.append(event)
        elif t > now:
            upcoming.append(event)
        else:
            past.append(event)

    def by_time(e):
        return e.event_time

    return EventBuckets(
        sorted(today, key=by_time),
        sorted(upcoming, key=by_time),
        sorted(past, key=by_time, reverse=True),
    )


def shape_activity(rows: Iterable[Activity], limit: int = DEFAULT_ACTIVITY_LIMIT) -> list[Activity]:
    """Enforce the feed contract on whatever storage returned.

    Unknown kinds are dropped, missing text becomes ``""``, entries are newest
    first and never more than ``limit``.
    """
    if limit <= 0:
        limit = DEFAULT_ACTIVITY_LIMIT
    shaped = [
        Activity(
            kind=row.kind,
            id=row.id,
            title=row.title or "",
            detail=row.detail or "",
            created_at=row.created_at,
        )
        for row in rows
        if row.kind in ACTIVITY_KINDS
    ]
    shaped.sort(key=lambda a: a.created_at, reverse=True)
    return shaped[:limit]
