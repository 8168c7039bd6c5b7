# src/mbot/jobs/cron.py

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo

from apscheduler.triggers.cron import CronTrigger

from ..errors import InvalidInput

_EPSILON = timedelta(microseconds=1)


def parse_schedule(expr: str, tz: tzinfo | None = None) -> CronTrigger:
    """Compile a 5-field crontab expression ("m h dom mon dow")."""
    expr = (expr or "").strip()
    if not expr:
        raise InvalidInput("schedule must not be empty")
    try:
        return CronTrigger.from_crontab(expr, timezone=tz)
    except ValueError as e:
        raise InvalidInput(f"invalid cron expression {expr!r}: {e}") from e


def next_fire_after(trigger: CronTrigger, now: datetime) -> datetime | None:
    """
    First fire instant strictly after now.

    Starting from now (not from the last fire time) is what collapses any
    instants missed while the process was away into a single firing.
    """
    return trigger.get_next_fire_time(None, now + _EPSILON)
