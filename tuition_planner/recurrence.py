"""Expansion of weekly class schedules into concrete session dates."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from .domain import ClosureDay, ScheduleRule, SessionRecord, SessionStatus
from .utils import weekday_code

logger = logging.getLogger(__name__)

MAX_SCAN_DAYS = 731


def closure_map(closures: Iterable[ClosureDay]) -> dict[date, ClosureDay]:
    mapping: dict[date, ClosureDay] = {}
    for closure in closures:
        mapping.setdefault(closure.date, closure)
    return mapping


def generate_sessions(
    start_date: date,
    schedule_rules: Sequence[ScheduleRule],
    closures: Iterable[ClosureDay] = (),
    *,
    end_date: Optional[date] = None,
    target_count: Optional[int] = None,
    max_scan_days: int = MAX_SCAN_DAYS,
) -> list[SessionRecord]:
    """Walk forward from ``start_date`` and emit a record per class day.

    Exactly one of ``end_date`` (inclusive) or ``target_count`` must be given.
    Class days falling on a closure are emitted with ``closure`` status and do
    not count towards ``target_count``. Scanning never covers more than
    ``max_scan_days`` days.
    """

    if (end_date is None) == (target_count is None):
        raise ValueError("Provide exactly one of end_date or target_count")

    weekdays = {rule.day_of_week for rule in schedule_rules}
    if not weekdays:
        return []
    if target_count is not None and target_count <= 0:
        return []
    if end_date is not None and end_date < start_date:
        return []

    closed = closure_map(closures)
    sessions: list[SessionRecord] = []
    scheduled = 0
    current = start_date
    for _ in range(max_scan_days):
        if end_date is not None and current > end_date:
            break
        if current.weekday() in weekdays:
            closure = closed.get(current)
            if closure is not None:
                sessions.append(
                    SessionRecord(
                        date=current,
                        day_of_week=weekday_code(current),
                        status=SessionStatus.CLOSURE,
                        closure_reason=closure.reason,
                    )
                )
            else:
                sessions.append(
                    SessionRecord(
                        date=current,
                        day_of_week=weekday_code(current),
                        status=SessionStatus.SCHEDULED,
                    )
                )
                scheduled += 1
                if target_count is not None and scheduled >= target_count:
                    break
        current += timedelta(days=1)

    if target_count is not None and scheduled < target_count:
        logger.warning(
            "Only %s of %s sessions found within %s days from %s",
            scheduled,
            target_count,
            max_scan_days,
            start_date,
        )
    return sessions
