"""Manual exclusions and makeup additions layered over generated segments."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from .domain import ClassSessionSegment, SessionRecord, SessionStatus
from .errors import MissingClassSelector, PlanningError
from .utils import weekday_code

logger = logging.getLogger(__name__)


@dataclass
class OverrideSet:
    excluded_dates: set[date] = field(default_factory=set)
    added_dates: dict[date, int] = field(default_factory=dict)

    def copy(self) -> "OverrideSet":
        return OverrideSet(set(self.excluded_dates), dict(self.added_dates))

    def is_empty(self) -> bool:
        return not self.excluded_dates and not self.added_dates

    def added_for_class(self, class_id: int) -> list[date]:
        return sorted(day for day, owner in self.added_dates.items() if owner == class_id)

    def without_class(self, class_id: int) -> "OverrideSet":
        return OverrideSet(
            set(self.excluded_dates),
            {day: owner for day, owner in self.added_dates.items() if owner != class_id},
        )

    @classmethod
    def from_payload(
        cls, excluded: Iterable[date] = (), added: Optional[Mapping[date, int]] = None
    ) -> "OverrideSet":
        return cls(set(excluded), dict(added or {}))


def _has_generated_session(segments: Sequence[ClassSessionSegment], day: date) -> bool:
    return any(day in segment.generated_dates() for segment in segments)


def _has_closure_only(segments: Sequence[ClassSessionSegment], day: date) -> bool:
    return any(day in segment.closure_dates() for segment in segments)


def toggle_date(
    overrides: OverrideSet,
    segments: Sequence[ClassSessionSegment],
    day: date,
    class_id: Optional[int] = None,
) -> OverrideSet:
    """Return the override set after the operator clicked ``day``.

    Priority: undo a manual addition, then flip a generated session between
    scheduled and excluded, then add a makeup session to ``class_id``.
    Closure days are left untouched. ``overrides`` is not modified.
    """

    updated = overrides.copy()

    if day in updated.added_dates:
        owner = updated.added_dates.pop(day)
        logger.debug("Removed added session %s from class %s", day, owner)
        return updated

    if _has_generated_session(segments, day):
        if day in updated.excluded_dates:
            updated.excluded_dates.discard(day)
            logger.debug("Restored session %s", day)
        else:
            updated.excluded_dates.add(day)
            logger.debug("Excluded session %s", day)
        return updated

    if _has_closure_only(segments, day):
        logger.debug("Ignoring toggle on closure day %s", day)
        return updated

    if class_id is None:
        raise MissingClassSelector(f"Choose the class that receives the session on {day}")
    if all(segment.class_id != class_id for segment in segments):
        raise PlanningError(f"Class {class_id} is not part of the current plan")
    updated.added_dates[day] = class_id
    logger.debug("Added session %s to class %s", day, class_id)
    return updated


def apply_overrides(
    segments: Sequence[ClassSessionSegment], overrides: OverrideSet
) -> list[ClassSessionSegment]:
    """Overlay exclusions and additions onto freshly generated segments."""

    overlaid: list[ClassSessionSegment] = []
    for segment in segments:
        sessions: list[SessionRecord] = []
        for session in segment.sessions:
            if session.status is SessionStatus.SCHEDULED and session.date in overrides.excluded_dates:
                sessions.append(session.with_status(SessionStatus.EXCLUDED))
            else:
                sessions.append(session)
        taken = {session.date for session in sessions if session.billable}
        for day in overrides.added_for_class(segment.class_id):
            if day in taken:
                continue
            sessions.append(
                SessionRecord(date=day, day_of_week=weekday_code(day), status=SessionStatus.ADDED)
            )
        overlaid.append(segment.with_sessions(sessions))
    return overlaid
