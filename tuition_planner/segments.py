from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from .continuity import Continuity, resolve_start_date
from .domain import (
    BillingPeriod,
    ClassSessionSegment,
    SegmentState,
    SessionStatus,
)
from .recurrence import MAX_SCAN_DAYS, generate_sessions
from .sources import PlanningSource
from .utils import round_currency

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#3b82f6"


def per_session_fee(monthly_fee: int, sessions_per_month: int) -> Decimal:
    """Exact fee of one session; rounding happens on the final total only."""

    if sessions_per_month <= 0:
        return Decimal(0)
    return Decimal(monthly_fee) / Decimal(sessions_per_month)


@dataclass(frozen=True)
class BuiltSegment:
    segment: ClassSessionSegment
    continuity: Continuity


@dataclass(frozen=True)
class SegmentTotals:
    class_id: int
    class_name: str
    color: str
    billable: int
    excluded: int
    added: int
    closure_days: int
    per_session_fee: Decimal
    amount: int

    @classmethod
    def from_segment(cls, segment: ClassSessionSegment) -> "SegmentTotals":
        return cls(
            class_id=segment.class_id,
            class_name=segment.class_name,
            color=segment.color,
            billable=segment.billable_count,
            excluded=segment.count(SessionStatus.EXCLUDED),
            added=segment.count(SessionStatus.ADDED),
            closure_days=segment.closure_days,
            per_session_fee=segment.per_session_fee,
            amount=round_currency(segment.raw_amount),
        )


class SegmentBuilder:
    """Builds the session segment of one class for one billing period."""

    def __init__(self, source: PlanningSource, *, max_scan_days: int = MAX_SCAN_DAYS) -> None:
        self.source = source
        self.max_scan_days = max_scan_days

    async def build(
        self,
        class_id: int,
        period: BillingPeriod,
        state: SegmentState,
        *,
        color: str = DEFAULT_COLOR,
    ) -> BuiltSegment:
        config = await self.source.class_config(class_id)
        continuity = await resolve_start_date(self.source, class_id, period)

        if state.is_manual_start_date and state.start_date is not None:
            start_date = state.start_date
        else:
            start_date = continuity.start_date

        manual_end = state.end_date if state.is_manual_end_date else None
        window_end = manual_end or start_date + timedelta(days=self.max_scan_days)
        closures = await self.source.closures_for_class(class_id, start_date, window_end)

        if manual_end is not None:
            sessions = generate_sessions(
                start_date,
                config.schedule_rules,
                closures,
                end_date=manual_end,
                max_scan_days=self.max_scan_days,
            )
        else:
            sessions = generate_sessions(
                start_date,
                config.schedule_rules,
                closures,
                target_count=config.sessions_per_month,
                max_scan_days=self.max_scan_days,
            )

        if not sessions:
            logger.warning(
                "No sessions generated for class %s (%s) from %s", class_id, config.name, start_date
            )
            end_date = manual_end or start_date
        else:
            end_date = sessions[-1].date

        segment = ClassSessionSegment(
            class_id=class_id,
            class_name=config.name,
            color=config.color or color,
            start_date=start_date,
            end_date=end_date,
            per_session_fee=per_session_fee(config.monthly_fee, config.sessions_per_month),
            closure_days=sum(1 for s in sessions if s.status is SessionStatus.CLOSURE),
            sessions=tuple(sessions),
            schedule_days=tuple(config.schedule_days),
            monthly_fee=config.monthly_fee,
            sessions_per_month=config.sessions_per_month,
        )
        logger.debug(
            "Built segment for class %s: %s -> %s, %s billable, %s closure",
            class_id,
            segment.start_date,
            segment.end_date,
            segment.billable_count,
            segment.closure_days,
        )
        return BuiltSegment(segment=segment, continuity=continuity)
