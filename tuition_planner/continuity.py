from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from .domain import BillingPeriod
from .sources import PlanningSource


@dataclass(frozen=True)
class Continuity:
    start_date: date
    previous_end_date: Optional[date] = None

    @property
    def is_month_start_default(self) -> bool:
        return self.previous_end_date is None


def next_start_date(previous_end_date: Optional[date], period: BillingPeriod) -> date:
    """Start of a new segment: the day after the previous one, else the 1st."""

    if previous_end_date is None:
        return period.first_day
    return previous_end_date + timedelta(days=1)


async def resolve_start_date(
    source: PlanningSource, class_id: int, period: BillingPeriod
) -> Continuity:
    previous_end_date = await source.latest_period_end(class_id, period)
    return Continuity(
        start_date=next_start_date(previous_end_date, period),
        previous_end_date=previous_end_date,
    )
