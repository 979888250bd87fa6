from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from .domain import ClassSessionSegment, StudentMonthlyPlan
from .errors import CommitFailure, SourceError
from .overrides import OverrideSet, apply_overrides
from .sources import LedgerEntry, LedgerKey, TuitionLedger
from .utils import quantize_cents, round_currency

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    created: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.created + self.skipped


def session_amounts(segment: ClassSessionSegment) -> list[Decimal]:
    """Ledger amount of each billable session of ``segment``, in date order.

    Every row carries the per-session fee rounded to cents except the last,
    which takes the remainder so the rows add up to the billed segment amount.
    """

    count = segment.billable_count
    if not count:
        return []
    unit = quantize_cents(segment.per_session_fee)
    total = Decimal(round_currency(segment.raw_amount))
    return [unit] * (count - 1) + [total - unit * (count - 1)]


async def commit_plans(
    plans: Iterable[StudentMonthlyPlan],
    ledger: TuitionLedger,
    overrides: Optional[OverrideSet] = None,
) -> CommitResult:
    """Write one ledger record per billable session of every plan.

    Existing records are counted as skipped and left untouched, which makes a
    retry after a failure safe. The batch is not transactional: a failing
    write raises :class:`CommitFailure` and keeps everything written so far.
    """

    result = CommitResult()
    for plan in plans:
        segments = apply_overrides(plan.segments, overrides) if overrides else plan.segments
        try:
            for segment in segments:
                sessions = segment.billable_sessions()
                for session, amount in zip(sessions, session_amounts(segment)):
                    key = LedgerKey(plan.student_id, segment.class_id, session.date)
                    if await ledger.exists(key):
                        result.skipped += 1
                        continue
                    entry = LedgerEntry(
                        key=key, period=plan.period, amount=amount, status=session.status.value
                    )
                    if await ledger.insert(entry):
                        result.created += 1
                    else:
                        result.skipped += 1
                await ledger.record_period(plan, segment)
        except SourceError as exc:
            logger.error(
                "Commit stopped at student %s (%s created, %s skipped): %s",
                plan.student_id,
                result.created,
                result.skipped,
                exc,
            )
            raise CommitFailure(str(exc), result) from exc
        except Exception as exc:
            logger.exception(
                "Unexpected ledger failure at student %s (%s created, %s skipped)",
                plan.student_id,
                result.created,
                result.skipped,
            )
            raise CommitFailure(str(exc) or type(exc).__name__, result) from exc
        logger.info(
            "Committed %s for %s in %s", plan.period, plan.student_name, plan.class_name
        )
    return result
