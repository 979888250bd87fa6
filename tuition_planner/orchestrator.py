"""Planning session state machine.

A :class:`PlanOrchestrator` owns one operator's planning session: which
students are selected, the per-class :class:`SegmentState`, the manual
overrides and the segments of the last successful regeneration. Every
regeneration takes a new version stamp; a run that finishes after a newer one
was started throws its output away instead of overwriting newer segments.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from .commit import CommitResult, commit_plans
from .domain import (
    BillingPeriod,
    ClassSessionSegment,
    SegmentState,
    StudentMonthlyPlan,
)
from .errors import GenerationFailure, PlanningError, SelectionError
from .overrides import OverrideSet, apply_overrides, toggle_date
from .recurrence import MAX_SCAN_DAYS
from .segments import DEFAULT_COLOR, BuiltSegment, SegmentBuilder, SegmentTotals
from .sources import PlanningSource, TuitionLedger

logger = logging.getLogger(__name__)

Selection = tuple[int, int]
"""A ``(student_id, class_id)`` pair."""


class PlanPhase(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"


@dataclass
class PlanningContext:
    period: BillingPeriod
    selection: dict[int, list[int]] = field(default_factory=dict)
    states: dict[int, SegmentState] = field(default_factory=dict)
    overrides: OverrideSet = field(default_factory=OverrideSet)
    segments: list[ClassSessionSegment] = field(default_factory=list)
    student_names: dict[int, str] = field(default_factory=dict)
    phase: PlanPhase = PlanPhase.IDLE
    focus_month: Optional[BillingPeriod] = None

    def selection_pairs(self) -> list[Selection]:
        return [
            (student_id, class_id)
            for class_id, student_ids in self.selection.items()
            for student_id in student_ids
        ]


@dataclass(frozen=True)
class PlanSummary:
    segments: tuple[SegmentTotals, ...]
    student_count: int
    record_count: int
    billable_sessions: int
    closure_days: int
    excluded: int
    added: int
    total_amount: int


class PlanOrchestrator:
    def __init__(
        self,
        source: PlanningSource,
        period: BillingPeriod,
        *,
        builder: Optional[SegmentBuilder] = None,
        colors: Sequence[str] = (),
        max_scan_days: int = MAX_SCAN_DAYS,
    ) -> None:
        self.source = source
        self.builder = builder or SegmentBuilder(source, max_scan_days=max_scan_days)
        self.colors = tuple(colors) or (DEFAULT_COLOR,)
        self.context = PlanningContext(period=period)
        self._version = 0

    # Read access -----------------------------------------------------
    @property
    def period(self) -> BillingPeriod:
        return self.context.period

    @property
    def phase(self) -> PlanPhase:
        return self.context.phase

    @property
    def segments(self) -> list[ClassSessionSegment]:
        return list(self.context.segments)

    @property
    def overrides(self) -> OverrideSet:
        return self.context.overrides

    @property
    def version(self) -> int:
        return self._version

    @property
    def focus_month(self) -> Optional[BillingPeriod]:
        return self.context.focus_month

    def state_for(self, class_id: int) -> SegmentState:
        try:
            return self.context.states[class_id]
        except KeyError as exc:
            raise PlanningError(f"Class {class_id} has no selected students") from exc

    # Regeneration triggers --------------------------------------------
    async def regenerate(
        self,
        selection: Optional[Iterable[Selection]] = None,
        billing_period: Optional[BillingPeriod] = None,
        start_overrides: Optional[Mapping[int, date]] = None,
        end_overrides: Optional[Mapping[int, date]] = None,
    ) -> Optional[list[ClassSessionSegment]]:
        """Rebuild every segment of the plan.

        Returns the new segments, or ``None`` when a newer regeneration was
        started before this one finished.
        """

        if selection is not None:
            selection = list(selection)
            incoming = {class_id for _, class_id in selection}
        else:
            incoming = set(self.context.selection)
        for class_id in (*(start_overrides or {}), *(end_overrides or {})):
            if class_id not in incoming:
                raise PlanningError(f"Class {class_id} has no selected students")

        if billing_period is not None and billing_period != self.context.period:
            self._switch_period(billing_period)
        if selection is not None:
            self._apply_selection(selection)
        for class_id, day in (start_overrides or {}).items():
            state = self.state_for(class_id)
            state.start_date = day
            state.is_manual_start_date = True
        for class_id, day in (end_overrides or {}).items():
            state = self.state_for(class_id)
            state.end_date = day
            state.is_manual_end_date = True
        return await self._run()

    async def select_student(self, student_id: int, class_id: int):
        pairs = self.context.selection_pairs()
        if (student_id, class_id) not in pairs:
            pairs.append((student_id, class_id))
        return await self.regenerate(selection=pairs)

    async def deselect_student(self, student_id: int, class_id: int):
        pairs = [pair for pair in self.context.selection_pairs() if pair != (student_id, class_id)]
        return await self.regenerate(selection=pairs)

    async def change_billing_period(self, period: BillingPeriod):
        return await self.regenerate(billing_period=period)

    async def set_manual_start_date(self, class_id: int, day: date):
        return await self.regenerate(start_overrides={class_id: day})

    async def use_auto_start_date(self, class_id: int):
        self.state_for(class_id).is_manual_start_date = False
        return await self.regenerate()

    async def set_manual_end_date(self, class_id: int, day: date):
        return await self.regenerate(end_overrides={class_id: day})

    async def use_auto_end_date(self, class_id: int):
        self.state_for(class_id).is_manual_end_date = False
        return await self.regenerate()

    # Overrides ---------------------------------------------------------
    def toggle_date(self, day: date, class_id: Optional[int] = None) -> OverrideSet:
        self.context.overrides = toggle_date(
            self.context.overrides, self.context.segments, day, class_id
        )
        return self.context.overrides

    def load_overrides(self, overrides: OverrideSet) -> None:
        """Restore overrides saved from an earlier session of the same plan."""

        selected = set(self.context.selection)
        restored = overrides.copy()
        restored.added_dates = {
            day: class_id for day, class_id in restored.added_dates.items() if class_id in selected
        }
        self.context.overrides = restored

    def reset(self) -> None:
        self.context.overrides = OverrideSet()

    # Derived views -----------------------------------------------------
    def display_segments(self) -> list[ClassSessionSegment]:
        return apply_overrides(self.context.segments, self.context.overrides)

    def student_plans(self) -> list[StudentMonthlyPlan]:
        """One plan per selected ``(student, class)`` pair, overrides applied."""

        by_class = {segment.class_id: segment for segment in self.display_segments()}
        plans: list[StudentMonthlyPlan] = []
        for class_id, student_ids in self.context.selection.items():
            segment = by_class.get(class_id)
            if segment is None:
                continue
            for student_id in student_ids:
                plans.append(
                    StudentMonthlyPlan(
                        student_id=student_id,
                        student_name=self.context.student_names.get(
                            student_id, f"Student {student_id}"
                        ),
                        class_id=class_id,
                        class_name=segment.class_name,
                        period=self.context.period,
                        segments=[segment],
                    )
                )
        return plans

    def summary(self) -> PlanSummary:
        totals = tuple(SegmentTotals.from_segment(s) for s in self.display_segments())
        plans = self.student_plans()
        return PlanSummary(
            segments=totals,
            student_count=len({plan.student_id for plan in plans}),
            record_count=len(plans),
            billable_sessions=sum(plan.billable_count for plan in plans),
            closure_days=sum(t.closure_days for t in totals),
            excluded=sum(t.excluded for t in totals),
            added=sum(t.added for t in totals),
            total_amount=sum(plan.total_amount for plan in plans),
        )

    async def save(self, ledger: TuitionLedger) -> CommitResult:
        if self.context.phase is PlanPhase.GENERATING:
            raise PlanningError("The plan is still being generated")
        return await commit_plans(self.student_plans(), ledger)

    # Internals ---------------------------------------------------------
    def _switch_period(self, period: BillingPeriod) -> None:
        logger.info("Billing period changed from %s to %s", self.context.period, period)
        self.context.period = period
        for state in self.context.states.values():
            state.reset_pins()
        self.context.overrides = OverrideSet()

    def _apply_selection(self, pairs: Iterable[Selection]) -> None:
        selection: dict[int, list[int]] = {}
        for student_id, class_id in pairs:
            students = selection.setdefault(class_id, [])
            if student_id not in students:
                students.append(student_id)

        for class_id in list(self.context.states):
            if class_id not in selection:
                del self.context.states[class_id]
                self.context.overrides = self.context.overrides.without_class(class_id)
        for class_id in selection:
            self.context.states.setdefault(class_id, SegmentState())
        self.context.selection = selection

    async def _run(self) -> Optional[list[ClassSessionSegment]]:
        self._version += 1
        version = self._version
        context = self.context
        period = context.period
        classes = [(class_id, list(ids)) for class_id, ids in context.selection.items()]
        states = {class_id: replace(context.states[class_id]) for class_id, _ in classes}
        had_segments = bool(context.segments)
        context.phase = PlanPhase.GENERATING
        logger.debug("Run %s started for %s class(es) in %s", version, len(classes), period)

        try:
            built: list[BuiltSegment] = []
            for index, (class_id, student_ids) in enumerate(classes):
                enrolled = await self.source.enrolled_students(class_id)
                missing = [student_id for student_id in student_ids if student_id not in enrolled]
                if missing:
                    raise SelectionError(
                        f"Students {missing} are not enrolled in class {class_id}"
                    )
                built.append(
                    await self.builder.build(
                        class_id,
                        period,
                        states[class_id],
                        color=self.colors[index % len(self.colors)],
                    )
                )
            names = await self.source.student_names(
                student_id for _, ids in classes for student_id in ids
            )
        except Exception as exc:
            if version != self._version:
                logger.debug("Discarding failure of superseded run %s: %r", version, exc)
                return None
            logger.warning("Run %s failed: %r", version, exc)
            raise GenerationFailure(str(exc) or type(exc).__name__, version=version) from exc
        finally:
            if version == self._version and context.phase is PlanPhase.GENERATING:
                context.phase = PlanPhase.READY if context.segments else PlanPhase.IDLE

        if version != self._version:
            logger.debug("Discarding superseded run %s (latest is %s)", version, self._version)
            return None

        built = [item for item in built if item.segment.class_id in context.states]
        for item in built:
            segment = item.segment
            state = context.states[segment.class_id]
            state.previous_end_date = item.continuity.previous_end_date
            if not state.is_manual_start_date:
                state.start_date = segment.start_date
            if not state.is_manual_end_date:
                state.end_date = segment.end_date
        context.segments = [item.segment for item in built]
        context.student_names.update(names)
        context.phase = PlanPhase.READY if context.segments else PlanPhase.IDLE
        if not had_segments and context.segments:
            first = context.segments[0].start_date
            context.focus_month = BillingPeriod(first.year, first.month)
        logger.debug("Run %s produced %s segment(s)", version, len(context.segments))
        return list(context.segments)
