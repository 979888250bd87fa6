"""Glue between the Flask application and the planning engine."""
from __future__ import annotations

from flask import Flask

from .commit import CommitResult
from .domain import BillingPeriod
from .errors import PlanningError
from .orchestrator import PlanOrchestrator
from .sources import SqlPlanningSource, SqlTuitionLedger


def new_orchestrator(app: Flask, period: BillingPeriod) -> PlanOrchestrator:
    source = SqlPlanningSource(
        default_sessions_per_month=app.config["PLANNER_DEFAULT_SESSIONS_PER_MONTH"]
    )
    return PlanOrchestrator(
        source,
        period,
        colors=app.config["PLANNER_CLASS_COLORS"],
        max_scan_days=app.config["PLANNER_MAX_SCAN_DAYS"],
    )


async def bill_class_month(app: Flask, class_id: int, year: int, month: int) -> CommitResult:
    period = BillingPeriod(year, month)
    orchestrator = new_orchestrator(app, period)
    students = sorted(await orchestrator.source.enrolled_students(class_id))
    if not students:
        raise PlanningError(f"Class {class_id} has no enrolled students")

    await orchestrator.regenerate(selection=[(student_id, class_id) for student_id in students])
    result = await orchestrator.save(SqlTuitionLedger())
    app.logger.info(
        "Billed class %s for %s: %s created, %s skipped",
        class_id,
        period,
        result.created,
        result.skipped,
    )
    return result
