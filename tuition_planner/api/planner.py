"""Endpoints exposing the session planner and the billing commit."""
from __future__ import annotations

import asyncio
from datetime import date
from typing import Any, Mapping, Optional

from flask import current_app, request
from flask_restx import Namespace, Resource, fields

from ..billing import new_orchestrator
from ..domain import BillingPeriod, ClassSessionSegment, SegmentState, SessionRecord
from ..errors import CommitFailure, GenerationFailure, PlanningError
from ..orchestrator import PlanOrchestrator, PlanSummary
from ..overrides import OverrideSet
from ..sources import SqlTuitionLedger
from ..utils import quantize_cents, require_date


ns = Namespace("planner", description="Monthly tuition session planning")

selection_model = ns.model(
    "Selection",
    {
        "student_id": fields.Integer(required=True),
        "class_id": fields.Integer(required=True),
    },
)

added_date_model = ns.model(
    "AddedDate",
    {
        "date": fields.String(required=True, description="YYYY-MM-DD"),
        "class_id": fields.Integer(required=True),
    },
)

plan_request = ns.model(
    "PlanRequest",
    {
        "year": fields.Integer(required=True),
        "month": fields.Integer(required=True, min=1, max=12),
        "selection": fields.List(fields.Nested(selection_model), required=True),
        "start_dates": fields.Raw(description="class_id -> YYYY-MM-DD manual start dates"),
        "end_dates": fields.Raw(description="class_id -> YYYY-MM-DD manual end dates"),
        "excluded_dates": fields.List(fields.String(description="YYYY-MM-DD")),
        "added_dates": fields.List(fields.Nested(added_date_model)),
    },
)

toggle_request = ns.inherit(
    "ToggleRequest",
    plan_request,
    {
        "date": fields.String(required=True, description="YYYY-MM-DD"),
        "class_id": fields.Integer(description="Class receiving a makeup session"),
    },
)

commit_response = ns.model(
    "CommitResponse",
    {
        "created": fields.Integer,
        "skipped": fields.Integer,
    },
)


def serialize_session(session: SessionRecord) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "date": session.date.isoformat(),
        "day_of_week": session.day_of_week,
        "status": session.status.value,
    }
    if session.closure_reason:
        payload["closure_reason"] = session.closure_reason
    return payload


def serialize_segment(segment: ClassSessionSegment) -> dict[str, Any]:
    return {
        "class_id": segment.class_id,
        "class_name": segment.class_name,
        "color": segment.color,
        "start_date": segment.start_date.isoformat(),
        "end_date": segment.end_date.isoformat(),
        "per_session_fee": str(quantize_cents(segment.per_session_fee)),
        "closure_days": segment.closure_days,
        "schedule_days": list(segment.schedule_days),
        "sessions": [serialize_session(session) for session in segment.sessions],
    }


def serialize_state(class_id: int, state: SegmentState) -> dict[str, Any]:
    return {
        "class_id": class_id,
        "start_date": state.start_date.isoformat() if state.start_date else None,
        "previous_end_date": (
            state.previous_end_date.isoformat() if state.previous_end_date else None
        ),
        "is_manual_start_date": state.is_manual_start_date,
        "end_date": state.end_date.isoformat() if state.end_date else None,
        "is_manual_end_date": state.is_manual_end_date,
    }


def serialize_overrides(overrides: OverrideSet) -> dict[str, Any]:
    return {
        "excluded_dates": sorted(day.isoformat() for day in overrides.excluded_dates),
        "added_dates": [
            {"date": day.isoformat(), "class_id": class_id}
            for day, class_id in sorted(overrides.added_dates.items())
        ],
    }


def serialize_summary(summary: PlanSummary) -> dict[str, Any]:
    return {
        "segments": [
            {
                "class_id": totals.class_id,
                "class_name": totals.class_name,
                "billable": totals.billable,
                "excluded": totals.excluded,
                "added": totals.added,
                "closure_days": totals.closure_days,
                "amount": totals.amount,
            }
            for totals in summary.segments
        ],
        "student_count": summary.student_count,
        "record_count": summary.record_count,
        "billable_sessions": summary.billable_sessions,
        "closure_days": summary.closure_days,
        "excluded": summary.excluded,
        "added": summary.added,
        "total_amount": summary.total_amount,
    }


def serialize_plan(orchestrator: PlanOrchestrator) -> dict[str, Any]:
    period = orchestrator.period
    focus = orchestrator.focus_month
    return {
        "year": period.year,
        "month": period.month,
        "period_start": period.first_day.isoformat(),
        "period_end": period.last_day.isoformat(),
        "previous_period": str(period.previous()),
        "next_period": str(period.next()),
        "phase": orchestrator.phase.value,
        "focus_month": str(focus) if focus else None,
        "segments": [serialize_segment(s) for s in orchestrator.display_segments()],
        "states": [
            serialize_state(class_id, state)
            for class_id, state in orchestrator.context.states.items()
        ],
        "overrides": serialize_overrides(orchestrator.overrides),
        "summary": serialize_summary(orchestrator.summary()),
    }


def _parse_class_dates(raw: Optional[Mapping[str, str]]) -> dict[int, date]:
    if not raw:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError("Manual dates must be an object keyed by class id")
    return {int(class_id): require_date(value) for class_id, value in raw.items()}


def _parse_overrides(payload: Mapping[str, Any]) -> OverrideSet:
    excluded = [require_date(value) for value in payload.get("excluded_dates") or []]
    added = {
        require_date(item["date"]): int(item["class_id"])
        for item in payload.get("added_dates") or []
    }
    return OverrideSet.from_payload(excluded, added)


async def _load_plan(payload: Mapping[str, Any]) -> PlanOrchestrator:
    period = BillingPeriod(int(payload["year"]), int(payload["month"]))
    orchestrator = new_orchestrator(current_app._get_current_object(), period)
    selection = [
        (int(item["student_id"]), int(item["class_id"])) for item in payload.get("selection") or []
    ]
    await orchestrator.regenerate(
        selection=selection,
        start_overrides=_parse_class_dates(payload.get("start_dates")),
        end_overrides=_parse_class_dates(payload.get("end_dates")),
    )
    orchestrator.load_overrides(_parse_overrides(payload))
    return orchestrator


def _run_plan(payload: Mapping[str, Any]) -> PlanOrchestrator:
    try:
        return asyncio.run(_load_plan(payload))
    except GenerationFailure as exc:
        current_app.logger.warning("Plan generation failed: %s", exc)
        ns.abort(400, str(exc))
    except (PlanningError, ValueError, KeyError) as exc:
        ns.abort(400, str(exc))


@ns.route("/preview")
class PlanPreview(Resource):
    @ns.expect(plan_request, validate=True)
    def post(self) -> dict[str, Any]:
        orchestrator = _run_plan(request.json or {})
        return serialize_plan(orchestrator)


@ns.route("/toggle")
class PlanToggle(Resource):
    @ns.expect(toggle_request, validate=True)
    def post(self) -> dict[str, Any]:
        payload = request.json or {}
        orchestrator = _run_plan(payload)
        try:
            orchestrator.toggle_date(require_date(payload["date"]), payload.get("class_id"))
        except (PlanningError, ValueError) as exc:
            ns.abort(400, str(exc))
        return serialize_plan(orchestrator)


@ns.route("/commit")
class PlanCommit(Resource):
    @ns.expect(plan_request, validate=True)
    @ns.marshal_with(commit_response)
    def post(self) -> dict[str, int]:
        orchestrator = _run_plan(request.json or {})
        try:
            result = asyncio.run(orchestrator.save(SqlTuitionLedger()))
        except CommitFailure as exc:
            current_app.logger.error("Commit failed: %s", exc)
            ns.abort(
                500,
                str(exc),
                created=exc.result.created,
                skipped=exc.result.skipped,
            )
        return {"created": result.created, "skipped": result.skipped}
