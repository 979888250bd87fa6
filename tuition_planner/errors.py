"""Exceptions raised by the planning and billing engine."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .commit import CommitResult


class PlanningError(RuntimeError):
    """Base class for every planner failure."""


class SourceError(PlanningError):
    """Raised when an external data source lookup fails."""


class SelectionError(PlanningError):
    """Raised when a selected student is not enrolled in the requested class."""


class MissingClassSelector(PlanningError):
    """Raised when a manual session is added without naming its class."""


class GenerationFailure(PlanningError):
    """Raised when the latest regeneration run could not build its segments."""

    def __init__(self, message: str, *, version: int) -> None:
        super().__init__(message)
        self.version = version


class CommitFailure(PlanningError):
    """Raised when a ledger write fails part-way through a commit batch.

    ``result`` holds the counts of what was written before the failure; those
    records are kept.
    """

    def __init__(self, message: str, result: "CommitResult") -> None:
        super().__init__(message)
        self.result = result
