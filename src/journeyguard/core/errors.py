"""Error taxonomy for the decision pipeline.

Only ``BrowserLaunchError`` is meant to escape a run. Everything else is caught
at a component boundary and turned into data (a failed step, a FAILURE
attempt, a baseline limit).
"""

from __future__ import annotations

from typing import Any


class JourneyGuardError(Exception):
    """Base class for all journeyguard errors."""


class StepFailure(JourneyGuardError):
    """A single step failed after its retry."""

    def __init__(self, step_id: str, message: str) -> None:
        super().__init__(message)
        self.step_id = step_id


class ElementNotFound(StepFailure):
    """None of a step's candidate selectors resolved."""


class AttemptFailure(JourneyGuardError):
    """A non-optional step failed and aborted the attempt.

    ``result`` is the finalized, failed ``StepResult`` of that step.
    """

    def __init__(self, step_id: str, cause: StepFailure, result: Any) -> None:
        super().__init__(f'Step "{step_id}" failed: {cause}')
        self.step_id = step_id
        self.cause = cause
        self.result = result


class BaselineUnusable(JourneyGuardError):
    """The stored baseline for a target is missing fields or unreadable."""


class UnknownAttempt(JourneyGuardError):
    """An attempt or flow id is not present in the registry."""


class BrowserLaunchError(JourneyGuardError):
    """The browser pool could not be started. Fatal for the run."""
