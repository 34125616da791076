"""Assessment — ordered checks for a single requirement.

An Assessment owns its steps and the registry of Changes those steps record.
Execution follows a small state machine:

- NOT_RUN -> NOT_APPLICABLE when no applicability tag matches the target
- NOT_RUN -> PASSED | NEEDS_REVIEW | UNKNOWN | FAILED once steps have run

run() halts at the first step that makes the aggregate FAILED.
run_tolerate_failures() always runs every step.
"""

import threading
import time
from collections.abc import Iterable, Sequence
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from control_assessment_engine.errors import AssessmentConstructionError
from control_assessment_engine.evaluation.change import (
    ApplyFunc,
    Change,
    ChangeRegistry,
    RevertFunc,
)
from control_assessment_engine.evaluation.result import Result, update_aggregate_result
from control_assessment_engine.evaluation.steps import AssessmentStep, StepFunc, as_step
from control_assessment_engine.observability import get_logger

if TYPE_CHECKING:
    from control_assessment_engine.evaluation.schemas import AssessmentReport

logger = get_logger(__name__)


class Assessment:
    """Execution of one requirement's checks against a target.

    Args:
        requirement_id: Identifier of the requirement being tested.
        description: Human-readable description of the test.
        applicability: Tags naming the contexts this assessment applies to.
        steps: Checks to run, in order.

    Raises:
        AssessmentConstructionError: If any argument is empty. The exception
            carries the rejected assessment with result UNKNOWN.

    Attributes:
        result: Aggregate of the step results so far.
        message: Message returned by the last step run, or a diagnostic.
        steps_executed: Number of steps invoked by the last run.
        run_duration: Time spent in the step loop, if it was entered.
        value: Opaque value a step may attach for reporting.
        changes: Changes recorded by this assessment's steps.
    """

    def __init__(
        self,
        requirement_id: str,
        description: str,
        applicability: Iterable[str] | str,
        steps: Sequence["StepFunc | AssessmentStep"],
    ) -> None:
        self.requirement_id = requirement_id
        self.description = description
        self.applicability: list[str] = _as_tag_list(applicability)
        self.steps: list[AssessmentStep] = [as_step(s) for s in steps or []]
        self.result = Result.NOT_RUN
        self.message = ""
        self.steps_executed = 0
        self.run_duration: timedelta | None = None
        self.value: Any = None
        self.changes = ChangeRegistry()

        error = self._precheck()
        if error is not None:
            raise AssessmentConstructionError(error, assessment=self)

    def __repr__(self) -> str:
        return (
            f"Assessment(requirement_id={self.requirement_id!r}, result={self.result}, "
            f"steps_executed={self.steps_executed})"
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_step(self, step: "StepFunc | AssessmentStep") -> AssessmentStep:
        """Queue a step after the existing ones.

        Args:
            step: A step callable or AssessmentStep.

        Returns:
            The registered AssessmentStep.
        """
        registered = as_step(step)
        self.steps.append(registered)
        return registered

    def new_change(
        self,
        change_name: str,
        target_name: str,
        description: str,
        target_object: Any = None,
        apply_func: ApplyFunc | None = None,
        revert_func: RevertFunc | None = None,
    ) -> Change:
        """Create a change and record it in this assessment's registry."""
        return self.changes.new_change(
            name=change_name,
            target_name=target_name,
            description=description,
            target_object=target_object,
            apply_func=apply_func,
            revert_func=revert_func,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def is_applicable(self, target_applicability: Iterable[str] | str) -> bool:
        """Return True if any of this assessment's tags matches the target."""
        return not set(self.applicability).isdisjoint(_as_tags(target_applicability))

    def run(
        self,
        target_data: Any,
        target_applicability: Iterable[str] | str,
        cancel_event: threading.Event | None = None,
    ) -> Result:
        """Run steps in order, halting once the aggregate becomes FAILED.

        Args:
            target_data: Opaque data handed to every step.
            target_applicability: Tags describing the target context.
            cancel_event: When set, no further steps are started.

        Returns:
            The aggregate result.
        """
        return self._execute(target_data, target_applicability, cancel_event, halt_on_failure=True)

    def run_tolerate_failures(
        self,
        target_data: Any,
        target_applicability: Iterable[str] | str,
        cancel_event: threading.Event | None = None,
    ) -> Result:
        """Run every step in order regardless of intermediate failures.

        Args:
            target_data: Opaque data handed to every step.
            target_applicability: Tags describing the target context.
            cancel_event: When set, no further steps are started.

        Returns:
            The aggregate result.
        """
        return self._execute(target_data, target_applicability, cancel_event, halt_on_failure=False)

    def revert_changes(self) -> bool:
        """Revert every eligible change recorded by this assessment.

        Returns:
            True if any eligible change could not be fully reverted.
        """
        corrupted = self.changes.revert_all()
        if corrupted:
            logger.error(
                "Assessment left unreverted changes",
                requirement_id=self.requirement_id,
                changes=[
                    name
                    for name, change in self.changes.items()
                    if change.needs_revert and (change.error is not None or not change.reverted)
                ],
            )
        return corrupted

    def to_report(self) -> "AssessmentReport":
        """Build the serializable report for this assessment."""
        from control_assessment_engine.evaluation.schemas import AssessmentReport

        return AssessmentReport.from_assessment(self)

    def _execute(
        self,
        target_data: Any,
        target_applicability: Iterable[str] | str,
        cancel_event: threading.Event | None,
        halt_on_failure: bool,
    ) -> Result:
        error = self._precheck()
        if error is not None:
            logger.warning(
                "Assessment precheck failed", requirement_id=self.requirement_id, message=error
            )
            return self.result

        self.result = Result.NOT_RUN
        self.steps_executed = 0
        self.run_duration = None

        if not self.is_applicable(target_applicability):
            self.result = Result.NOT_APPLICABLE
            logger.info(
                "Assessment not applicable",
                requirement_id=self.requirement_id,
                applicability=self.applicability,
            )
            return self.result

        start_time = time.monotonic()
        for step in self.steps:
            if cancel_event is not None and cancel_event.is_set():
                self._mark_cancelled()
                break
            if self._run_step(target_data, step) is Result.FAILED and halt_on_failure:
                logger.info(
                    "Assessment halted on failed step",
                    requirement_id=self.requirement_id,
                    step=step.name,
                    steps_executed=self.steps_executed,
                )
                break
        self.run_duration = timedelta(seconds=time.monotonic() - start_time)

        logger.info(
            "Assessment run complete",
            requirement_id=self.requirement_id,
            result=str(self.result),
            steps_executed=self.steps_executed,
            tolerant=not halt_on_failure,
        )
        return self.result

    def _run_step(self, target_data: Any, step: AssessmentStep) -> Result:
        self.steps_executed += 1
        result, message = step(target_data, self.changes)
        self.result = update_aggregate_result(self.result, result)
        self.message = message
        logger.debug(
            "Assessment step complete",
            requirement_id=self.requirement_id,
            step=step.name,
            result=str(result),
        )
        return self.result

    def _mark_cancelled(self) -> None:
        """Fold UNKNOWN into the result for steps that were never started."""
        self.result = update_aggregate_result(self.result, Result.UNKNOWN)
        self.message = (
            f"run cancelled after {self.steps_executed} of {len(self.steps)} steps; "
            "remaining steps were not evaluated"
        )
        logger.warning(
            "Assessment cancelled",
            requirement_id=self.requirement_id,
            steps_executed=self.steps_executed,
        )

    def _precheck(self) -> str | None:
        """Verify required fields, marking the assessment UNKNOWN on failure.

        Returns:
            A diagnostic message if validation failed, else None.
        """
        if self.requirement_id and self.description and self.applicability and self.steps:
            return None
        message = (
            "expected all Assessment fields to have a value, but got: "
            f"requirement_id=len({len(self.requirement_id or '')}), "
            f"description=len({len(self.description or '')}), "
            f"applicability=len({len(self.applicability)}), "
            f"steps=len({len(self.steps)})"
        )
        self.result = Result.UNKNOWN
        self.message = message
        return message


def _as_tag_list(applicability: Iterable[str] | str | None) -> list[str]:
    if not applicability:
        return []
    if isinstance(applicability, str):
        return [applicability]
    return list(applicability)


def _as_tags(target_applicability: Iterable[str] | str | None) -> set[str]:
    if target_applicability is None:
        return set()
    if isinstance(target_applicability, str):
        return {target_applicability}
    return set(target_applicability)
