"""ControlEvaluation — runs every assessment for one control.

Assessments run sequentially in registration order and their results are
folded into a single control result with the same dominance rule used for
steps. Whatever happens during the run, every change recorded by any
assessment is reverted afterwards. A termination signal received while the
evaluation is armed triggers the same cleanup before the process exits.
"""

import threading
from collections.abc import Iterable, Sequence
from contextlib import nullcontext
from typing import TYPE_CHECKING, Any

from control_assessment_engine.evaluation.assessment import Assessment
from control_assessment_engine.evaluation.interrupt import InterruptListener
from control_assessment_engine.evaluation.result import Result, update_aggregate_result
from control_assessment_engine.evaluation.steps import AssessmentStep, StepFunc
from control_assessment_engine.observability import get_logger
from control_assessment_engine.settings import Settings, get_settings

if TYPE_CHECKING:
    from control_assessment_engine.evaluation.schemas import ControlEvaluationReport

logger = get_logger(__name__)


class ControlEvaluation:
    """Evaluation of a single control across its assessments.

    Args:
        name: Human-readable name of the evaluation.
        control_id: Identifier of the control being evaluated.
        remediation_guide: Reference to remediation documentation.
        settings: Engine settings. Defaults to get_settings().

    Attributes:
        result: Aggregate of the assessment results.
        message: Message of the last assessment run.
        corrupted_state: Outcome of the most recent cleanup pass only. Each pass
            recomputes it, so a later pass that reverts the remaining changes
            clears a flag set by an earlier, interrupted one.
        assessments: Assessments owned by this evaluation, in run order.
    """

    def __init__(
        self,
        name: str,
        control_id: str,
        remediation_guide: str = "",
        settings: Settings | None = None,
    ) -> None:
        self.name = name
        self.control_id = control_id
        self.remediation_guide = remediation_guide
        self.result = Result.NOT_RUN
        self.message = ""
        self.corrupted_state = False
        self.assessments: list[Assessment] = []
        self._settings = settings if settings is not None else get_settings()
        self._cleanup_lock = threading.RLock()

    def __repr__(self) -> str:
        return (
            f"ControlEvaluation(control_id={self.control_id!r}, result={self.result}, "
            f"assessments={len(self.assessments)})"
        )

    def add_assessment(
        self,
        requirement_id: str,
        description: str,
        applicability: Iterable[str],
        steps: Sequence["StepFunc | AssessmentStep"],
    ) -> Assessment:
        """Build an assessment and register it on this evaluation.

        Raises:
            AssessmentConstructionError: If any argument is empty. Nothing is
                registered in that case.
        """
        assessment = Assessment(requirement_id, description, applicability, steps)
        return self.register_assessment(assessment)

    def register_assessment(self, assessment: Assessment) -> Assessment:
        """Append an already-built assessment to the run order."""
        self.assessments.append(assessment)
        return assessment

    def evaluate(self, target_data: Any, target_applicability: Iterable[str] | str) -> Result:
        """Run every assessment, stopping once the control result is FAILED.

        Args:
            target_data: Opaque data handed to every step.
            target_applicability: Tags describing the target context.

        Returns:
            The aggregate control result.
        """
        return self._evaluate(target_data, target_applicability, tolerant=False)

    def tolerant_evaluate(
        self, target_data: Any, target_applicability: Iterable[str] | str
    ) -> Result:
        """Run every step of every assessment regardless of failures.

        Args:
            target_data: Opaque data handed to every step.
            target_applicability: Tags describing the target context.

        Returns:
            The aggregate control result.
        """
        return self._evaluate(target_data, target_applicability, tolerant=True)

    def cleanup(self) -> bool:
        """Revert the changes of every assessment.

        Safe to call more than once; already-reverted changes are skipped.
        corrupted_state is overwritten with the outcome of this pass.

        Returns:
            True if any assessment still has changes that are not reverted.
        """
        with self._cleanup_lock:
            corrupted = False
            for assessment in self.assessments:
                if assessment.revert_changes():
                    corrupted = True
            self.corrupted_state = corrupted
        if corrupted:
            logger.error(
                "Control evaluation left the target in a corrupted state",
                control_id=self.control_id,
            )
        return corrupted

    def to_report(self) -> "ControlEvaluationReport":
        """Build the serializable report for this evaluation."""
        from control_assessment_engine.evaluation.schemas import ControlEvaluationReport

        return ControlEvaluationReport.from_control_evaluation(self)

    def _evaluate(
        self, target_data: Any, target_applicability: Iterable[str] | str, tolerant: bool
    ) -> Result:
        if not self.assessments:
            self.result = Result.NEEDS_REVIEW
            logger.info("No assessments registered", control_id=self.control_id)
            return self.result

        logger.info(
            "Starting control evaluation",
            control_id=self.control_id,
            assessments=len(self.assessments),
            tolerant=tolerant,
        )

        listener = InterruptListener(
            on_interrupt=self.cleanup,
            signals=self._settings.interrupt_signals,
            exit_on_interrupt=self._settings.exit_on_interrupt,
            exit_code=self._settings.interrupt_exit_code,
        )
        armed = listener if self._settings.handle_interrupts else nullcontext()
        # The listener stays armed through the final revert pass.
        with armed:
            try:
                self._run_assessments(
                    target_data, target_applicability, tolerant, listener.cancel_event
                )
            finally:
                self.cleanup()

        logger.info(
            "Control evaluation complete",
            control_id=self.control_id,
            result=str(self.result),
            corrupted_state=self.corrupted_state,
        )
        return self.result

    def _run_assessments(
        self,
        target_data: Any,
        target_applicability: Iterable[str] | str,
        tolerant: bool,
        cancel_event: threading.Event,
    ) -> None:
        self.result = Result.NOT_RUN
        for index, assessment in enumerate(self.assessments):
            if cancel_event.is_set():
                self._mark_cancelled(skipped=len(self.assessments) - index)
                break
            if tolerant:
                result = assessment.run_tolerate_failures(
                    target_data, target_applicability, cancel_event
                )
            else:
                result = assessment.run(target_data, target_applicability, cancel_event)
            self.result = update_aggregate_result(self.result, result)
            self.message = assessment.message
            if not tolerant and self.result is Result.FAILED:
                logger.info(
                    "Control evaluation halted on failed assessment",
                    control_id=self.control_id,
                    requirement_id=assessment.requirement_id,
                )
                break

    def _mark_cancelled(self, skipped: int) -> None:
        self.result = update_aggregate_result(self.result, Result.UNKNOWN)
        self.message = f"evaluation cancelled; {skipped} assessment(s) were not run"
        logger.warning(
            "Control evaluation cancelled", control_id=self.control_id, skipped=skipped
        )
