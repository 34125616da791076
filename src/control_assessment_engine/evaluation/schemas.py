"""Pydantic report models for assessment output.

Results serialize as their string tokens ("Passed", "Needs Review", ...),
steps as their symbolic names, and errors as their messages. Target objects
and opaque step values are reported by repr only, never serialized.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from control_assessment_engine.evaluation.result import Result

if TYPE_CHECKING:
    from control_assessment_engine.evaluation.assessment import Assessment
    from control_assessment_engine.evaluation.change import Change
    from control_assessment_engine.evaluation.control_evaluation import ControlEvaluation


class ChangeReport(BaseModel):
    """Serialized state of a single Change."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Registry key of the change")
    target_name: str = Field(..., description="Identifier of the mutated target")
    description: str = Field(..., description="Human-readable description of the mutation")
    target_object: str | None = Field(
        default=None, description="repr of the target object, if still alive"
    )
    applied: bool = Field(..., description="Whether the apply procedure succeeded")
    reverted: bool = Field(..., description="Whether the revert procedure succeeded")
    error: str | None = Field(default=None, description="Last procedure failure, if any")

    @classmethod
    def from_change(cls, change: Change) -> ChangeReport:
        target = change.target_object
        return cls(
            name=change.name,
            target_name=change.target_name,
            description=change.description,
            target_object=repr(target) if target is not None else None,
            applied=change.applied,
            reverted=change.reverted,
            error=str(change.error) if change.error is not None else None,
        )


class AssessmentReport(BaseModel):
    """Serialized outcome of one Assessment."""

    model_config = ConfigDict(frozen=True)

    requirement_id: str
    description: str
    applicability: list[str]
    result: Result
    message: str
    steps: list[str] = Field(..., description="Symbolic names of the registered steps")
    steps_executed: int
    run_duration_seconds: float | None = None
    value: str | None = Field(default=None, description="repr of the value attached by a step")
    changes: dict[str, ChangeReport] = Field(default_factory=dict)

    @classmethod
    def from_assessment(cls, assessment: Assessment) -> AssessmentReport:
        duration = assessment.run_duration
        return cls(
            requirement_id=assessment.requirement_id,
            description=assessment.description,
            applicability=list(assessment.applicability),
            result=assessment.result,
            message=assessment.message,
            steps=[step.name for step in assessment.steps],
            steps_executed=assessment.steps_executed,
            run_duration_seconds=duration.total_seconds() if duration is not None else None,
            value=repr(assessment.value) if assessment.value is not None else None,
            changes={
                name: ChangeReport.from_change(change)
                for name, change in assessment.changes.items()
            },
        )


class ControlEvaluationReport(BaseModel):
    """Serialized outcome of a ControlEvaluation and all its assessments."""

    model_config = ConfigDict(frozen=True)

    name: str
    control_id: str
    result: Result
    message: str
    corrupted_state: bool
    remediation_guide: str
    assessments: list[AssessmentReport] = Field(default_factory=list)

    @classmethod
    def from_control_evaluation(cls, evaluation: ControlEvaluation) -> ControlEvaluationReport:
        return cls(
            name=evaluation.name,
            control_id=evaluation.control_id,
            result=evaluation.result,
            message=evaluation.message,
            corrupted_state=evaluation.corrupted_state,
            remediation_guide=evaluation.remediation_guide,
            assessments=[
                AssessmentReport.from_assessment(assessment)
                for assessment in evaluation.assessments
            ],
        )
