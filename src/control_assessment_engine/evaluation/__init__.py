"""Assessment execution engine.

Runs ordered checks against a target environment, aggregates their outcomes
into a severity-ranked result, and reverts any side effects the checks made.

Modules:
- result: outcome values and the aggregation rule
- change: reversible side effects and the per-assessment registry
- steps: named assessment steps
- assessment: ordered checks for one requirement
- control_evaluation: orchestration of assessments for one control
- interrupt: signal-driven emergency cleanup
- schemas: serialized reports
"""

from control_assessment_engine.evaluation.assessment import Assessment
from control_assessment_engine.evaluation.change import Change, ChangeRegistry
from control_assessment_engine.evaluation.control_evaluation import ControlEvaluation
from control_assessment_engine.evaluation.interrupt import InterruptListener
from control_assessment_engine.evaluation.result import (
    Result,
    aggregate_results,
    update_aggregate_result,
)
from control_assessment_engine.evaluation.schemas import (
    AssessmentReport,
    ChangeReport,
    ControlEvaluationReport,
)
from control_assessment_engine.evaluation.steps import AssessmentStep, as_step, step

__all__ = [
    "Assessment",
    "AssessmentReport",
    "AssessmentStep",
    "Change",
    "ChangeRegistry",
    "ChangeReport",
    "ControlEvaluation",
    "ControlEvaluationReport",
    "InterruptListener",
    "Result",
    "aggregate_results",
    "as_step",
    "step",
    "update_aggregate_result",
]
