"""Tests for ControlEvaluation orchestration.

Covers: empty evaluations, strict and tolerant sequencing across assessments,
cleanup after normal completion and after step exceptions, corruption
reporting and cleanup idempotence.
"""

from typing import Any
from unittest.mock import MagicMock

import pytest

from control_assessment_engine.errors import AssessmentConstructionError
from control_assessment_engine.evaluation.change import ChangeRegistry
from control_assessment_engine.evaluation.control_evaluation import ControlEvaluation
from control_assessment_engine.evaluation.result import Result
from control_assessment_engine.evaluation.steps import AssessmentStep
from control_assessment_engine.settings import Settings


def _make_evaluation(settings: Settings) -> ControlEvaluation:
    return ControlEvaluation(
        name="Prevent public access to object storage",
        control_id="CCC.ObjStor.C01",
        remediation_guide="https://example.com/remediation/objstor-c01",
        settings=settings,
    )


def _mutating_step(name: str, result: Result, revert_func: MagicMock) -> AssessmentStep:
    def check(target_data: dict[str, Any], changes: ChangeRegistry) -> tuple[Result, str]:
        target_data["ran"].append(name)
        changes.new_change(
            name,
            "bucket-1",
            f"{name} mutation",
            apply_func=MagicMock(),
            revert_func=revert_func,
        ).apply()
        return result, f"{name}: {result}"

    return AssessmentStep(check, name=name)


# ---------------------------------------------------------------------------
# Test 1: Empty evaluation
# ---------------------------------------------------------------------------


def test_evaluate_without_assessments_needs_review(settings: Settings) -> None:
    """Evaluating zero assessments yields NEEDS_REVIEW, not an error."""
    evaluation = _make_evaluation(settings)
    assert evaluation.evaluate({}, ["cloud"]) is Result.NEEDS_REVIEW
    assert evaluation.result is Result.NEEDS_REVIEW
    assert evaluation.corrupted_state is False


def test_tolerant_evaluate_without_assessments_needs_review(settings: Settings) -> None:
    """The tolerant mode treats an empty evaluation the same way."""
    evaluation = _make_evaluation(settings)
    evaluation.cleanup = MagicMock()  # type: ignore[method-assign]
    assert evaluation.tolerant_evaluate({}, ["cloud"]) is Result.NEEDS_REVIEW
    evaluation.cleanup.assert_not_called()


# ---------------------------------------------------------------------------
# Test 2: Registration
# ---------------------------------------------------------------------------


def test_add_assessment_registers_in_order(settings: Settings, make_step) -> None:
    """add_assessment builds and appends assessments in call order."""
    evaluation = _make_evaluation(settings)
    first = evaluation.add_assessment("REQ-1", "first", ["cloud"], [make_step("a")])
    second = evaluation.add_assessment("REQ-2", "second", ["cloud"], [make_step("b")])
    assert evaluation.assessments == [first, second]


def test_add_assessment_propagates_construction_error(settings: Settings) -> None:
    """An invalid assessment is rejected and not registered."""
    evaluation = _make_evaluation(settings)
    with pytest.raises(AssessmentConstructionError):
        evaluation.add_assessment("REQ-1", "", ["cloud"], [])
    assert evaluation.assessments == []


# ---------------------------------------------------------------------------
# Test 3: Strict evaluation
# ---------------------------------------------------------------------------


def test_evaluate_stops_after_failed_assessment(
    settings: Settings, make_step, recording_target
) -> None:
    """Later assessments do not run once the control result is FAILED."""
    evaluation = _make_evaluation(settings)
    evaluation.add_assessment("REQ-1", "passes", ["cloud"], [make_step("a")])
    evaluation.add_assessment("REQ-2", "fails", ["cloud"], [make_step("b", Result.FAILED)])
    skipped = evaluation.add_assessment("REQ-3", "skipped", ["cloud"], [make_step("c")])

    assert evaluation.evaluate(recording_target, ["cloud"]) is Result.FAILED
    assert recording_target["ran"] == ["a", "b"]
    assert skipped.result is Result.NOT_RUN
    assert evaluation.message == "b: Failed"


def test_evaluate_aggregates_across_assessments(
    settings: Settings, make_step, recording_target
) -> None:
    """The control result is the most severe assessment result."""
    evaluation = _make_evaluation(settings)
    evaluation.add_assessment("REQ-1", "review", ["cloud"], [make_step("a", Result.NEEDS_REVIEW)])
    evaluation.add_assessment("REQ-2", "passes", ["cloud"], [make_step("b")])
    assert evaluation.evaluate(recording_target, ["cloud"]) is Result.NEEDS_REVIEW


def test_not_applicable_assessment_does_not_lower_result(
    settings: Settings, make_step, recording_target
) -> None:
    """A skipped assessment folds in without masking a more severe result."""
    evaluation = _make_evaluation(settings)
    evaluation.add_assessment("REQ-1", "unknown", ["cloud"], [make_step("a", Result.UNKNOWN)])
    na = evaluation.add_assessment("REQ-2", "on-prem only", ["on-prem"], [make_step("b")])
    assert evaluation.evaluate(recording_target, ["cloud"]) is Result.UNKNOWN
    assert na.result is Result.NOT_APPLICABLE
    assert recording_target["ran"] == ["a"]


# ---------------------------------------------------------------------------
# Test 4: Tolerant evaluation
# ---------------------------------------------------------------------------


def test_tolerant_evaluate_runs_everything(
    settings: Settings, make_step, recording_target
) -> None:
    """Every step of every assessment runs despite failures."""
    evaluation = _make_evaluation(settings)
    evaluation.add_assessment(
        "REQ-1", "fails", ["cloud"], [make_step("a", Result.FAILED), make_step("b")]
    )
    evaluation.add_assessment("REQ-2", "passes", ["cloud"], [make_step("c")])

    assert evaluation.tolerant_evaluate(recording_target, ["cloud"]) is Result.FAILED
    assert recording_target["ran"] == ["a", "b", "c"]
    assert [a.steps_executed for a in evaluation.assessments] == [2, 1]


# ---------------------------------------------------------------------------
# Test 5: Cleanup
# ---------------------------------------------------------------------------


def test_evaluate_reverts_changes_of_every_assessment(settings: Settings, recording_target) -> None:
    """All recorded changes are reverted when the evaluation completes."""
    reverts = [MagicMock(), MagicMock()]
    evaluation = _make_evaluation(settings)
    evaluation.add_assessment(
        "REQ-1", "one", ["cloud"], [_mutating_step("one", Result.PASSED, reverts[0])]
    )
    evaluation.add_assessment(
        "REQ-2", "two", ["cloud"], [_mutating_step("two", Result.FAILED, reverts[1])]
    )

    evaluation.evaluate(recording_target, ["cloud"])

    for revert_func in reverts:
        revert_func.assert_called_once_with()
    assert evaluation.corrupted_state is False


def test_failed_revert_marks_corrupted_state(settings: Settings, recording_target) -> None:
    """A revert failure in any assessment sets corrupted_state."""
    evaluation = _make_evaluation(settings)
    evaluation.add_assessment(
        "REQ-1",
        "one",
        ["cloud"],
        [_mutating_step("one", Result.PASSED, MagicMock(side_effect=RuntimeError("locked")))],
    )
    healthy_revert = MagicMock()
    evaluation.add_assessment(
        "REQ-2", "two", ["cloud"], [_mutating_step("two", Result.PASSED, healthy_revert)]
    )

    evaluation.evaluate(recording_target, ["cloud"])

    assert evaluation.corrupted_state is True
    healthy_revert.assert_called_once_with()


def test_cleanup_runs_when_a_step_raises(settings: Settings, recording_target) -> None:
    """Changes are reverted even if a later step raises."""
    revert_func = MagicMock()

    def broken(target_data: Any, changes: ChangeRegistry) -> tuple[Result, str]:
        raise RuntimeError("step crashed")

    evaluation = _make_evaluation(settings)
    evaluation.add_assessment(
        "REQ-1", "one", ["cloud"], [_mutating_step("one", Result.PASSED, revert_func), broken]
    )

    with pytest.raises(RuntimeError, match="step crashed"):
        evaluation.evaluate(recording_target, ["cloud"])
    revert_func.assert_called_once_with()


def test_cleanup_is_idempotent(settings: Settings, recording_target) -> None:
    """Calling cleanup again after evaluation does not revert twice."""
    revert_func = MagicMock()
    evaluation = _make_evaluation(settings)
    evaluation.add_assessment(
        "REQ-1", "one", ["cloud"], [_mutating_step("one", Result.PASSED, revert_func)]
    )

    evaluation.evaluate(recording_target, ["cloud"])
    assert evaluation.cleanup() is False
    assert evaluation.cleanup() is False
    revert_func.assert_called_once_with()


def test_corrupted_state_reflects_most_recent_cleanup(
    settings: Settings, recording_target
) -> None:
    """Each cleanup pass overwrites corrupted_state with its own outcome."""
    revert_func = MagicMock()
    evaluation = _make_evaluation(settings)
    evaluation.add_assessment(
        "REQ-1", "one", ["cloud"], [_mutating_step("one", Result.PASSED, revert_func)]
    )
    evaluation.evaluate(recording_target, ["cloud"])

    evaluation.corrupted_state = True
    assert evaluation.cleanup() is False
    assert evaluation.corrupted_state is False
