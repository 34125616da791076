"""Test fixtures for control-assessment-engine.

Provides:
- settings: Settings with the interrupt listener disabled
- interrupt_settings: Settings with the listener armed but no process exit
- make_step: factory for named steps returning a fixed result
- recording_target: a dict target that records which steps ran
"""

from collections.abc import Callable
from typing import Any

import pytest

from control_assessment_engine.evaluation.change import ChangeRegistry
from control_assessment_engine.evaluation.result import Result
from control_assessment_engine.evaluation.steps import AssessmentStep
from control_assessment_engine.settings import Settings

StepFactory = Callable[..., AssessmentStep]


@pytest.fixture()
def settings() -> Settings:
    """Return settings that never install signal handlers.

    Returns:
        Settings with handle_interrupts disabled.
    """
    return Settings(handle_interrupts=False)


@pytest.fixture()
def interrupt_settings() -> Settings:
    """Return settings that arm the listener but keep the process alive.

    Returns:
        Settings handling SIGTERM with exit_on_interrupt disabled.
    """
    return Settings(
        handle_interrupts=True,
        interrupt_signals=["SIGTERM"],
        exit_on_interrupt=False,
    )


@pytest.fixture()
def recording_target() -> dict[str, Any]:
    """Return target data whose 'ran' list records step invocations.

    Returns:
        A dict with an empty 'ran' list.
    """
    return {"ran": []}


@pytest.fixture()
def make_step() -> StepFactory:
    """Create named steps that append their name to target_data['ran'].

    Returns:
        Factory taking (name, result, message) and returning an AssessmentStep.
    """

    def factory(name: str, result: Result = Result.PASSED, message: str = "") -> AssessmentStep:
        def check(target_data: dict[str, Any], changes: ChangeRegistry) -> tuple[Result, str]:
            target_data["ran"].append(name)
            return result, message or f"{name}: {result}"

        return AssessmentStep(check, name=name)

    return factory
