"""Assessment steps bound to stable symbolic names.

A step is any callable ``step(target_data, changes) -> (Result, message)``.
On registration it is wrapped in an AssessmentStep whose name is fixed once,
so audit output never depends on runtime introspection of a running function.
"""

from collections.abc import Callable
from typing import Any

from control_assessment_engine.evaluation.change import ChangeRegistry
from control_assessment_engine.evaluation.result import Result

StepFunc = Callable[[Any, ChangeRegistry], tuple[Result, str]]


class AssessmentStep:
    """A step callable with a stable name for reports and logs.

    Args:
        func: The check to run.
        name: Symbolic name. Defaults to the function's module-qualified name.
    """

    __slots__ = ("func", "name")

    def __init__(self, func: StepFunc, name: str | None = None) -> None:
        if not callable(func):
            raise TypeError(f"Assessment step must be callable, got {type(func).__name__}")
        self.func = func
        self.name = name or _symbolic_name(func)

    def __call__(self, target_data: Any, changes: ChangeRegistry) -> tuple[Result, str]:
        outcome = self.func(target_data, changes)
        if (
            not isinstance(outcome, tuple)
            or len(outcome) != 2
            or not isinstance(outcome[0], Result)
        ):
            raise TypeError(
                f"Assessment step '{self.name}' must return a (Result, str) pair, got {outcome!r}"
            )
        result, message = outcome
        return result, str(message)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"AssessmentStep({self.name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssessmentStep):
            return NotImplemented
        return self.func == other.func and self.name == other.name

    def __hash__(self) -> int:
        return hash((self.func, self.name))


def step(name: str) -> Callable[[StepFunc], AssessmentStep]:
    """Decorator that registers a function as a named assessment step.

    Example:
        @step("ccc.object_storage.bucket_is_private")
        def bucket_is_private(target_data, changes):
            ...
    """

    def decorator(func: StepFunc) -> AssessmentStep:
        return AssessmentStep(func, name=name)

    return decorator


def as_step(func: "StepFunc | AssessmentStep") -> AssessmentStep:
    """Wrap a callable in an AssessmentStep unless it already is one."""
    if isinstance(func, AssessmentStep):
        return func
    return AssessmentStep(func)


def _symbolic_name(func: Callable[..., Any]) -> str:
    module = getattr(func, "__module__", None)
    qualname = getattr(func, "__qualname__", None) or type(func).__qualname__
    if module:
        return f"{module}.{qualname}"
    return qualname
