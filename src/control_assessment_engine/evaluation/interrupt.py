"""Interrupt listener armed around a control evaluation.

While armed, termination signals trigger the evaluation's cleanup path before
the process exits, so changes applied to the target environment are reverted
even when a run is cut short. The listener also sets a cancellation event that
the evaluation loops check between steps, which lets callers that disable the
hard exit stop a run cooperatively.

Signal handlers can only be installed from the main thread. Elsewhere the
listener stays passive and changes are reverted at normal completion only.
"""

import signal
import threading
from collections.abc import Callable, Iterable
from types import FrameType, TracebackType
from typing import Any

from control_assessment_engine.observability import get_logger

logger = get_logger(__name__)

DEFAULT_SIGNALS = ("SIGINT", "SIGTERM")

_TERMINATION_BANNER = (
    "Unexpected termination. Attempting to revert changes made by the active "
    "ControlEvaluation. Do not interrupt this process."
)


class InterruptListener:
    """Context manager that reverts changes when the process is interrupted.

    Args:
        on_interrupt: Cleanup callback run when a signal arrives.
        signals: Names of the signals to handle, e.g. "SIGTERM".
        exit_on_interrupt: Raise SystemExit after cleanup.
        exit_code: Exit status passed to SystemExit.
        cancel_event: Event set when a signal arrives. A new one is created
            if not provided.
    """

    def __init__(
        self,
        on_interrupt: Callable[[], Any],
        signals: Iterable[str] = DEFAULT_SIGNALS,
        exit_on_interrupt: bool = True,
        exit_code: int = 0,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._on_interrupt = on_interrupt
        self._signals = [_resolve_signal(name) for name in signals]
        self._exit_on_interrupt = exit_on_interrupt
        self._exit_code = exit_code
        self.cancel_event = cancel_event or threading.Event()
        self.received: signal.Signals | None = None
        self._previous: dict[signal.Signals, Any] = {}

    @property
    def armed(self) -> bool:
        """True while handlers installed by this listener are active."""
        return bool(self._previous)

    def __enter__(self) -> "InterruptListener":
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Interrupt listener not armed outside the main thread")
            return self
        for signum in self._signals:
            self._previous[signum] = signal.getsignal(signum)
            signal.signal(signum, self._handle)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        for signum, previous in self._previous.items():
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        self.received = signal.Signals(signum)
        self.cancel_event.set()
        logger.warning(_TERMINATION_BANNER, signal=self.received.name)
        self._on_interrupt()
        if self._exit_on_interrupt:
            raise SystemExit(self._exit_code)


def _resolve_signal(name: str) -> signal.Signals:
    try:
        return signal.Signals[name.upper()]
    except KeyError:
        raise ValueError(f"Unknown signal name '{name}'") from None
