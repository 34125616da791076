"""Reversible side effects recorded by assessment steps.

A step that mutates the target environment records the mutation as a Change
in its assessment's ChangeRegistry. Every applied Change is reverted when the
owning control evaluation finishes, whether it completes normally or is
interrupted by a termination signal. Because both paths may revert the same
Change, apply and revert are idempotent and update their flags under a
per-Change lock.
"""

import threading
import weakref
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from control_assessment_engine.observability import get_logger

logger = get_logger(__name__)

ApplyFunc = Callable[[], Any]
RevertFunc = Callable[[], Any]


class Change:
    """One reversible mutation applied to the target environment.

    Procedures are zero-argument callables. A procedure that raises has
    failed; the exception is recorded on ``error`` and never propagated.

    Attributes:
        name: Key of this change within its assessment's registry.
        target_name: Identifier of the mutated target.
        description: Human-readable description of the mutation.
        applied: True once the apply procedure has succeeded.
        reverted: True once the revert procedure has succeeded.
        error: The last failure raised by a procedure, if any.
    """

    def __init__(
        self,
        name: str,
        target_name: str,
        description: str,
        target_object: Any = None,
        apply_func: ApplyFunc | None = None,
        revert_func: RevertFunc | None = None,
    ) -> None:
        self.name = name
        self.target_name = target_name
        self.description = description
        self.applied = False
        self.reverted = False
        self.error: Exception | None = None
        self._apply_func = apply_func
        self._revert_func = revert_func
        self._target_ref = _make_reference(target_object)
        self._lock = threading.RLock()
        self._reverting = False

    def __repr__(self) -> str:
        return (
            f"Change(name={self.name!r}, target_name={self.target_name!r}, "
            f"applied={self.applied}, reverted={self.reverted}, error={self.error!r})"
        )

    @property
    def target_object(self) -> Any:
        """The mutated object, or None once it has been garbage-collected."""
        return self._target_ref()

    def apply(self) -> bool:
        """Run the apply procedure unless the change is already in effect.

        Returns:
            True if the change is applied after the call.
        """
        with self._lock:
            if self.applied and not self.reverted:
                return True
            if self._apply_func is None:
                self.error = RuntimeError(f"Change '{self.name}' has no apply procedure")
                return False
            try:
                self._apply_func()
            except Exception as exc:
                self.error = exc
                logger.warning(
                    "Change apply failed",
                    change=self.name,
                    target=self.target_name,
                    error=str(exc),
                )
                return False
            self.applied = True
            self.reverted = False
            self.error = None
            return True

    def revert(self) -> bool:
        """Run the revert procedure unless the change is already reverted.

        The ``applied`` flag and any earlier ``error`` are left untouched, so a
        change whose apply failed part-way is still reported after it is rolled
        back. A revert that re-enters while
        another revert of the same change is in progress returns without
        invoking the procedure again.

        Returns:
            True if the change is reverted after the call.
        """
        with self._lock:
            if self.reverted or self._reverting:
                return self.reverted
            if self._revert_func is None:
                self.error = RuntimeError(f"Change '{self.name}' has no revert procedure")
                return False
            self._reverting = True
            try:
                self._revert_func()
            except Exception as exc:
                self.error = exc
                logger.error(
                    "Change revert failed",
                    change=self.name,
                    target=self.target_name,
                    error=str(exc),
                )
                return False
            finally:
                self._reverting = False
            self.reverted = True
            return True

    @property
    def needs_revert(self) -> bool:
        """True if this change must be considered by a revert pass."""
        return self.applied or self.error is not None


class ChangeRegistry(Mapping[str, Change]):
    """Changes recorded by one assessment, keyed by change name.

    Steps may add or overwrite entries but cannot remove them.
    """

    def __init__(self) -> None:
        self._changes: dict[str, Change] = {}

    def __getitem__(self, name: str) -> Change:
        return self._changes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._changes)

    def __len__(self) -> int:
        return len(self._changes)

    def register(self, name: str, change: Change) -> Change:
        """Store a change under the given name, replacing any previous entry.

        Args:
            name: Registry key.
            change: The change to store.

        Returns:
            The stored change.
        """
        if name in self._changes:
            logger.debug("Overwriting registered change", change=name)
        self._changes[name] = change
        return change

    def new_change(
        self,
        name: str,
        target_name: str,
        description: str,
        target_object: Any = None,
        apply_func: ApplyFunc | None = None,
        revert_func: RevertFunc | None = None,
    ) -> Change:
        """Create a change and register it under its name.

        Args:
            name: Registry key and change name.
            target_name: Identifier of the target being mutated.
            description: Human-readable description of the mutation.
            target_object: The mutated object, kept for reporting only.
            apply_func: Procedure that applies the mutation.
            revert_func: Procedure that undoes the mutation.

        Returns:
            The newly registered change. It has not been applied yet.
        """
        change = Change(
            name=name,
            target_name=target_name,
            description=description,
            target_object=target_object,
            apply_func=apply_func,
            revert_func=revert_func,
        )
        return self.register(name, change)

    def revert_all(self) -> bool:
        """Revert every eligible change.

        A change is eligible if it was applied or carries an error. Every
        change is visited even when an earlier revert fails.

        Returns:
            True if any eligible change is left unreverted or with an error.
        """
        corrupted = False
        for change in self._changes.values():
            if not change.needs_revert:
                continue
            if not change.reverted:
                change.revert()
            if change.error is not None or not change.reverted:
                corrupted = True
        return corrupted


def _make_reference(target_object: Any) -> Callable[[], Any]:
    """Build a weak reference to the target, or a strong one if unsupported."""
    if target_object is None:
        return lambda: None
    try:
        return weakref.ref(target_object)
    except TypeError:
        return lambda: target_object
