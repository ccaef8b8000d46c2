"""
Undo/redo history over immutable snapshots.

past is ordered oldest -> newest; the last entry is what undo restores.
"""
import copy
from typing import Callable, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")

Updater = Callable[[T], T]


class History(Generic[T]):
    """
    past / present / future snapshot store.

    set_state() with a value deep-equal to present is a no-op, so
    re-applying the same edit never adds an undo step.
    """

    def __init__(self, initial: T, limit: Optional[int] = None):
        self._past: List[T] = []
        self._present: T = copy.deepcopy(initial)
        self._future: List[T] = []
        self.limit = limit

    @property
    def present(self) -> T:
        return copy.deepcopy(self._present)

    @property
    def past(self) -> List[T]:
        return copy.deepcopy(self._past)

    @property
    def future(self) -> List[T]:
        return copy.deepcopy(self._future)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def set_state(self, value: Union[T, Updater]) -> bool:
        """
        Commit a new present value, or an updater applied to a copy of it.

        Returns:
            True if the state changed
        """
        new_value = value(copy.deepcopy(self._present)) if callable(value) else value
        if new_value == self._present:
            return False

        self._past.append(self._present)
        if self.limit is not None and len(self._past) > self.limit:
            del self._past[: len(self._past) - self.limit]
        self._present = copy.deepcopy(new_value)
        self._future = []
        return True

    def undo(self) -> bool:
        if not self._past:
            return False
        self._future.insert(0, self._present)
        self._present = self._past.pop()
        return True

    def redo(self) -> bool:
        if not self._future:
            return False
        self._past.append(self._present)
        self._present = self._future.pop(0)
        return True

    def reset(self, value: T) -> None:
        """Start over from value with empty stacks."""
        self._past = []
        self._present = copy.deepcopy(value)
        self._future = []
