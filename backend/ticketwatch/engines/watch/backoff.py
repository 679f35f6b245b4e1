"""Wait schedule used while a ticket id has not been issued yet."""

from collections.abc import Sequence


class BackoffSchedule:
    """
    Ordered wait durations with a cursor that saturates at the last step.

    Create a fresh schedule for every ticket id the watcher waits on.
    Once the list is exhausted the final duration repeats forever.
    """

    def __init__(self, durations: Sequence[float]):
        if not durations:
            raise ValueError("BackoffSchedule needs at least one duration")
        self.durations = tuple(float(d) for d in durations)
        self._index = 0

    def current(self) -> float:
        """Duration to wait before the next attempt."""
        return self.durations[self._index]

    def advance(self) -> None:
        """Move to the next duration, holding at the last one."""
        if self._index < len(self.durations) - 1:
            self._index += 1

    def reset(self) -> None:
        self._index = 0

    @property
    def exhausted(self) -> bool:
        """True once the cursor sits on the final duration."""
        return self._index == len(self.durations) - 1

    def __repr__(self) -> str:
        return f"BackoffSchedule({list(self.durations)!r}, index={self._index})"
