from __future__ import annotations

from collections import deque
from typing import Optional


class StabilityFilter:
    """
    Debounces raw per-tick judgements.

    The confirmed state only changes once the last `size` raw judgements all
    agree; a mixed window keeps whatever was confirmed before.
    """

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("size must be >= 1")
        self._size = size
        self._window: deque[bool] = deque(maxlen=size)
        self._confirmed: Optional[bool] = None

    @property
    def confirmed(self) -> Optional[bool]:
        """Last confirmed state, None until the first agreement."""
        return self._confirmed

    @property
    def window(self) -> tuple[bool, ...]:
        return tuple(self._window)

    def update(self, raw: bool) -> Optional[bool]:
        """Add a judgement. Returns the new state on a confirmed change, else None."""
        self._window.append(raw)
        if len(self._window) < self._size:
            return None
        first = self._window[0]
        if any(r != first for r in self._window):
            return None
        if first == self._confirmed:
            return None
        self._confirmed = first
        return first

    def force(self, state: bool) -> Optional[bool]:
        """Set the confirmed state directly and drop pending judgements."""
        self._window.clear()
        if state == self._confirmed:
            return None
        self._confirmed = state
        return state

    def reset(self) -> None:
        self._window.clear()
        self._confirmed = None
