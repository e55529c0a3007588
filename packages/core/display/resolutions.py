from __future__ import annotations

import threading
from typing import Tuple

from packages.shared.config import Resolution


class ResolutionConfig:
    """The game/desktop resolution pair. Swapped as a whole, safe to read from any thread."""

    def __init__(self, game: Resolution, desktop: Resolution) -> None:
        self._lock = threading.Lock()
        self._game = game
        self._desktop = desktop

    @property
    def game(self) -> Resolution:
        with self._lock:
            return self._game

    @property
    def desktop(self) -> Resolution:
        with self._lock:
            return self._desktop

    def update(self, game: Resolution, desktop: Resolution) -> Tuple[Resolution, Resolution]:
        """Replace both resolutions. Returns the previous (game, desktop) pair."""
        with self._lock:
            old = (self._game, self._desktop)
            self._game = game
            self._desktop = desktop
            return old
