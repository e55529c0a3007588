from __future__ import annotations

import logging
from typing import Protocol

log = logging.getLogger(__name__)


class UiNotifier(Protocol):
    def notify(self, status: str) -> None:
        ...

    def hide(self) -> None:
        ...

    def show(self) -> None:
        ...


class LoggingUiNotifier:
    """Headless notifier: status lines go to the application log."""

    def notify(self, status: str) -> None:
        log.info(f"[STATUS] {status}")

    def hide(self) -> None:
        log.debug("[WINDOW] hide requested")

    def show(self) -> None:
        log.debug("[WINDOW] show requested")
