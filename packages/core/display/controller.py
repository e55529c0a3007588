"""
Display mode switching.

NircmdDisplayController shells out to NirSoft's nircmd
(`nircmd setdisplay W H 32`). The binary is looked up once, next to the
app, in the working directory, under resources/, then on PATH. Every call
runs with a timeout so a hung display driver can't stall the monitor.

ResolutionSwitcher wraps any controller with a fixed retry/backoff policy.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from packages.core.monitor.types import ActionFailure
from packages.shared.config import Resolution
from packages.shared.paths import tool_search_dirs

log = logging.getLogger(__name__)

NIRCMD_EXE = "nircmd.exe"


class DisplayController(Protocol):
    def apply(self, width: int, height: int) -> None:
        """Switch the primary display mode. Raises ActionFailure."""
        ...


def _candidate_paths(configured: Optional[str]) -> List[Path]:
    paths: List[Path] = []
    if configured:
        paths.append(Path(configured))
    paths.extend(d / NIRCMD_EXE for d in tool_search_dirs())
    return paths


class NircmdDisplayController:
    def __init__(self, nircmd_path: Optional[str] = None, timeout: float = 10.0) -> None:
        self._timeout = timeout
        self._nircmd_path = self._detect_nircmd_path(nircmd_path)

    @staticmethod
    def _detect_nircmd_path(configured: Optional[str]) -> Optional[str]:
        for p in _candidate_paths(configured):
            if p.is_file():
                log.debug(f"Found nircmd at: {p}")
                return str(p)
        found = shutil.which("nircmd") or shutil.which(NIRCMD_EXE)
        if found:
            log.debug(f"Found nircmd on PATH: {found}")
        else:
            log.warning("nircmd not found, resolution changes will fail until it is installed")
        return found

    def apply(self, width: int, height: int) -> None:
        if not self._nircmd_path:
            raise ActionFailure("nircmd executable not found")
        cmd = [self._nircmd_path, "setdisplay", str(width), str(height), "32"]
        log.info(f"Executing: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                creationflags=subprocess.CREATE_NO_WINDOW if hasattr(subprocess, 'CREATE_NO_WINDOW') else 0
            )
        except subprocess.TimeoutExpired as e:
            raise ActionFailure(f"nircmd timed out after {self._timeout:.0f}s") from e
        except OSError as e:
            raise ActionFailure(f"nircmd could not be started: {e}") from e
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise ActionFailure(f"nircmd exited with code {result.returncode}" + (f": {detail}" if detail else ""))


class ResolutionSwitcher:
    """Applies a Resolution through a controller, retrying on failure."""

    def __init__(
        self,
        controller: DisplayController,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._controller = controller
        self._attempts = max(1, attempts)
        self._backoff = backoff_seconds
        self._sleep = sleep

    def apply(self, resolution: Resolution) -> None:
        """Raises ActionFailure once every attempt has failed."""
        for attempt in range(1, self._attempts + 1):
            try:
                self._controller.apply(resolution.width, resolution.height)
                log.info(f"Resolution set to {resolution} (attempt {attempt})")
                return
            except ActionFailure as e:
                log.warning(f"Resolution change to {resolution} failed (attempt {attempt}/{self._attempts}): {e}")
                if attempt == self._attempts:
                    raise ActionFailure(f"could not set {resolution} after {self._attempts} attempts: {e}") from e
                self._sleep(self._backoff)
