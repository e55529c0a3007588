"""
Target process sampler.

One sample = which of the two target processes are running, plus the CPU
percentage of the process being metered (the in-session subprocess when it
exists, the launcher otherwise). CPU percentage is derived from two
cumulative CPU-time readings of the same PID:

    percent = clamp((d_cpu / d_time) * 100 / cores, 0, 100)
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Tuple

from .detector import CpuMeter, ProcessLister
from .process_detector import IN_SESSION_ALIASES, LAUNCHER_ALIASES, find_process
from .types import CpuSample, DataUnavailable, ProcessInfo, ProcessRole, TargetSample

log = logging.getLogger(__name__)

# Reported instead of a delta when there is nothing to diff against
FIRST_SAMPLE_PERCENT: Dict[ProcessRole, float] = {"LAUNCHER": 3.0, "IN_SESSION": 8.0}
# Substituted when the CPU meter itself failed
FALLBACK_PERCENT: Dict[ProcessRole, float] = {"LAUNCHER": 4.0, "IN_SESSION": 8.0}


def cpu_percent_between(prev: Optional[CpuSample], cur: CpuSample, core_count: int) -> Optional[float]:
    """
    Percentage of total machine CPU used by the process between two samples.

    Returns None when no meaningful delta exists: no previous sample, a
    different PID, no elapsed time, or a counter that went backward
    (the process restarted).
    """
    if prev is None or prev.pid != cur.pid:
        return None
    elapsed = cur.timestamp - prev.timestamp
    if elapsed <= 0:
        return None
    used = cur.cpu_seconds - prev.cpu_seconds
    if used < 0:
        log.debug(f"CPU counter went backward for PID {cur.pid} ({prev.cpu_seconds:.2f}s -> {cur.cpu_seconds:.2f}s), treating as a new process")
        return None
    percent = (used / elapsed) * 100.0 / max(1, core_count)
    return min(100.0, max(0.0, percent))


def fallback_cpu_percent(role: Optional[ProcessRole]) -> float:
    if role is None:
        return FALLBACK_PERCENT["LAUNCHER"]
    return FALLBACK_PERCENT[role]


class Sampler:
    """Reads the process list and CPU meter. Keeps only the last tick and probe samples."""

    def __init__(
        self,
        lister: ProcessLister,
        cpu_meter: CpuMeter,
        core_count: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lister = lister
        self._meter = cpu_meter
        self._cores = max(1, core_count)
        self._clock = clock
        self._last_sample: Optional[CpuSample] = None
        self._last_probe: Optional[CpuSample] = None

    def reset(self) -> None:
        self._last_sample = None
        self._last_probe = None

    def _list(self) -> list[ProcessInfo]:
        processes = self._lister.list()
        if not processes:
            raise DataUnavailable("ProcessLister", "empty process list")
        return processes

    def locate(self) -> Tuple[Optional[ProcessInfo], Optional[ProcessInfo]]:
        """Return (launcher, in_session). Raises DataUnavailable."""
        processes = self._list()
        return find_process(processes, LAUNCHER_ALIASES), find_process(processes, IN_SESSION_ALIASES)

    def _read(self, process: ProcessInfo) -> Optional[CpuSample]:
        try:
            cpu = self._meter.cumulative_cpu_time(process)
        except DataUnavailable as e:
            log.info(f"CPU reading unavailable for {process.name} (PID {process.pid}): {e.reason}")
            return None
        return CpuSample(pid=process.pid, cpu_seconds=cpu, timestamp=self._clock())

    def sample(self) -> TargetSample:
        """One sampling pass. Raises DataUnavailable if the process list can't be read."""
        launcher, in_session = self.locate()
        now = self._clock()

        monitored = in_session or launcher
        if monitored is None:
            return TargetSample(launcher=None, in_session=None, cpu_percent=None, role=None, timestamp=now)

        role: ProcessRole = "IN_SESSION" if in_session is not None else "LAUNCHER"
        current = self._read(monitored)
        if current is None:
            return TargetSample(launcher=launcher, in_session=in_session, cpu_percent=None, role=role, timestamp=now)

        percent = cpu_percent_between(self._last_sample, current, self._cores)
        if percent is None:
            percent = FIRST_SAMPLE_PERCENT[role]
        self._last_sample = current

        log.debug(f"Sampled {monitored.name} (PID {monitored.pid}): {current.cpu_seconds:.2f}s total -> {percent:.1f}%")
        return TargetSample(launcher=launcher, in_session=in_session, cpu_percent=percent, role=role, timestamp=now)

    def probe_in_session(self) -> Tuple[bool, Optional[float]]:
        """
        Re-check the in-session subprocess outside the regular tick.

        The delta is taken against the most recent earlier reading of the same
        PID, from a tick or a previous probe. Tick deltas are unaffected.
        Returns (present, percent); percent is None when present but no fresh
        delta could be computed. Raises DataUnavailable.
        """
        _, in_session = self.locate()
        if in_session is None:
            return False, None
        current = self._read(in_session)
        if current is None:
            return True, None
        candidates = [
            s for s in (self._last_sample, self._last_probe)
            if s is not None and s.pid == current.pid and s.timestamp < current.timestamp
        ]
        reference = max(candidates, key=lambda s: s.timestamp) if candidates else None
        self._last_probe = current
        return True, cpu_percent_between(reference, current, self._cores)
