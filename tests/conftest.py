from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest

from packages.core.display.controller import ResolutionSwitcher
from packages.core.display.resolutions import ResolutionConfig
from packages.core.monitor.detector import CpuMeter, ProcessLister
from packages.core.monitor.sampler import Sampler
from packages.core.monitor.scheduler import TaskScheduler
from packages.core.monitor.state_machine import MatchStateMachine
from packages.core.monitor.types import ActionFailure, DataUnavailable, ProcessInfo
from packages.shared.config import Resolution

LAUNCHER = ProcessInfo(name="VALORANT.exe", pid=100)
IN_SESSION = ProcessInfo(name="VALORANT-Win64-Shipping.exe", pid=200)
OTHER = ProcessInfo(name="explorer.exe", pid=4)

GAME = Resolution(width=1440, height=1080)
DESKTOP = Resolution(width=1920, height=1080)

START = 1000.0


class FakeClock:
    def __init__(self, start: float = START) -> None:
        self.t = start

    def __call__(self) -> float:
        return self.t


class FakeProcessLister(ProcessLister):
    def __init__(self) -> None:
        self.processes: List[ProcessInfo] = [OTHER]
        self.fail = False
        self.calls = 0

    def set_running(self, launcher: bool = True, in_session: bool = False) -> None:
        self.processes = [OTHER]
        if launcher:
            self.processes.append(LAUNCHER)
        if in_session:
            self.processes.append(IN_SESSION)

    def list(self) -> List[ProcessInfo]:
        self.calls += 1
        if self.fail:
            raise DataUnavailable("ProcessLister", "simulated failure")
        return list(self.processes)


class FakeCpuMeter(CpuMeter):
    """Integrates a per-PID CPU rate (percent of one core) over the fake clock."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._state: Dict[int, Tuple[float, float, float]] = {}  # pid -> (cpu_seconds, since, rate)
        self.failing: set[int] = set()

    def set_rate(self, pid: int, percent: float) -> None:
        cpu = self._cpu(pid)
        self._state[pid] = (cpu, self._clock(), percent)

    def set_cpu(self, pid: int, cpu_seconds: float, percent: float = 0.0) -> None:
        self._state[pid] = (cpu_seconds, self._clock(), percent)

    def _cpu(self, pid: int) -> float:
        if pid not in self._state:
            return 0.0
        cpu, since, rate = self._state[pid]
        return cpu + rate / 100.0 * (self._clock() - since)

    def cumulative_cpu_time(self, process: ProcessInfo) -> float:
        if process.pid in self.failing:
            raise DataUnavailable("CpuMeter", "simulated failure")
        return self._cpu(process.pid)


class RecordingDisplay:
    def __init__(self) -> None:
        self.calls: List[Tuple[int, int]] = []
        self.failures_left = 0

    def apply(self, width: int, height: int) -> None:
        self.calls.append((width, height))
        if self.failures_left > 0:
            self.failures_left -= 1
            raise ActionFailure("simulated display failure")


class RecordingNotifier:
    def __init__(self) -> None:
        self.statuses: List[str] = []
        self.hidden = 0
        self.shown = 0

    def notify(self, status: str) -> None:
        self.statuses.append(status)

    def hide(self) -> None:
        self.hidden += 1

    def show(self) -> None:
        self.shown += 1


class Rig:
    """A state machine wired to fakes and driven by a virtual clock."""

    def __init__(self, config: Optional[dict] = None) -> None:
        self.clock = FakeClock()
        self.scheduler = TaskScheduler(clock=self.clock)
        self.lister = FakeProcessLister()
        self.meter = FakeCpuMeter(self.clock)
        self.display = RecordingDisplay()
        self.notifier = RecordingNotifier()
        self.sampler = Sampler(self.lister, self.meter, core_count=1, clock=self.clock)
        self.switcher = ResolutionSwitcher(self.display, attempts=3, backoff_seconds=1.0, sleep=lambda s: None)
        self.machine = MatchStateMachine(
            config or {},
            sampler=self.sampler,
            switcher=self.switcher,
            scheduler=self.scheduler,
            notifier=self.notifier,
            resolutions=ResolutionConfig(GAME, DESKTOP),
        )

    def run_until(self, t: float) -> None:
        """Advance the clock to t, running every task due on the way in order."""
        while True:
            pending = self.scheduler.pending()
            if not pending or pending[0].due > t:
                break
            self.clock.t = max(self.clock.t, pending[0].due)
            self.scheduler.run_pending()
        self.clock.t = t

    def advance(self, seconds: float) -> None:
        self.run_until(self.clock.t + seconds)

    @property
    def state(self) -> str:
        return self.machine.get_state().match_state

    def calibrate_on_launcher(self, percent: float = 3.0) -> None:
        """Start and finish baseline learning on the launcher (ticks at +3, +6, +9)."""
        self.lister.set_running(launcher=True)
        self.meter.set_rate(LAUNCHER.pid, percent)
        self.machine.start(GAME, DESKTOP)
        self.run_until(START + 9)

    def enter_match(self, percent: float = 50.0) -> None:
        """From ARMED at START+9: the in-session process spins up.

        Tick 12 has no delta for the new PID (default 8%), ticks 15/18/21
        read `percent`, so the match is confirmed at START+21.
        """
        self.lister.set_running(launcher=True, in_session=True)
        self.meter.set_rate(IN_SESSION.pid, percent)
        self.run_until(START + 21)


@pytest.fixture
def rig() -> Rig:
    return Rig()
