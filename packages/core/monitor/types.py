from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

MonitorStatus = Literal["STOPPED", "RUNNING"]

# LEARNING -> ARMED -> IN_MATCH -> CONFIRMING_END -> ARMED
MatchState = Literal["LEARNING", "ARMED", "IN_MATCH", "CONFIRMING_END"]

# Which process a CPU reading was taken from
ProcessRole = Literal["LAUNCHER", "IN_SESSION"]


class DataUnavailable(RuntimeError):
    """A collaborator could not provide data this tick. Skip the tick, keep state."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class ActionFailure(RuntimeError):
    """A display change failed (after retries when raised by the switcher)."""


@dataclass(frozen=True)
class ProcessInfo:
    name: str
    pid: int


@dataclass(frozen=True)
class CpuSample:
    pid: int
    cpu_seconds: float  # cumulative user + system time
    timestamp: float  # monotonic seconds


@dataclass(frozen=True)
class TargetSample:
    """What one sampling pass saw of the target application."""
    launcher: Optional[ProcessInfo]
    in_session: Optional[ProcessInfo]
    cpu_percent: Optional[float]  # None when the CPU meter failed
    role: Optional[ProcessRole]  # process the reading is attributed to
    timestamp: float

    @property
    def app_running(self) -> bool:
        return self.launcher is not None or self.in_session is not None


@dataclass
class MonitorSnapshot:
    """Read-only copy of the state machine for observers and diagnostics."""
    status: MonitorStatus = "STOPPED"
    match_state: MatchState = "LEARNING"
    baseline: Optional[float] = None
    threshold: Optional[float] = None
    readings_collected: int = 0
    confirmed_in_match: Optional[bool] = None
    resolution_switched: bool = False
    match_started_at: Optional[float] = None
    match_ended_at: Optional[float] = None
    last_cpu_percent: Optional[float] = None
