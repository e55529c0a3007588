from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from .types import ProcessInfo


class ProcessLister(ABC):
    """Interface for enumerating running OS processes."""

    @abstractmethod
    def list(self) -> List[ProcessInfo]:
        """Return the current process set. Raises DataUnavailable on failure."""
        ...


class CpuMeter(ABC):
    """Interface for reading cumulative CPU time of one process."""

    @abstractmethod
    def cumulative_cpu_time(self, process: ProcessInfo) -> float:
        """Return user + system CPU seconds. Raises DataUnavailable on failure."""
        ...
