"""
Per-process CPU time reader backed by psutil.

Reports cumulative user + system seconds; the sampler turns two readings
into a utilization percentage.
"""

from __future__ import annotations

import logging

import psutil

from .detector import CpuMeter
from .types import DataUnavailable, ProcessInfo

log = logging.getLogger(__name__)


class PsutilCpuMeter(CpuMeter):
    def cumulative_cpu_time(self, process: ProcessInfo) -> float:
        try:
            times = psutil.Process(process.pid).cpu_times()
        except psutil.NoSuchProcess as e:
            raise DataUnavailable("CpuMeter", f"{process.name} (PID {process.pid}) exited") from e
        except psutil.AccessDenied as e:
            raise DataUnavailable("CpuMeter", f"access denied for {process.name} (PID {process.pid})") from e
        except psutil.Error as e:
            raise DataUnavailable("CpuMeter", str(e)) from e
        return float(times.user + times.system)


def cpu_core_count() -> int:
    """Logical core count, never less than 1."""
    count = psutil.cpu_count(logical=True)
    if not count:
        log.warning("psutil could not report the CPU count, assuming 1 core")
        return 1
    return int(count)
