from __future__ import annotations

from typing import Iterable, List, Optional

import psutil

from .detector import ProcessLister
from .types import DataUnavailable, ProcessInfo

# Known spellings of the two executables, compared after normalize_exe_name()
LAUNCHER_ALIASES = frozenset({"valorant.exe"})
IN_SESSION_ALIASES = frozenset({"valorant-win64-shipping.exe"})


def normalize_exe_name(name: str) -> str:
    return name.strip().lower()


def find_process(processes: Iterable[ProcessInfo], aliases: frozenset[str]) -> Optional[ProcessInfo]:
    for p in processes:
        if normalize_exe_name(p.name) in aliases:
            return p
    return None


class PsutilProcessLister(ProcessLister):
    def list(self) -> List[ProcessInfo]:
        out: List[ProcessInfo] = []
        try:
            for p in psutil.process_iter(attrs=["name", "pid"]):
                try:
                    n = p.info.get("name")
                    if n:
                        out.append(ProcessInfo(name=str(n), pid=int(p.info["pid"])))
                except (psutil.NoSuchProcess, psutil.AccessDenied):
                    continue
        except psutil.Error as e:
            raise DataUnavailable("ProcessLister", str(e)) from e
        return out
