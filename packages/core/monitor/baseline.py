"""
Idle-CPU baseline learning and threshold derivation.

The launcher and the in-session subprocess have very different CPU
profiles, so the threshold depends on which one the readings came from.
For the in-session process, lower baselines (faster machines) get a larger
multiplier: their idle footprint is small but the jump under load is big.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional

from .types import ProcessRole

log = logging.getLogger(__name__)

THRESHOLD_MIN = 25
THRESHOLD_MAX = 60

# (baseline upper bound, multiplier, additive gap) for in-session readings
IN_SESSION_BANDS = (
    (10.0, 2.5, 12),
    (15.0, 2.0, 10),
    (20.0, 1.7, 8),
    (25.0, 1.5, 7),
    (math.inf, 1.3, 6),
)


def _in_session_band(baseline: float) -> tuple[float, int]:
    for upper, multiplier, gap in IN_SESSION_BANDS:
        if baseline < upper:
            return multiplier, gap
    return IN_SESSION_BANDS[-1][1], IN_SESSION_BANDS[-1][2]


def derive_threshold(baseline: float, role: Optional[ProcessRole]) -> int:
    """Match-detection CPU threshold for a baseline, always within [25, 60]."""
    if role == "LAUNCHER":
        threshold = max(12, math.ceil(baseline * 4.0))
    elif role == "IN_SESSION":
        multiplier, gap = _in_session_band(baseline)
        threshold = max(THRESHOLD_MIN, math.ceil(baseline + gap), math.ceil(baseline * multiplier))
    else:
        threshold = max(15, math.ceil(baseline * 2.0))
    return min(THRESHOLD_MAX, max(THRESHOLD_MIN, threshold))


class BaselineLearner:
    def __init__(self, required_readings: int) -> None:
        if required_readings < 1:
            raise ValueError("required_readings must be >= 1")
        self._required = required_readings
        self._readings: List[float] = []
        self._baseline: Optional[float] = None
        self._threshold: Optional[int] = None
        self._role: Optional[ProcessRole] = None

    @property
    def required_readings(self) -> int:
        return self._required

    @property
    def readings(self) -> tuple[float, ...]:
        return tuple(self._readings)

    @property
    def calibrated(self) -> bool:
        return self._baseline is not None

    @property
    def baseline(self) -> Optional[float]:
        return self._baseline

    @property
    def threshold(self) -> Optional[int]:
        return self._threshold

    @property
    def role(self) -> Optional[ProcessRole]:
        return self._role

    def add(self, reading: Optional[float], role: Optional[ProcessRole]) -> bool:
        """
        Feed one reading. Returns True only on the reading that completes
        calibration. Non-positive or missing readings are not counted, and
        nothing is recomputed once calibrated.
        """
        if self.calibrated:
            return False
        if reading is None or reading <= 0:
            log.info(f"Ignoring invalid CPU reading ({reading}) - waiting for valid data ({len(self._readings)}/{self._required})")
            return False

        self._readings.append(float(reading))
        log.info(f"Learning baseline ({len(self._readings)}/{self._required}) - current {reading:.1f}%")
        if len(self._readings) < self._required:
            return False

        self._baseline = sum(self._readings) / len(self._readings)
        self._role = role
        self._threshold = derive_threshold(self._baseline, role)
        log.info(f"Baseline {self._baseline:.1f}% from {role or 'unknown'} process -> match threshold {self._threshold}%")
        return True
