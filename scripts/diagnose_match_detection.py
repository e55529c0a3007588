"""
Diagnostic script for match detection.
Run this while the game is open (menu or in a match) to see what the
monitor sees.

Expected behavior:
- Lists the launcher and in-session processes with their PIDs
- Prints a CPU percentage per sample for the metered process
- Shows the threshold a baseline at the current level would produce
"""

import sys
import os
import time
import logging

# Add parent directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from packages.core.monitor.baseline import derive_threshold
from packages.core.monitor.cpu_meter import PsutilCpuMeter, cpu_core_count
from packages.core.monitor.process_detector import PsutilProcessLister
from packages.core.monitor.sampler import Sampler
from packages.core.monitor.types import DataUnavailable

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)

SAMPLES = 5
INTERVAL_SECONDS = 3.0


def main():
    print("=" * 60)
    print("Match Detection Diagnostics")
    print("=" * 60)
    print()

    cores = cpu_core_count()
    sampler = Sampler(PsutilProcessLister(), PsutilCpuMeter(), core_count=cores)
    print(f"Logical CPU cores: {cores}")

    try:
        launcher, in_session = sampler.locate()
    except DataUnavailable as e:
        print(f"✗ Process list unavailable: {e}")
        return 1

    print(f"Launcher process:   {f'{launcher.name} (PID {launcher.pid})' if launcher else 'Not Found'}")
    print(f"In-session process: {f'{in_session.name} (PID {in_session.pid})' if in_session else 'Not Found'}")
    if launcher is None and in_session is None:
        print("✗ Game not running - start it and wait in the menu")
        return 1
    print()
    print(f"Sampling CPU {SAMPLES} times, {INTERVAL_SECONDS:.0f}s apart (first value is a default)...")
    print("-" * 60)

    readings = []
    try:
        for i in range(SAMPLES):
            sample = sampler.sample()
            if sample.cpu_percent is None:
                print(f"[{i + 1}] {sample.role}: N/A (CPU reading failed)")
            else:
                print(f"[{i + 1}] {sample.role}: {sample.cpu_percent:6.2f}%")
                if i > 0:
                    readings.append(sample.cpu_percent)
            if i < SAMPLES - 1:
                time.sleep(INTERVAL_SECONDS)
    except KeyboardInterrupt:
        print()
        print("Stopped by user")
    except DataUnavailable as e:
        print(f"✗ Sampling failed: {e}")
        return 1

    print("-" * 60)
    if readings:
        baseline = sum(readings) / len(readings)
        print(f"Average CPU: {baseline:.1f}%")
        print(f"Threshold if this were the baseline: {derive_threshold(baseline, sample.role)}%")
    else:
        print("No measured CPU values - cannot estimate a threshold")
    print("=" * 60)
    return 0

if __name__ == "__main__":
    sys.exit(main())
