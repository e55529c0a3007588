from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import List

APP_NAME = "MatchResolutionManager"
# Overrides the per-user data directory (config and logs)
HOME_ENV = "MATCH_RESOLUTION_HOME"

def app_data_dir() -> Path:
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override)
    base = os.environ.get("APPDATA") or str(Path.home())
    return Path(base) / APP_NAME

def install_dir() -> Path:
    """Folder of the frozen executable, or the source checkout when run from source."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path(__file__).resolve().parents[2]

def tool_search_dirs() -> List[Path]:
    """Where bundled helper executables are looked for, in order."""
    return [
        install_dir(),
        install_dir() / "resources",
        Path.cwd(),
        Path.cwd() / "resources",
    ]

def config_path() -> Path:
    return app_data_dir() / "config.json"

def logs_dir() -> Path:
    return app_data_dir() / "logs"

def log_path() -> Path:
    return logs_dir() / "monitor.log"

def ensure_app_dirs() -> None:
    app_data_dir().mkdir(parents=True, exist_ok=True)
    logs_dir().mkdir(parents=True, exist_ok=True)
