from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class Resolution(BaseModel):
    """Display mode as width x height. Immutable: replace it, don't edit it."""
    model_config = ConfigDict(frozen=True)

    width: PositiveInt
    height: PositiveInt

    @classmethod
    def parse(cls, text: str) -> "Resolution":
        """Parse "1440x1080" (also accepts "1440X1080" and surrounding spaces)."""
        parts = text.strip().lower().split("x")
        if len(parts) != 2:
            raise ValueError(f"Invalid resolution {text!r}, expected WIDTHxHEIGHT")
        try:
            width, height = int(parts[0]), int(parts[1])
        except ValueError:
            raise ValueError(f"Invalid resolution {text!r}, expected WIDTHxHEIGHT") from None
        return cls(width=width, height=height)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class AppConfig(BaseModel):
    game_resolution: Resolution = Field(default_factory=lambda: Resolution(width=1440, height=1080))
    desktop_resolution: Resolution = Field(default_factory=lambda: Resolution(width=1920, height=1080))
    sample_interval_ms: int = Field(default=3000, gt=0)
    baseline_readings: int = Field(default=3, gt=0)
    stability_checks: int = Field(default=3, gt=0)
    start_delay_ms: int = Field(default=5000, ge=0)
    end_delay_ms: int = Field(default=5000, ge=0)
    end_check_count: int = Field(default=3, gt=0)
    end_check_interval_ms: int = Field(default=2000, ge=0)
    end_check_tolerance: float = Field(default=1.1, gt=0)
    apply_retries: int = Field(default=3, gt=0)
    apply_backoff_ms: int = Field(default=1000, ge=0)
    nircmd_path: Optional[str] = None

    def to_monitor_config(self) -> dict:
        return {
            "sample_interval_ms": self.sample_interval_ms,
            "baseline_readings": self.baseline_readings,
            "stability_checks": self.stability_checks,
            "start_delay_ms": self.start_delay_ms,
            "end_delay_ms": self.end_delay_ms,
            "end_check_count": self.end_check_count,
            "end_check_interval_ms": self.end_check_interval_ms,
            "end_check_tolerance": self.end_check_tolerance,
        }
