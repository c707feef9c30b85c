"""Application-wide settings."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _default_output_dir() -> Path:
    return Path.home() / "Downloads"


@dataclass(frozen=True)
class StamperConfig:
    quality_factor: float = 4.0          # supersampling multiplier K
    output_suffix: str = "_capgo"
    paste_offset: float = 20.0           # PDF points, applied to x and y
    zoom_min: float = 0.4
    zoom_max: float = 4.0
    default_stamp_size: tuple[float, float] = (105.0, 56.0)
    output_dir: Path = field(default_factory=_default_output_dir)

    def __post_init__(self):
        if self.quality_factor <= 0:
            raise ValueError("quality_factor must be positive")
        if not 0 < self.zoom_min <= self.zoom_max:
            raise ValueError("zoom bounds must satisfy 0 < zoom_min <= zoom_max")

    @classmethod
    def from_env(cls) -> "StamperConfig":
        """Build a config, honouring CAPGO_OUTPUT_DIR and CAPGO_QUALITY_FACTOR."""
        kwargs = {}
        out = os.environ.get("CAPGO_OUTPUT_DIR")
        if out:
            kwargs["output_dir"] = Path(out).expanduser()
        quality = os.environ.get("CAPGO_QUALITY_FACTOR")
        if quality:
            kwargs["quality_factor"] = float(quality)
        return cls(**kwargs)
