from __future__ import annotations

"""Critter gait configuration: defaults, JSON loading and validation.

Config files live under configs/critter/*.json and use the dataclass field
names as keys. Validation is strict: a bad threshold would make the threshold
path unreachable and the timeout would silently mask it, so we reject instead
of clamping.
"""

import json
import math
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Union


LOCK_STRATEGIES = ("fixed", "limits")
DIRECTIONS = ("right", "left")


class ConfigError(ValueError):
    """Raised for a rejected critter configuration."""


@dataclass
class CritterConfig:
    # Per-phase timeouts (s)
    max_lift_time: float = 3.0
    max_forward_time: float = 3.0
    max_back_time: float = 3.0
    max_drop_time: float = 3.0
    # Fraction of travel that counts as "arrived"
    vertical_halt_threshold: float = 0.1
    horizontal_halt_threshold: float = 0.03
    # Drive
    target_speed: float = 1.0       # slider speed magnitude
    critter_strength: float = 50.0  # drive force/torque limit
    # Horizontal travel restored by the limits lock strategy
    horizontal_min: float = 0.5
    horizontal_max: float = 1.5
    joint_lock_tolerance: float = 0.01
    lock_strategy: str = "fixed"
    # Control loop
    tick: float = 0.02
    direction: str = "right"

    def validate(self) -> "CritterConfig":
        for key in ("max_lift_time", "max_forward_time", "max_back_time", "max_drop_time",
                    "target_speed", "critter_strength", "joint_lock_tolerance", "tick"):
            require_positive(key, getattr(self, key))
        for key in ("vertical_halt_threshold", "horizontal_halt_threshold"):
            require_threshold(key, getattr(self, key))
        lo = require_finite("horizontal_min", self.horizontal_min)
        hi = require_finite("horizontal_max", self.horizontal_max)
        if lo >= hi:
            raise ConfigError(f"horizontal_min ({lo}) must be < horizontal_max ({hi})")
        if self.lock_strategy not in LOCK_STRATEGIES:
            raise ConfigError(f"lock_strategy must be one of {LOCK_STRATEGIES}, got {self.lock_strategy!r}")
        if self.direction not in DIRECTIONS:
            raise ConfigError(f"direction must be one of {DIRECTIONS}, got {self.direction!r}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CritterConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
        return cls(**data).validate()


def require_finite(key: str, value: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key} must be a number, got {value!r}") from e
    if not math.isfinite(v):
        raise ConfigError(f"{key} must be finite, got {v}")
    return v


def require_positive(key: str, value: Any) -> float:
    v = require_finite(key, value)
    if v <= 0.0:
        raise ConfigError(f"{key} must be > 0, got {v}")
    return v


def require_threshold(key: str, value: Any) -> float:
    """Halt thresholds are fractions of travel; 0.5 or more overlaps the opposite end."""
    v = require_finite(key, value)
    if not (0.0 < v < 0.5):
        raise ConfigError(f"{key} must be in (0, 0.5), got {v}")
    return v


def load_config(path: Union[str, Path, None] = None) -> CritterConfig:
    """Load and validate a JSON config. ``None`` returns validated defaults."""
    if path is None:
        return CritterConfig().validate()
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a JSON object")
    return CritterConfig.from_dict(data)
