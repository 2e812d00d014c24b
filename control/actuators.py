from __future__ import annotations

"""Per-side actuator layer for the critter: lock/unlock, drive, position sensor.

The four slider axes are addressed by :class:`Side`. Everything physical is
delegated to a :class:`SliderSubstrate` (kinematic bank in control/slider_sim.py
or the MuJoCo bank in envs/critter_env.py); this module only pairs the abstract
commands with substrate calls.

Sign convention: Extend drives towards the upper travel limit. For vertical
axes that is DOWN (planted), for horizontal axes it is OUT.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Protocol, Tuple

import numpy as np

from .critter_config import CritterConfig


class Side(Enum):
    LEFT_HORIZONTAL = "left_horizontal"
    LEFT_VERTICAL = "left_vertical"
    RIGHT_HORIZONTAL = "right_horizontal"
    RIGHT_VERTICAL = "right_vertical"

    @property
    def is_vertical(self) -> bool:
        return self in (Side.LEFT_VERTICAL, Side.RIGHT_VERTICAL)


SIDES: Tuple[Side, ...] = tuple(Side)


class ActuatorCommand(Enum):
    OFF = "off"
    EXTEND = "extend"
    RETRACT = "retract"


class SliderSubstrate(Protocol):
    """Physics-side joint access for one creature (one slider per Side)."""

    def translation(self, side: Side) -> float: ...

    def limits(self, side: Side) -> Tuple[float, float]: ...

    def set_limits(self, side: Side, lo: float, hi: float) -> None: ...

    def set_slider_enabled(self, side: Side, enabled: bool) -> None: ...

    def set_hold(self, side: Side, engaged: bool) -> None: ...

    def set_drive(self, side: Side, enabled: bool, speed: Optional[float] = None) -> None: ...

    def set_torque_limit(self, side: Side, limit: float) -> None: ...


class ActuatorInterface(Protocol):
    """What the gait sequencer is allowed to touch."""

    def set_lock(self, side: Side, locked: bool) -> None: ...

    def set_motor(self, side: Side, command: ActuatorCommand) -> None: ...

    def progress(self, side: Side) -> float: ...


def normalized_progress(translation: float, lo: float, hi: float, eps: float = 1e-12) -> float:
    """Inverse lerp of ``translation`` over [lo, hi], clamped to [0, 1].

    A collapsed range (hi - lo ~ 0) reads as 0.0 instead of dividing by zero.
    """
    span = float(hi) - float(lo)
    if not np.isfinite(span) or abs(span) < eps:
        return 0.0
    t = (float(translation) - float(lo)) / span
    if not np.isfinite(t):
        return 0.0
    return float(np.clip(t, 0.0, 1.0))


# ---------------- Lock strategies ---------------- #

class FixedLock:
    """Lock by swapping the slider for a rigid hold at the current position."""

    name = "fixed"

    def __init__(self, substrate: SliderSubstrate):
        self.sub = substrate

    def capture(self, native: Dict[Side, Tuple[float, float]]) -> None:
        pass

    def reference_limits(self, side: Side) -> Tuple[float, float]:
        return self.sub.limits(side)

    def set_locked(self, side: Side, locked: bool) -> None:
        # substrates keep the first hold position on repeated engage
        if locked:
            self.sub.set_slider_enabled(side, False)
            self.sub.set_hold(side, True)
        else:
            self.sub.set_hold(side, False)
            self.sub.set_slider_enabled(side, True)


class LimitsLock:
    """Lock by squeezing the travel limits to +-tolerance around the current position.

    Unlock restores horizontal axes to the configured [horizontal_min,
    horizontal_max] and vertical axes to the limits captured at start. The
    slider stays enabled either way, so the lock is compliant within the
    tolerance band.
    """

    name = "limits"

    def __init__(self, substrate: SliderSubstrate, horizontal: Tuple[float, float], tolerance: float = 0.01):
        self.sub = substrate
        self.horizontal = (float(horizontal[0]), float(horizontal[1]))
        self.tolerance = float(tolerance)
        self.native: Dict[Side, Tuple[float, float]] = {}

    def capture(self, native: Dict[Side, Tuple[float, float]]) -> None:
        self.native = dict(native)

    def _unlocked_limits(self, side: Side) -> Tuple[float, float]:
        if side.is_vertical:
            return self.native.get(side, self.sub.limits(side))
        return self.horizontal

    def reference_limits(self, side: Side) -> Tuple[float, float]:
        # Progress is read against the free travel, not the squeezed band
        return self._unlocked_limits(side)

    def is_locked(self, side: Side) -> bool:
        lo, hi = self.sub.limits(side)
        return (hi - lo) <= self.tolerance * 2.0 + 1e-12

    def set_locked(self, side: Side, locked: bool) -> None:
        if locked:
            if self.is_locked(side):
                return
            t = self.sub.translation(side)
            self.sub.set_limits(side, t - self.tolerance, t + self.tolerance)
        else:
            lo, hi = self._unlocked_limits(side)
            if self.sub.limits(side) == (lo, hi):
                return
            self.sub.set_limits(side, lo, hi)


def make_lock(cfg: CritterConfig, substrate: SliderSubstrate):
    if cfg.lock_strategy == "limits":
        return LimitsLock(substrate, (cfg.horizontal_min, cfg.horizontal_max), cfg.joint_lock_tolerance)
    return FixedLock(substrate)


# ---------------- Actuator front-end ---------------- #

@dataclass
class AxisSnapshot:
    locked: bool
    motor: ActuatorCommand
    progress: float


class CritterActuators:
    """ActuatorInterface over a SliderSubstrate.

    ``set_motor`` never touches the lock; callers pair the two (see
    control.gait_sequencer.leg_motion).
    """

    def __init__(self, substrate: SliderSubstrate, cfg: Optional[CritterConfig] = None, lock=None):
        self.cfg = (cfg or CritterConfig()).validate()
        self.sub = substrate
        self.lock = lock or make_lock(self.cfg, substrate)
        self.native_limits: Dict[Side, Tuple[float, float]] = {}
        self._locked: Dict[Side, bool] = {s: False for s in SIDES}
        self._motor: Dict[Side, ActuatorCommand] = {s: ActuatorCommand.OFF for s in SIDES}

    def start(self) -> None:
        """Apply the uniform strength limit and capture native travel limits."""
        for side in SIDES:
            self.sub.set_torque_limit(side, self.cfg.critter_strength)
            self.native_limits[side] = tuple(float(x) for x in self.sub.limits(side))
        self.lock.capture(self.native_limits)

    def set_lock(self, side: Side, locked: bool) -> None:
        self.lock.set_locked(side, bool(locked))
        self._locked[side] = bool(locked)

    def set_motor(self, side: Side, command: ActuatorCommand) -> None:
        if command is ActuatorCommand.OFF:
            self.sub.set_drive(side, False)
        else:
            sign = 1.0 if command is ActuatorCommand.EXTEND else -1.0
            self.sub.set_drive(side, True, sign * self.cfg.target_speed)
        self._motor[side] = command

    def progress(self, side: Side) -> float:
        lo, hi = self.lock.reference_limits(side)
        return normalized_progress(self.sub.translation(side), lo, hi)

    def is_locked(self, side: Side) -> bool:
        return self._locked[side]

    def motor(self, side: Side) -> ActuatorCommand:
        return self._motor[side]

    def snapshot(self) -> Dict[Side, AxisSnapshot]:
        return {s: AxisSnapshot(self._locked[s], self._motor[s], self.progress(s)) for s in SIDES}
