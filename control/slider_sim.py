from __future__ import annotations

"""Kinematic slider bank: a deterministic stand-in for the physics substrate.

Each axis integrates ``translation += speed * dt`` while its slider is enabled,
its drive is on and no hold is engaged, then clamps to its limits. There is
no mass or gravity; the drive reaches its target speed instantly. Used by the
tests and by ``tools/sim_critter.py --backend kinematic``.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from .actuators import SIDES, Side


@dataclass
class JointState:
    translation: float
    lo: float
    hi: float
    slider_enabled: bool = True
    hold: bool = False
    hold_at: Optional[float] = None
    drive_enabled: bool = False
    speed: float = 0.0
    torque_limit: float = 0.0
    jammed: bool = False  # test hook: the axis ignores its drive

    @property
    def moving(self) -> bool:
        return self.slider_enabled and self.drive_enabled and not self.hold and not self.jammed


@dataclass
class KinematicSliderBank:
    joints: Dict[Side, JointState] = field(default_factory=dict)

    @classmethod
    def from_limits(cls, horizontal: Tuple[float, float], vertical: Tuple[float, float],
                    start: Optional[Dict[Side, float]] = None) -> "KinematicSliderBank":
        """Horizontal axes start fully in, vertical axes fully down unless ``start`` says otherwise."""
        start = start or {}
        joints = {}
        for side in SIDES:
            lo, hi = vertical if side.is_vertical else horizontal
            t0 = start.get(side, hi if side.is_vertical else lo)
            joints[side] = JointState(translation=float(t0), lo=float(lo), hi=float(hi))
        return cls(joints)

    # -- SliderSubstrate --
    def translation(self, side: Side) -> float:
        return self.joints[side].translation

    def limits(self, side: Side) -> Tuple[float, float]:
        j = self.joints[side]
        return (j.lo, j.hi)

    def set_limits(self, side: Side, lo: float, hi: float) -> None:
        j = self.joints[side]
        j.lo, j.hi = float(lo), float(hi)
        j.translation = float(np.clip(j.translation, j.lo, j.hi))

    def set_slider_enabled(self, side: Side, enabled: bool) -> None:
        self.joints[side].slider_enabled = bool(enabled)

    def set_hold(self, side: Side, engaged: bool) -> None:
        j = self.joints[side]
        if engaged and j.hold:
            return
        j.hold = bool(engaged)
        j.hold_at = j.translation if engaged else None

    def set_drive(self, side: Side, enabled: bool, speed: Optional[float] = None) -> None:
        j = self.joints[side]
        j.drive_enabled = bool(enabled)
        if speed is not None:
            j.speed = float(speed)

    def set_torque_limit(self, side: Side, limit: float) -> None:
        self.joints[side].torque_limit = float(limit)

    # -- simulation --
    def jam(self, sides: Iterable[Side], jammed: bool = True) -> None:
        for side in sides:
            self.joints[side].jammed = bool(jammed)

    def advance(self, dt: float) -> None:
        for j in self.joints.values():
            if j.moving:
                j.translation = float(np.clip(j.translation + j.speed * dt, j.lo, j.hi))
            elif j.hold and j.hold_at is not None:
                j.translation = j.hold_at

    def unlocked_sides(self) -> Tuple[Side, ...]:
        return tuple(s for s, j in self.joints.items() if j.slider_enabled and not j.hold)
