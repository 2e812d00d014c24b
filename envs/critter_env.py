from __future__ import annotations

"""MuJoCo environment and slider substrate for the critter model.

 - CritterEnv: loads the MJCF, resets to the "stand" keyframe, sub-steps
   physics per control tick.
 - MujocoSliderBank: SliderSubstrate over the model's four slide joints.
   * hold:   joint equality constraint, re-targeted to the current position
             and switched on via data.eq_active
   * slider: the axis' actuator group in opt.disableactuator (a held or
             drive-off axis has its actuator group disabled)
   * drive:  velocity actuator ctrl = target speed
   * limits: model.jnt_range (used by the limits lock strategy)
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
import mujoco

from control.actuators import SIDES, Side


@dataclass(frozen=True)
class AxisNames:
    joint: str
    actuator: str
    hold: str


DEFAULT_AXES: Dict[Side, AxisNames] = {
    Side.LEFT_HORIZONTAL: AxisNames("lh_slide", "drive_lh", "hold_lh"),
    Side.LEFT_VERTICAL: AxisNames("lv_slide", "drive_lv", "hold_lv"),
    Side.RIGHT_HORIZONTAL: AxisNames("rh_slide", "drive_rh", "hold_rh"),
    Side.RIGHT_VERTICAL: AxisNames("rv_slide", "drive_rv", "hold_rv"),
}


@dataclass
class EnvConfig:
    xml_path: str = "mjcf/critter.xml"
    timestep: float = 0.002
    keyframe: Optional[str] = "stand"
    axes: Dict[Side, AxisNames] = field(default_factory=lambda: dict(DEFAULT_AXES))


def _id(m: mujoco.MjModel, objtype, name: str, what: str) -> int:
    i = mujoco.mj_name2id(m, objtype, name)
    if i < 0:
        raise RuntimeError(f"{what} '{name}' not found in model.")
    return int(i)


class MujocoSliderBank:
    def __init__(self, model: mujoco.MjModel, data: mujoco.MjData, axes: Optional[Dict[Side, AxisNames]] = None):
        self.m = model
        self.d = data
        axes = axes or DEFAULT_AXES
        self.jid: Dict[Side, int] = {}
        self.qadr: Dict[Side, int] = {}
        self.aid: Dict[Side, int] = {}
        self.eqid: Dict[Side, int] = {}
        for side in SIDES:
            n = axes[side]
            j = _id(model, mujoco.mjtObj.mjOBJ_JOINT, n.joint, "Joint")
            if int(model.jnt_type[j]) != int(mujoco.mjtJoint.mjJNT_SLIDE):
                raise RuntimeError(f"Joint '{n.joint}' is not a slide joint.")
            self.jid[side] = j
            self.qadr[side] = int(model.jnt_qposadr[j])
            self.aid[side] = _id(model, mujoco.mjtObj.mjOBJ_ACTUATOR, n.actuator, "Actuator")
            self.eqid[side] = _id(model, mujoco.mjtObj.mjOBJ_EQUALITY, n.hold, "Equality")
        groups = [int(model.actuator_group[a]) for a in self.aid.values()]
        if len(set(groups)) != len(groups) or not all(0 <= g < 31 for g in groups):
            raise RuntimeError(f"each drive needs its own actuator group in [0, 31), got {groups}")
        self._slider = {s: True for s in SIDES}
        self._drive = {s: False for s in SIDES}
        for side in SIDES:
            self._sync_actuator(side)

    def _sync_actuator(self, side: Side) -> None:
        bit = 1 << int(self.m.actuator_group[self.aid[side]])
        if self._slider[side] and self._drive[side]:
            self.m.opt.disableactuator &= ~bit
        else:
            self.m.opt.disableactuator |= bit

    # -- SliderSubstrate --
    def translation(self, side: Side) -> float:
        return float(self.d.qpos[self.qadr[side]])

    def limits(self, side: Side) -> Tuple[float, float]:
        lo, hi = self.m.jnt_range[self.jid[side]]
        return (float(lo), float(hi))

    def set_limits(self, side: Side, lo: float, hi: float) -> None:
        self.m.jnt_range[self.jid[side]] = (float(lo), float(hi))

    def set_slider_enabled(self, side: Side, enabled: bool) -> None:
        self._slider[side] = bool(enabled)
        self._sync_actuator(side)

    def set_hold(self, side: Side, engaged: bool) -> None:
        e = self.eqid[side]
        if engaged and self.d.eq_active[e]:
            return
        if engaged:
            # joint equality without joint2 pins q to polycoef[0]
            self.m.eq_data[e, :5] = (self.translation(side), 0.0, 0.0, 0.0, 0.0)
        self.d.eq_active[e] = 1 if engaged else 0

    def set_drive(self, side: Side, enabled: bool, speed: Optional[float] = None) -> None:
        a = self.aid[side]
        if speed is not None:
            self.d.ctrl[a] = float(speed)
        if not enabled:
            self.d.ctrl[a] = 0.0
        self._drive[side] = bool(enabled)
        self._sync_actuator(side)

    def set_torque_limit(self, side: Side, limit: float) -> None:
        a = self.aid[side]
        self.m.actuator_forcelimited[a] = 1
        self.m.actuator_forcerange[a] = (-float(limit), float(limit))

    def hold_active(self, side: Side) -> bool:
        return bool(self.d.eq_active[self.eqid[side]])

    def actuator_enabled(self, side: Side) -> bool:
        bit = 1 << int(self.m.actuator_group[self.aid[side]])
        return not (int(self.m.opt.disableactuator) & bit)


class CritterEnv:
    def __init__(self, cfg: Optional[EnvConfig] = None):
        self.cfg = cfg or EnvConfig()
        self.m = mujoco.MjModel.from_xml_path(self.cfg.xml_path)
        self.d = mujoco.MjData(self.m)
        if self.cfg.timestep:
            self.m.opt.timestep = float(self.cfg.timestep)
        self._reset_state()
        self.bank = MujocoSliderBank(self.m, self.d, self.cfg.axes)

    def _reset_state(self) -> None:
        if self.cfg.keyframe:
            key = _id(self.m, mujoco.mjtObj.mjOBJ_KEY, self.cfg.keyframe, "Keyframe")
            mujoco.mj_resetDataKeyframe(self.m, self.d, key)
        else:
            mujoco.mj_resetData(self.m, self.d)
        mujoco.mj_forward(self.m, self.d)

    def reset(self) -> Dict[str, float]:
        self._reset_state()
        return self.observe()

    def substeps(self, tick: float) -> int:
        return max(1, int(round(float(tick) / float(self.m.opt.timestep))))

    def advance(self, tick: float) -> None:
        """Step physics for one control tick."""
        for _ in range(self.substeps(tick)):
            mujoco.mj_step(self.m, self.d)

    def torso_x(self) -> float:
        return float(self.d.body("torso").xpos[0])

    def observe(self) -> Dict[str, float]:
        obs = {side.value: self.bank.translation(side) for side in SIDES}
        obs["torso_x"] = self.torso_x()
        obs["time"] = float(self.d.time)
        return obs

    def qpos_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.d.qpos)))
