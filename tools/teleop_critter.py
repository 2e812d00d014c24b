#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interactive MuJoCo viewer for the critter.
Features:
  • Holds every axis on load (all sliders locked)
  • Auto gait: the eight-phase sequencer, right or left
  • Manual override: drive any axis directly, bypassing the sequencer
  • Works with mjpython or python (pip install mujoco)

Keymap (printed at start):
  [G] Toggle auto gait     [V] Flip gait direction   [X] Hold all axes
  [1]/[2] Left leg up/down     [3]/[4] Left leg in/out
  [7]/[8] Right leg up/down    [9]/[0] Right leg in/out
  [K] Reset to keyframe    [Space] Pause            [Q] Quit

Notes:
  • Manual inputs latch: a key sets its axis to +1/-1 until another key for
    that axis or [X]. Any manual key switches the auto gait off.
  • The viewer still has a few baked-in keys; we avoid those.
"""
import argparse
import sys
import time
from pathlib import Path as _Path

import mujoco
import mujoco.viewer

_ROOT = _Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from control.actuators import SIDES, CritterActuators, Side
from control.critter_config import load_config
from control.gait_sequencer import GaitDirection, GaitSequencer
from envs.critter_env import CritterEnv, EnvConfig


# key -> (axis, signed input); Extend is down / out
MANUAL_KEYS = {
    "1": (Side.LEFT_VERTICAL, -1.0),
    "2": (Side.LEFT_VERTICAL, +1.0),
    "3": (Side.LEFT_HORIZONTAL, -1.0),
    "4": (Side.LEFT_HORIZONTAL, +1.0),
    "7": (Side.RIGHT_VERTICAL, -1.0),
    "8": (Side.RIGHT_VERTICAL, +1.0),
    "9": (Side.RIGHT_HORIZONTAL, -1.0),
    "0": (Side.RIGHT_HORIZONTAL, +1.0),
}


def print_keymap():
    print(
        "\n[teleop] keymap:\n"
        "  G auto gait        V flip direction   X hold all\n"
        "  1/2 left up/down   3/4 left in/out\n"
        "  7/8 right up/down  9/0 right in/out\n"
        "  K reset keyframe   space pause        Q quit\n"
    )


class CritterTeleop:
    """Switches between the auto gait and latched manual axis inputs."""

    def __init__(self, env: CritterEnv, cfg):
        self.env = env
        self.cfg = cfg
        self.act = CritterActuators(env.bank, cfg)
        self.seq = GaitSequencer.from_config(self.act, cfg, verbose=True)
        self.seq.start()
        self.auto = False
        self.inputs = {side: 0.0 for side in SIDES}

    def _halt(self):
        self.inputs = {side: 0.0 for side in SIDES}
        self.seq.manual(self.inputs)

    def hold_all(self):
        self.auto = False
        self._halt()
        print("[teleop] hold (all axes locked)")

    def toggle_auto(self):
        self.auto = not self.auto
        if not self.auto:
            self.hold_all()
            return
        # drop latched manual drives so only the sequencer's axis comes free
        self._halt()
        print(f"[teleop] auto gait ON, direction={self.seq.state.direction.value}, phase={self.seq.phase.value}")

    def flip_direction(self):
        d = GaitDirection.LEFT if self.seq.state.direction is GaitDirection.RIGHT else GaitDirection.RIGHT
        self.seq.set_direction(d)
        print(f"[teleop] direction = {d.value}")

    def set_manual(self, side: Side, value: float):
        self.auto = False
        self.inputs[side] = value
        print(f"[teleop] manual {side.value} = {value:+.0f}")

    def reset(self):
        """Back to the keyframe with every axis held; sequencer phase is kept."""
        self.auto = False
        obs = self.env.reset()
        self._halt()
        print("[teleop] reset " + " ".join(f"{k}={v:.3f}" for k, v in obs.items()))
        return obs

    def step(self, tick: float):
        if self.auto:
            self.seq.tick(tick)
        else:
            self.seq.manual(self.inputs)
        self.env.advance(tick)


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--xml", default="mjcf/critter.xml", help="Path to MJCF XML")
    parser.add_argument("--config", default="configs/critter/default.json")
    parser.add_argument("--auto", action="store_true", help="Start with the auto gait on")
    parser.add_argument("--no-ui", action="store_true", help="Hide the left/right UI panes")
    args = parser.parse_args()

    cfg = load_config(args.config)
    env = CritterEnv(EnvConfig(xml_path=args.xml))
    tele = CritterTeleop(env, cfg)
    if args.auto:
        tele.toggle_auto()

    paused = False
    quit_requested = False

    def on_key(keycode):
        nonlocal paused, quit_requested
        try:
            key = chr(keycode)
        except (ValueError, OverflowError):
            return
        k = key.upper()
        if k == "Q":
            quit_requested = True
        elif key == " ":
            paused = not paused
        elif k == "G":
            tele.toggle_auto()
        elif k == "V":
            tele.flip_direction()
        elif k == "K":
            tele.reset()
        elif k == "X":
            tele.hold_all()
        elif key in MANUAL_KEYS:
            side, value = MANUAL_KEYS[key]
            tele.set_manual(side, value)

    print_keymap()

    with mujoco.viewer.launch_passive(
        env.m, env.d,
        key_callback=on_key,
        show_left_ui=(not args.no_ui),
        show_right_ui=(not args.no_ui)
    ) as viewer:
        tick = float(cfg.tick)
        t_next = time.perf_counter()
        while viewer.is_running() and not quit_requested:
            t_now = time.perf_counter()
            if t_now < t_next:
                time.sleep(0.0005)
                continue
            t_next += tick
            if paused:
                continue
            with viewer.lock():
                tele.step(tick)
            viewer.sync()


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        print(f"[teleop] ERROR: {e}")
        sys.exit(1)
