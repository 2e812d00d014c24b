#!/usr/bin/env python3
from __future__ import annotations

"""Headless critter gait runner.

Runs the eight-phase gait sequencer against either the kinematic slider bank
(no physics, deterministic) or the MuJoCo model, and prints a one-line JSON
summary as the last line of stdout.

Usage examples:
  python tools/sim_critter.py --backend kinematic --seconds 20 --verbose
  python tools/sim_critter.py --backend kinematic --seconds 10 --stall left_vertical
  mjpython tools/sim_critter.py --backend mujoco --xml mjcf/critter.xml --seconds 20
  python tools/sim_critter.py --config configs/critter/limits_lock.json --plot artifacts/progress.png
"""

import argparse
import json
import math
import sys
from pathlib import Path
from typing import Any, Dict, List, Sequence

# Ensure repo root import when run as a script
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from control.actuators import SIDES, CritterActuators, Side
from control.critter_config import CritterConfig, load_config
from control.gait_sequencer import GaitSequencer
from control.slider_sim import KinematicSliderBank


def build_kinematic(cfg: CritterConfig, vertical_travel: float, stall: Sequence[Side]):
    bank = KinematicSliderBank.from_limits(
        horizontal=(cfg.horizontal_min, cfg.horizontal_max),
        vertical=(0.0, float(vertical_travel)),
    )
    bank.jam(stall)
    return bank, bank.advance, None


def build_mujoco(cfg: CritterConfig, xml: str, stall: Sequence[Side]):
    from envs.critter_env import CritterEnv, EnvConfig

    if stall:
        raise ValueError("--stall is only supported by the kinematic backend")
    env = CritterEnv(EnvConfig(xml_path=xml))
    return env.bank, env.advance, env


def run(cfg: CritterConfig, backend: str = "kinematic", ticks: int = 500, xml: str = "mjcf/critter.xml",
        vertical_travel: float = 0.12, stall: Sequence[Side] = (), verbose: bool = False,
        trace: bool = False) -> Dict[str, Any]:
    stall = list(stall)
    if backend == "kinematic":
        bank, advance, env = build_kinematic(cfg, vertical_travel, stall)
    elif backend == "mujoco":
        bank, advance, env = build_mujoco(cfg, xml, stall)
    else:
        raise ValueError(f"unknown backend {backend!r}")

    act = CritterActuators(bank, cfg)
    seq = GaitSequencer.from_config(act, cfg, verbose=verbose)
    seq.start()
    x0 = env.torso_x() if env is not None else 0.0

    rows: List[List[float]] = []
    max_unlocked = 0
    for k in range(int(ticks)):
        seq.tick(cfg.tick)
        snap = act.snapshot()
        max_unlocked = max(max_unlocked, sum(1 for a in snap.values() if not a.locked))
        advance(cfg.tick)
        if trace:
            rows.append([(k + 1) * cfg.tick] + [act.progress(s) for s in SIDES])

    c = seq.counters
    out: Dict[str, Any] = {
        "backend": backend,
        "lock_strategy": cfg.lock_strategy,
        "direction": seq.state.direction.value,
        "ticks": int(ticks),
        "seconds": round(int(ticks) * cfg.tick, 6),
        "completions": c.completions,
        "timeouts": c.timeouts,
        "thresholds": c.thresholds,
        "cycles": c.completions // 8,
        "per_phase": dict(c.per_phase),
        "final_phase": seq.phase.value,
        "state": seq.state.to_dict(),
        "max_unlocked_axes": max_unlocked,
        "axes": {s.value: {"locked": a.locked, "motor": a.motor.value, "progress": round(a.progress, 4)}
                 for s, a in act.snapshot().items()},
    }
    if env is not None:
        out["torso_dx_m"] = round(env.torso_x() - x0, 5)
        out["qpos_finite"] = env.qpos_finite()
    if trace:
        out["_trace"] = rows
    return out


def plot_trace(rows: List[List[float]], path: str) -> None:
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    t = [r[0] for r in rows]
    fig, ax = plt.subplots(figsize=(9, 4))
    for i, side in enumerate(SIDES):
        ax.plot(t, [r[i + 1] for r in rows], label=side.value)
    ax.set_xlabel("time (s)")
    ax.set_ylabel("progress")
    ax.set_ylim(-0.05, 1.05)
    ax.legend(loc="upper right", fontsize=8)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=120)
    plt.close(fig)


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--backend", choices=["kinematic", "mujoco"], default="kinematic")
    ap.add_argument("--config", default=None, help="JSON config (default: built-in defaults)")
    ap.add_argument("--xml", default="mjcf/critter.xml")
    ap.add_argument("--seconds", type=float, default=20.0)
    ap.add_argument("--direction", choices=["right", "left"], default=None, help="Override config direction")
    ap.add_argument("--vertical-travel", type=float, default=0.12, help="Kinematic vertical travel (m)")
    ap.add_argument("--stall", action="append", default=[], choices=[s.value for s in SIDES],
                    help="Jam an axis (kinematic backend); repeatable")
    ap.add_argument("--plot", default=None, help="Write a progress trace PNG")
    ap.add_argument("--state-out", default=None, help="Write the final sequencer state as JSON")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    cfg = load_config(args.config)
    if args.direction:
        cfg.direction = args.direction
        cfg.validate()
    ticks = int(math.ceil(args.seconds / cfg.tick - 1e-9))
    print(f"[sim_critter] backend={args.backend} lock={cfg.lock_strategy} direction={cfg.direction} "
          f"tick={cfg.tick}s ticks={ticks}")

    out = run(cfg, backend=args.backend, ticks=ticks, xml=args.xml,
              vertical_travel=args.vertical_travel, stall=[Side(s) for s in args.stall],
              verbose=args.verbose, trace=bool(args.plot))
    rows = out.pop("_trace", None)
    if args.plot and rows:
        plot_trace(rows, args.plot)
        print(f"[sim_critter] wrote {args.plot}")
    if args.state_out:
        Path(args.state_out).parent.mkdir(parents=True, exist_ok=True)
        Path(args.state_out).write_text(json.dumps(out["state"], indent=2) + "\n")
    print(json.dumps(out))


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        print(f"[sim_critter] ERROR: {e}")
        sys.exit(1)
