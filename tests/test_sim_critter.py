import json
import subprocess
import sys
from pathlib import Path

from control.actuators import Side
from control.critter_config import CritterConfig, load_config
from tools.sim_critter import run

ROOT = Path(__file__).resolve().parents[1]


def test_kinematic_run_walks_without_timeouts():
    out = run(CritterConfig(), backend="kinematic", ticks=500)
    assert out["completions"] >= 8
    assert out["timeouts"] == 0
    assert out["thresholds"] == out["completions"]
    assert out["cycles"] >= 1
    assert out["max_unlocked_axes"] == 1
    assert sum(out["per_phase"].values()) == out["completions"]


def test_summary_reports_final_axis_states():
    out = run(CritterConfig(), backend="kinematic", ticks=100)
    axes = out["axes"]
    assert set(axes) == {s.value for s in Side}
    free = [name for name, a in axes.items() if not a["locked"]]
    assert len(free) == 1
    assert axes[free[0]]["motor"] in ("extend", "retract")
    assert all(a["motor"] == "off" for name, a in axes.items() if name != free[0])
    assert all(0.0 <= a["progress"] <= 1.0 for a in axes.values())


def test_left_direction_runs_too():
    out = run(CritterConfig(direction="left"), backend="kinematic", ticks=500)
    assert out["direction"] == "left"
    assert out["completions"] >= 8 and out["timeouts"] == 0


def test_stalled_axis_times_out_and_gait_continues():
    cfg = CritterConfig()
    out = run(cfg, backend="kinematic", ticks=500, stall=(Side.LEFT_VERTICAL,))
    assert out["timeouts"] >= 1
    assert out["per_phase"].get("left_leg_up", 0) >= 1
    assert out["max_unlocked_axes"] == 1


def test_limits_lock_config_runs(critter_configs):
    cfg = load_config(critter_configs / "limits_lock.json")
    out = run(cfg, backend="kinematic", ticks=600)
    assert out["lock_strategy"] == "limits"
    assert out["completions"] >= 8
    assert out["timeouts"] == 0
    assert out["max_unlocked_axes"] == 1


def test_trace_rows_cover_every_tick():
    out = run(CritterConfig(), backend="kinematic", ticks=25, trace=True)
    rows = out["_trace"]
    assert len(rows) == 25
    assert all(len(r) == 5 for r in rows)
    assert all(0.0 <= v <= 1.0 for r in rows for v in r[1:])


def test_cli_prints_json_summary_last():
    proc = subprocess.run(
        [sys.executable, "tools/sim_critter.py", "--seconds", "5"],
        cwd=ROOT, capture_output=True, text=True, timeout=120,
    )
    assert proc.returncode == 0, proc.stdout + proc.stderr
    lines = [ln for ln in proc.stdout.splitlines() if ln.strip()]
    assert lines[0].startswith("[sim_critter]")
    out = json.loads(lines[-1])
    assert out["backend"] == "kinematic"
    assert out["ticks"] == 250
    assert out["completions"] > 0
