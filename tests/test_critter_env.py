import math
from pathlib import Path

import pytest

mujoco = pytest.importorskip("mujoco")

from control.actuators import SIDES, CritterActuators, Side
from control.critter_config import load_config
from control.gait_sequencer import GaitSequencer
from envs.critter_env import CritterEnv, EnvConfig

ROOT = Path(__file__).resolve().parents[1]
XML = ROOT / "mjcf" / "critter.xml"
CFG_DIR = ROOT / "configs" / "critter"

pytestmark = pytest.mark.skipif(not XML.exists(), reason="critter MJCF missing")


def _setup(config_name="default.json"):
    cfg = load_config(CFG_DIR / config_name)
    env = CritterEnv(EnvConfig(xml_path=str(XML)))
    act = CritterActuators(env.bank, cfg)
    seq = GaitSequencer.from_config(act, cfg)
    seq.start()
    return cfg, env, act, seq


def test_bank_resolves_four_slide_axes():
    env = CritterEnv(EnvConfig(xml_path=str(XML)))
    assert set(env.bank.jid) == set(SIDES)
    assert env.bank.limits(Side.LEFT_VERTICAL) == pytest.approx((0.0, 0.12))
    assert env.bank.limits(Side.RIGHT_HORIZONTAL) == pytest.approx((0.05, 0.15))
    # keyframe: legs in, feet down
    assert env.bank.translation(Side.LEFT_HORIZONTAL) == pytest.approx(0.05)
    assert env.bank.translation(Side.RIGHT_VERTICAL) == pytest.approx(0.12)


def test_start_holds_every_axis():
    cfg, env, act, seq = _setup()
    for side in SIDES:
        assert env.bank.hold_active(side)
        assert not env.bank.actuator_enabled(side)
        assert act.is_locked(side)
    assert env.m.actuator_forcerange[env.bank.aid[Side.LEFT_VERTICAL]][1] == pytest.approx(cfg.critter_strength)


def test_one_axis_unlocked_after_tick():
    cfg, env, act, seq = _setup()
    seq.tick(cfg.tick)
    free = [s for s in SIDES if not env.bank.hold_active(s)]
    assert free == [Side.RIGHT_VERTICAL]
    assert env.bank.actuator_enabled(Side.RIGHT_VERTICAL)
    assert env.d.ctrl[env.bank.aid[Side.RIGHT_VERTICAL]] == pytest.approx(-cfg.target_speed)


def test_gait_runs_and_stays_finite():
    cfg, env, act, seq = _setup()
    for _ in range(200):
        seq.tick(cfg.tick)
        assert sum(1 for s in SIDES if not act.is_locked(s)) == 1
        env.advance(cfg.tick)
    assert env.qpos_finite()
    assert seq.counters.completions >= 1
    assert all(0.0 <= act.progress(s) <= 1.0 for s in SIDES)


def test_held_axis_keeps_its_first_hold_target():
    cfg, env, act, seq = _setup()
    side = Side.LEFT_HORIZONTAL
    e = env.bank.eqid[side]
    target = float(env.m.eq_data[e, 0])
    env.d.qpos[env.bank.qadr[side]] = 0.1
    env.bank.set_hold(side, True)
    assert float(env.m.eq_data[e, 0]) == target


def test_limits_strategy_squeezes_joint_range():
    cfg, env, act, seq = _setup("limits_lock.json")
    seq.tick(cfg.tick)
    for side in SIDES:
        lo, hi = env.bank.limits(side)
        if side is Side.RIGHT_VERTICAL:
            assert (lo, hi) == pytest.approx((0.0, 0.12))
        else:
            assert hi - lo <= 2 * cfg.joint_lock_tolerance + 1e-9
    for _ in range(50):
        seq.tick(cfg.tick)
        env.advance(cfg.tick)
    assert env.qpos_finite()
    assert not math.isnan(act.progress(Side.RIGHT_VERTICAL))


def test_reset_restores_keyframe_observation():
    cfg, env, act, seq = _setup()
    first = env.observe()
    for _ in range(25):
        seq.tick(cfg.tick)
        env.advance(cfg.tick)
    assert env.d.time > 0.0
    obs = env.reset()
    assert set(obs) == {s.value for s in SIDES} | {"torso_x", "time"}
    assert obs["time"] == 0.0
    for side in SIDES:
        assert obs[side.value] == pytest.approx(first[side.value])
