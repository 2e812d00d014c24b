import json

import pytest

from control.critter_config import ConfigError, CritterConfig, load_config
from control.gait_sequencer import GaitTiming


def test_defaults_are_valid():
    cfg = load_config(None)
    assert cfg.max_lift_time == 3.0
    assert cfg.vertical_halt_threshold == 0.1
    assert cfg.horizontal_halt_threshold == 0.03
    assert cfg.lock_strategy == "fixed"
    t = GaitTiming.from_config(cfg)
    assert t.max_drop_time == 3.0


def test_shipped_configs_load(critter_configs):
    for name in ("default.json", "limits_lock.json"):
        cfg = load_config(critter_configs / name)
        assert cfg.horizontal_min < cfg.horizontal_max
    assert load_config(critter_configs / "limits_lock.json").lock_strategy == "limits"


@pytest.mark.parametrize("key,value", [
    ("max_lift_time", 0.0),
    ("max_forward_time", -1.0),
    ("max_back_time", float("nan")),
    ("max_drop_time", "soon"),
    ("vertical_halt_threshold", 0.0),
    ("vertical_halt_threshold", 0.5),
    ("horizontal_halt_threshold", -0.03),
    ("target_speed", 0.0),
    ("critter_strength", -5.0),
    ("joint_lock_tolerance", 0.0),
    ("tick", 0.0),
    ("lock_strategy", "glue"),
    ("direction", "up"),
])
def test_invalid_values_rejected(key, value):
    with pytest.raises(ConfigError) as ei:
        CritterConfig.from_dict({key: value})
    assert key in str(ei.value)


def test_inverted_horizontal_bounds_rejected():
    with pytest.raises(ConfigError):
        CritterConfig(horizontal_min=1.5, horizontal_max=0.5).validate()


def test_unknown_keys_rejected(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps({"max_lift_time": 2.0, "maxLiftTime": 2.0}))
    with pytest.raises(ConfigError, match="maxLiftTime"):
        load_config(p)


def test_config_error_is_value_error(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text(json.dumps({"horizontal_halt_threshold": 0.7}))
    with pytest.raises(ValueError):
        load_config(p)


def test_round_trip_through_dict():
    cfg = CritterConfig(max_back_time=1.5, direction="left")
    assert CritterConfig.from_dict(cfg.to_dict()) == cfg
