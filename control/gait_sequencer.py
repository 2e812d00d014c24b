from __future__ import annotations

"""Eight-phase gait sequencer for the four-slider critter.

One phase is active at a time: a single axis is unlocked and driven, the other
three are held. A phase ends when either guard fires:

  - timeout:   phase timer >= the phase's maximum duration
  - threshold: the active axis' normalized progress crossed its halt threshold

and then every axis is halted, the order index advances (mod 8) and the timer
resets. The timeout bounds every phase, so a jammed limb can only cost one
timeout before the cycle moves on.

``step`` is pure (state in, state + commands out) so it can be tested without
a substrate; :class:`GaitSequencer` is the thin stateful wrapper that reads
progress and applies commands each tick.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple

from .actuators import SIDES, ActuatorCommand, ActuatorInterface, Side
from .critter_config import CritterConfig, require_positive, require_threshold


DRIVE_EPS = 1e-6
TIME_EPS = 1e-9


class MoveState(Enum):
    LEFT_LEG_UP = "left_leg_up"
    LEFT_LEG_OUT = "left_leg_out"
    LEFT_LEG_DOWN = "left_leg_down"
    LEFT_LEG_IN = "left_leg_in"
    RIGHT_LEG_UP = "right_leg_up"
    RIGHT_LEG_OUT = "right_leg_out"
    RIGHT_LEG_DOWN = "right_leg_down"
    RIGHT_LEG_IN = "right_leg_in"


class GaitDirection(Enum):
    RIGHT = "right"
    LEFT = "left"


_M = MoveState

GAIT_ORDERS: Dict[GaitDirection, Tuple[MoveState, ...]] = {
    GaitDirection.RIGHT: (_M.RIGHT_LEG_UP, _M.LEFT_LEG_OUT, _M.RIGHT_LEG_OUT, _M.RIGHT_LEG_DOWN,
                          _M.LEFT_LEG_UP, _M.RIGHT_LEG_IN, _M.LEFT_LEG_IN, _M.LEFT_LEG_DOWN),
    GaitDirection.LEFT: (_M.LEFT_LEG_UP, _M.LEFT_LEG_OUT, _M.LEFT_LEG_DOWN, _M.LEFT_LEG_IN,
                         _M.RIGHT_LEG_UP, _M.RIGHT_LEG_IN, _M.RIGHT_LEG_DOWN, _M.RIGHT_LEG_OUT),
}
ORDER_LEN = 8

PHASE_SIDE: Dict[MoveState, Side] = {
    _M.LEFT_LEG_UP: Side.LEFT_VERTICAL,
    _M.LEFT_LEG_DOWN: Side.LEFT_VERTICAL,
    _M.LEFT_LEG_OUT: Side.LEFT_HORIZONTAL,
    _M.LEFT_LEG_IN: Side.LEFT_HORIZONTAL,
    _M.RIGHT_LEG_UP: Side.RIGHT_VERTICAL,
    _M.RIGHT_LEG_DOWN: Side.RIGHT_VERTICAL,
    _M.RIGHT_LEG_OUT: Side.RIGHT_HORIZONTAL,
    _M.RIGHT_LEG_IN: Side.RIGHT_HORIZONTAL,
}

# Down/Out extend, Up/In retract
PHASE_SIGN: Dict[MoveState, float] = {
    _M.LEFT_LEG_DOWN: +1.0, _M.RIGHT_LEG_DOWN: +1.0,
    _M.LEFT_LEG_OUT: +1.0, _M.RIGHT_LEG_OUT: +1.0,
    _M.LEFT_LEG_UP: -1.0, _M.RIGHT_LEG_UP: -1.0,
    _M.LEFT_LEG_IN: -1.0, _M.RIGHT_LEG_IN: -1.0,
}

UP_PHASES = frozenset({_M.LEFT_LEG_UP, _M.RIGHT_LEG_UP})
DOWN_PHASES = frozenset({_M.LEFT_LEG_DOWN, _M.RIGHT_LEG_DOWN})
OUT_PHASES = frozenset({_M.LEFT_LEG_OUT, _M.RIGHT_LEG_OUT})
IN_PHASES = frozenset({_M.LEFT_LEG_IN, _M.RIGHT_LEG_IN})

# Horizontal phases that take the "back" timeout when moving right
_BACK_WHEN_RIGHT = frozenset({_M.LEFT_LEG_OUT, _M.RIGHT_LEG_IN})


@dataclass(frozen=True)
class GaitTiming:
    max_lift_time: float = 3.0
    max_forward_time: float = 3.0
    max_back_time: float = 3.0
    max_drop_time: float = 3.0
    vertical_halt_threshold: float = 0.1
    horizontal_halt_threshold: float = 0.03

    def __post_init__(self):
        for key in ("max_lift_time", "max_forward_time", "max_back_time", "max_drop_time"):
            require_positive(key, getattr(self, key))
        for key in ("vertical_halt_threshold", "horizontal_halt_threshold"):
            require_threshold(key, getattr(self, key))

    @classmethod
    def from_config(cls, cfg: CritterConfig) -> "GaitTiming":
        cfg.validate()
        return cls(
            max_lift_time=cfg.max_lift_time,
            max_forward_time=cfg.max_forward_time,
            max_back_time=cfg.max_back_time,
            max_drop_time=cfg.max_drop_time,
            vertical_halt_threshold=cfg.vertical_halt_threshold,
            horizontal_halt_threshold=cfg.horizontal_halt_threshold,
        )


@dataclass
class SequencerState:
    order_index: int = 0
    phase_timer: float = 0.0
    direction: GaitDirection = GaitDirection.RIGHT

    def to_dict(self) -> Dict[str, Any]:
        return {"order_index": int(self.order_index), "phase_timer": float(self.phase_timer),
                "direction": self.direction.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SequencerState":
        idx = int(data.get("order_index", 0))
        if not 0 <= idx < ORDER_LEN:
            raise ValueError(f"order_index {idx} outside [0, {ORDER_LEN})")
        timer = float(data.get("phase_timer", 0.0))
        if not (math.isfinite(timer) and timer >= 0.0):
            raise ValueError(f"phase_timer must be finite and >= 0, got {timer}")
        return cls(idx, timer, GaitDirection(data.get("direction", GaitDirection.RIGHT.value)))


@dataclass(frozen=True)
class TickInput:
    dt: float
    progress: float
    direction: Optional[GaitDirection] = None

    def __post_init__(self):
        if not (math.isfinite(self.dt) and self.dt > 0.0):
            raise ValueError(f"tick dt must be a positive finite number, got {self.dt}")


@dataclass(frozen=True)
class LegCommand:
    side: Side
    locked: bool
    motor: ActuatorCommand


@dataclass(frozen=True)
class PhaseEvent:
    phase: MoveState
    next_phase: MoveState
    reason: str  # "timeout" | "threshold"
    elapsed: float
    progress: float


class StepResult(NamedTuple):
    state: SequencerState
    commands: List[LegCommand]
    event: Optional[PhaseEvent]


# ---------------- Lookups and guards ---------------- #

def gait_order(direction: GaitDirection) -> Tuple[MoveState, ...]:
    return GAIT_ORDERS[direction]


def current_phase(state: SequencerState, direction: Optional[GaitDirection] = None) -> MoveState:
    return gait_order(direction or state.direction)[state.order_index]


def side_for_phase(phase: MoveState) -> Side:
    return PHASE_SIDE[phase]


def drive_sign(phase: MoveState) -> float:
    return PHASE_SIGN[phase]


def max_time_for_phase(phase: MoveState, direction: GaitDirection, timing: GaitTiming) -> float:
    if phase in UP_PHASES:
        return timing.max_lift_time
    if phase in DOWN_PHASES:
        return timing.max_drop_time
    back = phase in _BACK_WHEN_RIGHT
    if direction is GaitDirection.LEFT:
        back = not back
    return timing.max_back_time if back else timing.max_forward_time


def threshold_finished(phase: MoveState, progress: float, timing: GaitTiming) -> bool:
    """Vertical progress shrinks as the leg rises; horizontal grows as it moves out."""
    if phase in UP_PHASES:
        return progress < timing.vertical_halt_threshold
    if phase in DOWN_PHASES:
        return progress > 1.0 - timing.vertical_halt_threshold
    if phase in OUT_PHASES:
        return progress > 1.0 - timing.horizontal_halt_threshold
    return progress < timing.horizontal_halt_threshold


def timed_out(phase: MoveState, timer: float, direction: GaitDirection, timing: GaitTiming) -> bool:
    return timer >= max_time_for_phase(phase, direction, timing) - TIME_EPS


# ---------------- Commands ---------------- #

def leg_motion(side: Side, drive_input: float) -> List[LegCommand]:
    """Pair lock + motor for a signed drive input; ~0 means hold the axis."""
    if abs(drive_input) < DRIVE_EPS:
        return [LegCommand(side, True, ActuatorCommand.OFF)]
    cmd = ActuatorCommand.EXTEND if drive_input > 0 else ActuatorCommand.RETRACT
    return [LegCommand(side, False, cmd)]


def halt_commands() -> List[LegCommand]:
    out: List[LegCommand] = []
    for side in SIDES:
        out.extend(leg_motion(side, 0.0))
    return out


def phase_commands(phase: MoveState) -> List[LegCommand]:
    return leg_motion(PHASE_SIDE[phase], PHASE_SIGN[phase])


def apply_commands(actuators: ActuatorInterface, commands: List[LegCommand]) -> None:
    # lock state first, then the drive
    for c in commands:
        actuators.set_lock(c.side, c.locked)
        actuators.set_motor(c.side, c.motor)


# ---------------- Pure step ---------------- #

def step(state: SequencerState, tick: TickInput, timing: GaitTiming) -> StepResult:
    """One control tick: (state, tick) -> (new state, ordered leg commands, completion event).

    A direction that differs from ``state.direction`` swaps the order table
    in place: same index, timer restarted, all axes halted first.
    """
    direction = tick.direction or state.direction
    switched = direction is not state.direction
    idx = state.order_index % ORDER_LEN
    timer = (0.0 if switched else state.phase_timer) + tick.dt
    order = gait_order(direction)
    phase = order[idx]

    by_timeout = timed_out(phase, timer, direction, timing)
    by_threshold = threshold_finished(phase, tick.progress, timing)

    commands: List[LegCommand] = []
    event: Optional[PhaseEvent] = None
    if switched or by_timeout or by_threshold:
        commands.extend(halt_commands())
    if by_timeout or by_threshold:
        nxt = (idx + 1) % ORDER_LEN
        event = PhaseEvent(
            phase=phase,
            next_phase=order[nxt],
            reason="timeout" if by_timeout else "threshold",
            elapsed=timer,
            progress=float(tick.progress),
        )
        idx, timer = nxt, 0.0

    new_state = SequencerState(order_index=idx, phase_timer=timer, direction=direction)
    commands.extend(phase_commands(order[idx]))
    return StepResult(new_state, commands, event)


# ---------------- Stateful wrapper ---------------- #

@dataclass
class PhaseCounters:
    timeouts: int = 0
    thresholds: int = 0
    per_phase: Dict[str, int] = field(default_factory=dict)

    @property
    def completions(self) -> int:
        return self.timeouts + self.thresholds

    def record(self, ev: PhaseEvent) -> None:
        if ev.reason == "timeout":
            self.timeouts += 1
        else:
            self.thresholds += 1
        self.per_phase[ev.phase.value] = self.per_phase.get(ev.phase.value, 0) + 1


class GaitSequencer:
    def __init__(self, actuators: ActuatorInterface, timing: Optional[GaitTiming] = None,
                 direction: GaitDirection = GaitDirection.RIGHT,
                 state: Optional[SequencerState] = None, verbose: bool = False):
        self.actuators = actuators
        self.timing = timing or GaitTiming()
        self._state = state or SequencerState(direction=direction)
        self.verbose = verbose
        self.counters = PhaseCounters()

    @classmethod
    def from_config(cls, actuators: ActuatorInterface, cfg: CritterConfig, verbose: bool = False) -> "GaitSequencer":
        return cls(actuators, GaitTiming.from_config(cfg), GaitDirection(cfg.direction), verbose=verbose)

    @property
    def state(self) -> SequencerState:
        return self._state

    @property
    def phase(self) -> MoveState:
        return current_phase(self._state)

    def set_direction(self, direction: GaitDirection) -> None:
        """Switch order tables now: halt every axis, keep the index, restart the timer."""
        if direction is self._state.direction:
            return
        apply_commands(self.actuators, halt_commands())
        self._state = SequencerState(self._state.order_index, 0.0, direction)

    def start(self) -> None:
        """Initialize the actuators (if they need it) and hold every axis."""
        start = getattr(self.actuators, "start", None)
        if callable(start):
            start()
        apply_commands(self.actuators, halt_commands())

    def tick(self, dt: float, direction: Optional[GaitDirection] = None) -> StepResult:
        direction = direction or self._state.direction
        phase = current_phase(self._state, direction)
        progress = self.actuators.progress(PHASE_SIDE[phase])
        res = step(self._state, TickInput(dt=float(dt), progress=progress, direction=direction), self.timing)
        apply_commands(self.actuators, res.commands)
        self._state = res.state
        if res.event is not None:
            self.counters.record(res.event)
            if self.verbose:
                ev = res.event
                verb = "timed out on" if ev.reason == "timeout" else "finished movement on"
                print(f"[critter] {verb} {ev.phase.value} after {ev.elapsed:.2f}s "
                      f"(progress={ev.progress:.3f}) -> {ev.next_phase.value}")
        return res

    def manual(self, inputs: Mapping[Side, float]) -> List[LegCommand]:
        """Debug override: drive axes directly from signed inputs, bypassing the gait."""
        cmds: List[LegCommand] = []
        for side, value in inputs.items():
            cmds.extend(leg_motion(side, float(value)))
        apply_commands(self.actuators, cmds)
        return cmds
