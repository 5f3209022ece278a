"""
governor.py - Manual Setpoint Governor
Hover Cascade - Flight Control Stack

The governor converts held pilot commands into bounded, periodic setpoint
increments. A repeating timer gates the increments so a held key ramps the
target at a fixed rate regardless of the simulation frame rate:

    held key ──▶ timer.tick(dt) ──▶ (interval complete?) ──▶ target += step
                                                             clamp to bounds

Release behaviour:
- Movement: releasing every directional key snaps the direction vector and
  both cruise targets to zero on the same tick.
- Pitch / roll: releasing the axis snaps its target to zero (self-leveling).
- Yaw: holds the last commanded heading.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from engine_state import EngineState
from input_handler import (
    GOVERNED_COMMANDS,
    MOVE_COMMANDS,
    PITCH_COMMANDS,
    ROLL_COMMANDS,
    Command,
    SimulationInput,
)

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """
    Fixed-interval repeating timer.

    tick() returns True on the tick the interval completes. Time left over
    past the interval is carried into the next period.
    """

    def __init__(self, interval: float = 0.05):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.interval = interval
        self.elapsed = 0.0
        self.times_finished = 0

    def tick(self, dt: float) -> bool:
        self.elapsed += max(dt, 0.0)
        if self.elapsed + 1e-9 < self.interval:
            return False
        self.elapsed = max(self.elapsed - self.interval, 0.0) % self.interval
        self.times_finished += 1
        return True

    def reset(self):
        self.elapsed = 0.0


@dataclass
class Setpoints:
    """Targets for every controlled axis."""

    altitude: float = 0.0  # [m]
    velocity_x: float = 0.0  # [m/s]
    velocity_z: float = 0.0  # [m/s]
    pitch: float = 0.0  # [rad]
    roll: float = 0.0  # [rad]
    yaw: float = 0.0  # [rad]

    def reset(self, altitude: float = 0.0):
        """Zero every target in place and set the altitude target."""
        self.altitude = altitude
        self.velocity_x = 0.0
        self.velocity_z = 0.0
        self.pitch = 0.0
        self.roll = 0.0
        self.yaw = 0.0

    def as_dict(self) -> dict:
        return {
            "altitude": self.altitude,
            "velocity_x": self.velocity_x,
            "velocity_z": self.velocity_z,
            "pitch": self.pitch,
            "roll": self.roll,
            "yaw": self.yaw,
        }


@dataclass
class GovernorConfig:
    """Rates and operating envelope for setpoint changes."""

    interval: float = 0.05  # Governor period [s]

    # Per-interval steps
    height_step: float = 0.5  # [m]
    angle_step: float = math.radians(2.0)  # [rad]
    yaw_step: float = math.radians(3.0)  # [rad]
    velocity_step: float = 1.0  # [m/s] per unit direction

    # Envelope
    min_altitude: float = 0.0  # [m]
    max_altitude: float = 50.0  # [m]
    min_velocity: float = -10.0  # [m/s]
    max_velocity: float = 10.0  # [m/s]
    max_angle: float = math.radians(30.0)  # [rad], pitch and roll

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError(f"interval must be > 0, got {self.interval}")
        if self.min_altitude > self.max_altitude:
            raise ValueError("min_altitude must be <= max_altitude")
        if self.min_velocity > self.max_velocity:
            raise ValueError("min_velocity must be <= max_velocity")
        if self.max_angle <= 0:
            raise ValueError("max_angle must be > 0")
        for name in ("height_step", "angle_step", "yaw_step", "velocity_step"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    def clamp_altitude(self, value: float) -> float:
        return float(np.clip(value, self.min_altitude, self.max_altitude))

    def clamp_velocity(self, value: float) -> float:
        return float(np.clip(value, self.min_velocity, self.max_velocity))

    def clamp_angle(self, value: float) -> float:
        return float(np.clip(value, -self.max_angle, self.max_angle))


def _axis(sim_input: SimulationInput, positive: Command, negative: Command) -> float:
    return float(sim_input.is_held(positive)) - float(sim_input.is_held(negative))


def movement_direction(sim_input: SimulationInput) -> Tuple[float, float]:
    """
    Unit direction (x, z) from held movement commands.

    Forward is -z. Returns (0, 0) when nothing is held or keys cancel.
    """
    dx = _axis(sim_input, Command.MOVE_RIGHT, Command.MOVE_LEFT)
    dz = _axis(sim_input, Command.MOVE_BACK, Command.MOVE_FORWARD)
    norm = math.hypot(dx, dz)
    if norm == 0.0:
        return 0.0, 0.0
    return dx / norm, dz / norm


class SetpointGovernor:
    """Rate-limited manual setpoint updates."""

    def __init__(self, config: Optional[GovernorConfig] = None):
        self.config = config if config is not None else GovernorConfig()
        self.timer = RepeatingTimer(self.config.interval)
        self.direction = (0.0, 0.0)
        self.increments_applied = 0

    def reset(self):
        """Clear the timer and the movement direction."""
        self.timer.reset()
        self.direction = (0.0, 0.0)

    def update(
        self,
        targets: Setpoints,
        sim_input: SimulationInput,
        engine_state: EngineState,
        dt: float,
    ) -> bool:
        """
        Apply one governor tick to ``targets`` in place.

        Returns:
            True if an increment was applied on this tick
        """
        self._apply_releases(targets, sim_input)

        if not engine_state.is_on or not sim_input.any_held(GOVERNED_COMMANDS):
            return False

        self.direction = movement_direction(sim_input)

        if not self.timer.tick(dt):
            return False

        self._increment(targets, sim_input)
        self.increments_applied += 1
        return True

    def _apply_releases(self, targets: Setpoints, sim_input: SimulationInput):
        if not sim_input.any_held(MOVE_COMMANDS):
            self.direction = (0.0, 0.0)
            targets.velocity_x = 0.0
            targets.velocity_z = 0.0
        if not sim_input.any_held(PITCH_COMMANDS):
            targets.pitch = 0.0
        if not sim_input.any_held(ROLL_COMMANDS):
            targets.roll = 0.0

    def _increment(self, targets: Setpoints, sim_input: SimulationInput):
        cfg = self.config

        climb = _axis(sim_input, Command.ASCEND, Command.DESCEND)
        if climb:
            targets.altitude = cfg.clamp_altitude(
                targets.altitude + climb * cfg.height_step
            )

        pitch = _axis(sim_input, Command.PITCH_FORWARD, Command.PITCH_BACK)
        if pitch:
            targets.pitch = cfg.clamp_angle(targets.pitch + pitch * cfg.angle_step)

        roll = _axis(sim_input, Command.ROLL_RIGHT, Command.ROLL_LEFT)
        if roll:
            targets.roll = cfg.clamp_angle(targets.roll + roll * cfg.angle_step)

        # Positive yaw turns left about +Y; unbounded
        yaw = _axis(sim_input, Command.YAW_LEFT, Command.YAW_RIGHT)
        if yaw:
            targets.yaw = targets.yaw + yaw * cfg.yaw_step

        dx, dz = self.direction
        if dx or dz:
            targets.velocity_x = cfg.clamp_velocity(
                targets.velocity_x + dx * cfg.velocity_step
            )
            targets.velocity_z = cfg.clamp_velocity(
                targets.velocity_z + dz * cfg.velocity_step
            )

        logger.debug("setpoints %s", targets.as_dict())
