"""
flight_controller.py - Cascaded Flight Controller for the Hover Vehicle
Hover Cascade - Flight Control Stack

Every controlled axis runs its own PIDController. The flight controller wires
them together behind the engine gate and the manual setpoint governor:

    ┌──────────────────────────────────────────────────────────────────┐
    │  SimulationInput ──▶ Engine state machine ──▶ Setpoint governor  │
    └──────────────────────────────────────────────────────────────────┘
                                   │ (engine On only)
                                   ▼
    ┌──────────────────────────────────────────────────────────────────┐
    │  Altitude PID ──▶ vertical velocity write  |  thrust along up    │
    │  Cruise X PID ──▶ acceleration ──▶ vx += a * dt                  │
    │  Cruise Z PID ──▶ acceleration ──▶ vz += a * dt                  │
    │  Pitch / Roll / Yaw PID ──▶ angular accel ──▶ torque = I * alpha │
    └──────────────────────────────────────────────────────────────────┘
                                   │
                                   ▼
                            ControlCommand

Execution order inside one tick is fixed: engine, governor, altitude,
cruise, attitude. Controllers read the vehicle state produced by the
previous physics step.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from engine_state import EngineState, EngineStateMachine, EngineTransition
from governor import GovernorConfig, SetpointGovernor, Setpoints
from input_handler import SimulationInput
from pid_controller import PIDController, PIDGains
from telemetry import TelemetryData, build_telemetry
from vehicle_model import ActuatorInput, VehicleState

logger = logging.getLogger(__name__)


class AltitudeMode(Enum):
    """How the altitude controller drives the vehicle."""

    VELOCITY = "velocity"  # PID output is a vertical velocity
    FORCE = "force"  # PID output is a vertical acceleration -> thrust


def default_altitude_gains(mode: AltitudeMode) -> PIDGains:
    if mode is AltitudeMode.VELOCITY:
        return PIDGains(kp=2.0, ki=0.2, kd=0.2, output_limit=4.0)
    return PIDGains(kp=4.0, ki=0.5, kd=3.0, output_limit=6.0, min_kp=3.0, max_kp=5.0)


def default_cruise_gains() -> PIDGains:
    return PIDGains(kp=2.0, ki=0.1, kd=0.05, output_limit=5.0)


def default_tilt_gains() -> PIDGains:
    return PIDGains(kp=8.0, ki=0.1, kd=4.0, min_kp=6.0, max_kp=10.0)


def default_yaw_gains() -> PIDGains:
    return PIDGains(kp=6.0, ki=0.0, kd=4.0)


@dataclass
class ControlCommand(ActuatorInput):
    """Controller output for one tick, plus the engine state it was made in."""

    engine_state: EngineState = EngineState.OFF

    @classmethod
    def neutral(cls, engine_state: EngineState = EngineState.OFF) -> "ControlCommand":
        """Zero force and torque, no velocity writes."""
        return cls(engine_state=engine_state)


@dataclass
class FlightControllerConfig:
    """Tuning and envelope of the whole cascade."""

    altitude_mode: AltitudeMode = AltitudeMode.VELOCITY
    altitude_gains: Optional[PIDGains] = None  # None = default for the mode
    kv: float = 8.0  # Vertical velocity smoothing rate [1/s]
    initial_altitude_target: float = 30.0  # [m]

    cruise_x_gains: PIDGains = field(default_factory=default_cruise_gains)
    cruise_z_gains: PIDGains = field(default_factory=default_cruise_gains)

    pitch_gains: PIDGains = field(default_factory=default_tilt_gains)
    roll_gains: PIDGains = field(default_factory=default_tilt_gains)
    yaw_gains: PIDGains = field(default_factory=default_yaw_gains)

    governor: GovernorConfig = field(default_factory=GovernorConfig)

    gravity: float = 9.81  # [m/s²]

    start_engine_on: bool = False
    reset_integrals_on_start: bool = True

    def __post_init__(self):
        if self.altitude_gains is None:
            self.altitude_gains = default_altitude_gains(self.altitude_mode)
        if self.kv <= 0:
            raise ValueError(f"kv must be > 0, got {self.kv}")
        if self.gravity < 0:
            raise ValueError(f"gravity must be >= 0, got {self.gravity}")


class AltitudeController:
    """
    Hover controller on vertical position.

    Velocity mode: the PID output is a target vertical velocity, smoothed
    toward the current vertical velocity with alpha = 1 - exp(-kv * dt).

    Force mode: the PID output is a vertical acceleration; thrust
    F = m * (a + g) is emitted along the body's up axis.

    Gain scheduling uses ground proximity, (max_y - y) / (max_y - min_y),
    so kp is largest near the ground.
    """

    def __init__(
        self,
        gains: PIDGains,
        mode: AltitudeMode = AltitudeMode.VELOCITY,
        kv: float = 8.0,
        min_y: float = 0.0,
        max_y: float = 50.0,
        gravity: float = 9.81,
    ):
        self.pid = PIDController(gains, "altitude")
        self.mode = mode
        self.kv = kv
        self.min_y = min_y
        self.max_y = max_y
        self.gravity = gravity
        self.last_output = 0.0

    def schedule_state(self, y: float) -> float:
        span = self.max_y - self.min_y
        if span <= 0:
            return 1.0
        return (self.max_y - y) / span

    def smoothing_alpha(self, dt: float) -> float:
        return 1.0 - math.exp(-self.kv * max(dt, 0.0))

    def update(
        self, target: float, state: VehicleState, dt: float
    ) -> Tuple[Optional[float], np.ndarray]:
        """
        Args:
            target: Altitude setpoint [m]
            state: Current vehicle state
            dt: Time step [s]

        Returns:
            (vertical velocity write or None, world force vector)
        """
        out = self.pid.update(target, state.y, dt, self.schedule_state(state.y))
        self.last_output = out

        if self.mode is AltitudeMode.VELOCITY:
            alpha = self.smoothing_alpha(dt)
            vy = state.vy * (1.0 - alpha) + out * alpha
            return vy, np.zeros(3)

        thrust = state.mass * (out + self.gravity)
        return None, thrust * state.up_axis()


class CruiseController:
    """
    Horizontal velocity controller for one axis.

    The output acceleration is integrated into velocity with explicit Euler.
    """

    def __init__(self, gains: PIDGains, axis: str):
        if axis not in ("x", "z"):
            raise ValueError(f"cruise axis must be 'x' or 'z', got {axis!r}")
        self.axis = axis
        self.pid = PIDController(gains, f"cruise_{axis}")
        self.last_output = 0.0

    def update(self, target: float, velocity: float, dt: float) -> float:
        """Return the clamped acceleration command [m/s²]."""
        self.last_output = self.pid.update(target, velocity, dt)
        return self.last_output

    @staticmethod
    def next_velocity(velocity: float, acceleration: float, dt: float) -> float:
        return velocity + acceleration * max(dt, 0.0)


class AttitudeController:
    """
    Orientation controller for one axis.

    The error is always wrapped into (-pi, pi]. The PID output is an angular
    acceleration converted to torque with the axis' principal inertia.
    """

    def __init__(self, gains: PIDGains, axis: str, max_angle: Optional[float] = None):
        if axis not in ("pitch", "roll", "yaw"):
            raise ValueError(f"attitude axis must be pitch/roll/yaw, got {axis!r}")
        self.axis = axis
        self.max_angle = max_angle
        self.pid = PIDController(gains, axis, angular=True)
        self.last_output = 0.0

    def schedule_state(self, angle: float) -> Optional[float]:
        if not self.max_angle:
            return None
        return abs(angle) / self.max_angle

    def update(self, target: float, angle: float, inertia: float, dt: float) -> float:
        """Return the torque about this axis [N·m]."""
        alpha = self.pid.update(target, angle, dt, self.schedule_state(angle))
        self.last_output = alpha
        return inertia * alpha


class FlightController:
    """
    Complete flight control stack for one vehicle.

    Owns the per-axis controllers, the setpoint governor, the engine state
    machine and the setpoints. More than one vehicle means one
    FlightController per vehicle id.
    """

    def __init__(self, config: Optional[FlightControllerConfig] = None):
        self.config = config if config is not None else FlightControllerConfig()
        cfg = self.config
        gov = cfg.governor

        self.altitude = AltitudeController(
            cfg.altitude_gains,
            mode=cfg.altitude_mode,
            kv=cfg.kv,
            min_y=gov.min_altitude,
            max_y=gov.max_altitude,
            gravity=cfg.gravity,
        )
        self.cruise_x = CruiseController(cfg.cruise_x_gains, "x")
        self.cruise_z = CruiseController(cfg.cruise_z_gains, "z")
        self.pitch = AttitudeController(cfg.pitch_gains, "pitch", gov.max_angle)
        self.roll = AttitudeController(cfg.roll_gains, "roll", gov.max_angle)
        self.yaw = AttitudeController(cfg.yaw_gains, "yaw")

        self.governor = SetpointGovernor(gov)
        self.targets = Setpoints(
            altitude=gov.clamp_altitude(cfg.initial_altitude_target)
        )

        initial = EngineState.ON if cfg.start_engine_on else EngineState.OFF
        self.engine = EngineStateMachine(initial)
        self.engine.on_enter(EngineState.ON, self._on_engine_on)
        self.engine.on_enter(EngineState.OFF, self._on_engine_off)

        self.last_command = ControlCommand.neutral(self.engine.state)
        self.tick_count = 0

    # ------------------------------------------------------------------
    # Engine transitions
    # ------------------------------------------------------------------

    def _controllers(self) -> Dict[str, PIDController]:
        return {
            "altitude": self.altitude.pid,
            "cruise_x": self.cruise_x.pid,
            "cruise_z": self.cruise_z.pid,
            "pitch": self.pitch.pid,
            "roll": self.roll.pid,
            "yaw": self.yaw.pid,
        }

    def _on_engine_on(self, transition: EngineTransition):
        gov = self.config.governor
        self.targets.reset(altitude=gov.min_altitude)
        self.governor.reset()
        for pid in self._controllers().values():
            if self.config.reset_integrals_on_start:
                pid.state.integral_e = 0.0
            pid.reseed()

    def _on_engine_off(self, transition: EngineTransition):
        self.targets.altitude = self.config.governor.min_altitude
        self.targets.velocity_x = 0.0
        self.targets.velocity_z = 0.0
        self.governor.reset()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    @property
    def engine_state(self) -> EngineState:
        return self.engine.state

    def tick(
        self, state: VehicleState, sim_input: SimulationInput, dt: float
    ) -> ControlCommand:
        """
        Run one control tick.

        Args:
            state: Vehicle state after the previous physics step
            sim_input: Held / pressed commands for this tick
            dt: Elapsed simulation time [s]

        Returns:
            Command for the physics layer; neutral while the engine is Off
        """
        self.tick_count += 1

        self.engine.handle(sim_input)
        self.governor.update(self.targets, sim_input, self.engine.state, dt)

        if not self.engine.is_on:
            self.last_command = ControlCommand.neutral(self.engine.state)
            return self.last_command

        targets = self.targets

        vertical_velocity, force = self.altitude.update(targets.altitude, state, dt)

        ax = self.cruise_x.update(targets.velocity_x, state.vx, dt)
        az = self.cruise_z.update(targets.velocity_z, state.vz, dt)
        horizontal_velocity = (
            CruiseController.next_velocity(state.vx, ax, dt),
            CruiseController.next_velocity(state.vz, az, dt),
        )

        torque = np.array(
            [
                self.pitch.update(targets.pitch, state.pitch, state.Ix, dt),
                self.yaw.update(targets.yaw, state.yaw, state.Iy, dt),
                self.roll.update(targets.roll, state.roll, state.Iz, dt),
            ]
        )

        self.last_command = ControlCommand(
            force=force,
            torque=torque,
            vertical_velocity=vertical_velocity,
            horizontal_velocity=horizontal_velocity,
            engine_state=self.engine.state,
        )
        return self.last_command

    def set_altitude_target(self, altitude: float):
        """Assign the altitude target directly, clamped to the envelope."""
        self.targets.altitude = self.config.governor.clamp_altitude(altitude)

    def readouts(self, state: VehicleState) -> TelemetryData:
        """Target and measured values of every axis, for display."""
        return build_telemetry(self, state)

    # ------------------------------------------------------------------
    # Tuning
    # ------------------------------------------------------------------

    def get_gains_dict(self) -> Dict[str, Dict[str, float]]:
        """Return all PID gains as a dictionary for display/saving."""
        return {
            name: {"Kp": pid.gains.kp, "Ki": pid.gains.ki, "Kd": pid.gains.kd}
            for name, pid in self._controllers().items()
        }

    def tune_gains(
        self,
        controller_name: str,
        kp: Optional[float] = None,
        ki: Optional[float] = None,
        kd: Optional[float] = None,
    ):
        """
        Tune gains for a specific controller at runtime.

        Args:
            controller_name: One of 'altitude', 'cruise_x', 'cruise_z',
                           'pitch', 'roll', 'yaw'
            kp, ki, kd: New gain values (None = keep current)
        """
        controllers = self._controllers()
        if controller_name not in controllers:
            raise KeyError(f"unknown controller {controller_name!r}")
        controllers[controller_name].set_gains(kp, ki, kd)
