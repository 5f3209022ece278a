"""
vehicle_model.py - Rigid-Body Model of the Hover Vehicle
Hover Cascade - Flight Control Stack

This module is the physics layer the flight controller flies against:
- Newton's second law for translation (thrust + gravity + damping)
- Decoupled per-axis rotation (torque / principal inertia)
- Euler and Runge-Kutta (RK4) numerical integration
- Kinematic velocity writes for velocity-command controllers
- A flat ground plane at y = 0

Coordinate System (Y-up):
- X-axis: Right
- Y-axis: Up (altitude)
- Z-axis: Backward (forward is -Z)

Euler angles: yaw about Y, pitch about X, roll about Z,
R = Ry(yaw) * Rx(pitch) * Rz(roll).

Reference:
- Beard, R. W., & McLain, T. W. (2012). Small unmanned aircraft: Theory and practice.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class IntegrationMethod(Enum):
    """Numerical integration methods available for simulation."""

    EULER = "euler"
    RUNGE_KUTTA_4 = "rk4"


@dataclass
class VehicleParameters:
    """
    Physical parameters of the vehicle.
    All units are SI (kg, m, s, rad).
    """

    mass: float = 1.0  # [kg]

    # Principal moments of inertia of a 1.0 x 0.5 x 1.0 m box [kg·m²]
    Ix: float = 0.1042  # pitch
    Iy: float = 0.1667  # yaw
    Iz: float = 0.1042  # roll

    gravity: float = 9.81  # [m/s²]

    linear_damping: float = 0.0  # [1/s]
    angular_damping: float = 0.0  # [1/s]

    # Lowest admissible altitude of the body origin [m]
    ground_height: float = 0.0

    def __post_init__(self):
        if self.mass <= 0:
            raise ValueError(f"mass must be > 0, got {self.mass}")
        for name in ("Ix", "Iy", "Iz"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.linear_damping < 0 or self.angular_damping < 0:
            raise ValueError("damping must be >= 0")

    def get_inertia(self) -> np.ndarray:
        """Principal inertia (Ix, Iy, Iz)."""
        return np.array([self.Ix, self.Iy, self.Iz])


@dataclass
class VehicleState:
    """
    Complete state of the vehicle as seen by the controllers.

    Angular rates are Euler-angle rates, one per controlled attitude axis.
    """

    # Position in world frame [m]
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    # Velocity in world frame [m/s]
    vx: float = 0.0
    vy: float = 0.0
    vz: float = 0.0

    # Euler angles [rad]
    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0

    # Euler angle rates [rad/s]
    yaw_rate: float = 0.0
    pitch_rate: float = 0.0
    roll_rate: float = 0.0

    # Mass properties, mirrored from VehicleParameters
    mass: float = 1.0
    Ix: float = 0.1042
    Iy: float = 0.1667
    Iz: float = 0.1042

    timestamp: float = 0.0

    def to_array(self) -> np.ndarray:
        """Convert the kinematic state to a numpy array for integration."""
        return np.array(
            [
                self.x,
                self.y,
                self.z,
                self.vx,
                self.vy,
                self.vz,
                self.yaw,
                self.pitch,
                self.roll,
                self.yaw_rate,
                self.pitch_rate,
                self.roll_rate,
            ]
        )

    def with_array(self, arr: np.ndarray, timestamp: float) -> "VehicleState":
        """New state from an integration vector, keeping mass properties."""
        return VehicleState(
            x=float(arr[0]),
            y=float(arr[1]),
            z=float(arr[2]),
            vx=float(arr[3]),
            vy=float(arr[4]),
            vz=float(arr[5]),
            yaw=float(arr[6]),
            pitch=float(arr[7]),
            roll=float(arr[8]),
            yaw_rate=float(arr[9]),
            pitch_rate=float(arr[10]),
            roll_rate=float(arr[11]),
            mass=self.mass,
            Ix=self.Ix,
            Iy=self.Iy,
            Iz=self.Iz,
            timestamp=timestamp,
        )

    def copy(self) -> "VehicleState":
        return self.with_array(self.to_array(), self.timestamp)

    def get_position(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z])

    def get_velocity(self) -> np.ndarray:
        return np.array([self.vx, self.vy, self.vz])

    def get_euler_angles(self) -> np.ndarray:
        """Return (yaw, pitch, roll) in radians."""
        return np.array([self.yaw, self.pitch, self.roll])

    def get_inertia(self) -> np.ndarray:
        """Return principal inertia (Ix, Iy, Iz)."""
        return np.array([self.Ix, self.Iy, self.Iz])

    def rotation_matrix(self) -> np.ndarray:
        return rotation_matrix(self.yaw, self.pitch, self.roll)

    def up_axis(self) -> np.ndarray:
        """The body's local +Y axis expressed in the world frame."""
        return self.rotation_matrix()[:, 1]


def rotation_matrix(yaw: float, pitch: float, roll: float) -> np.ndarray:
    """
    Body-to-world rotation, R = Ry(yaw) * Rx(pitch) * Rz(roll).

    Args:
        yaw: Rotation about Y [rad]
        pitch: Rotation about X [rad]
        roll: Rotation about Z [rad]
    """
    cy, sy = np.cos(yaw), np.sin(yaw)
    cp, sp = np.cos(pitch), np.sin(pitch)
    cr, sr = np.cos(roll), np.sin(roll)

    Ry = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    Rx = np.array([[1.0, 0.0, 0.0], [0.0, cp, -sp], [0.0, sp, cp]])
    Rz = np.array([[cr, -sr, 0.0], [sr, cr, 0.0], [0.0, 0.0, 1.0]])

    return Ry @ Rx @ Rz


@dataclass
class ActuatorInput:
    """
    What the physics layer applies for one tick.

    force: world-frame external force [N]
    torque: (pitch, yaw, roll) torques [N·m]
    vertical_velocity / horizontal_velocity: kinematic velocity writes;
    a written component ignores forces for that tick.
    """

    force: np.ndarray = field(default_factory=lambda: np.zeros(3))
    torque: np.ndarray = field(default_factory=lambda: np.zeros(3))
    vertical_velocity: Optional[float] = None
    horizontal_velocity: Optional[Tuple[float, float]] = None


class VehicleModel:
    """
    Rigid-body model of the hover vehicle.

    Translational dynamics (world frame):
        m * a = F_ext + [0, -m*g, 0] - m * c_lin * v

    Rotational dynamics (per axis, decoupled):
        angle_ddot = tau / I - c_ang * angle_dot

    Velocity components written by the controller are held fixed for the
    step and integrated into position directly.
    """

    def __init__(
        self,
        params: Optional[VehicleParameters] = None,
        integration_method: IntegrationMethod = IntegrationMethod.RUNGE_KUTTA_4,
        initial_state: Optional[VehicleState] = None,
    ):
        self.params = params if params is not None else VehicleParameters()
        self.integration_method = integration_method
        self.state = self._with_mass_properties(initial_state or VehicleState())

        # State history for telemetry (last 10 values)
        self.max_history_length = 10
        self.position_history: deque = deque(maxlen=self.max_history_length)
        self.velocity_history: deque = deque(maxlen=self.max_history_length)

        # Simulation statistics
        self.total_steps = 0
        self.total_simulation_time = 0.0

    def _with_mass_properties(self, state: VehicleState) -> VehicleState:
        state = state.copy()
        state.mass = self.params.mass
        state.Ix, state.Iy, state.Iz = self.params.Ix, self.params.Iy, self.params.Iz
        return state

    def reset(self, initial_state: Optional[VehicleState] = None):
        """Reset the model to an initial state."""
        self.state = self._with_mass_properties(initial_state or VehicleState())
        self.position_history.clear()
        self.velocity_history.clear()
        self.total_steps = 0
        self.total_simulation_time = 0.0

    def _dynamics(
        self, state_vec: np.ndarray, command: ActuatorInput, locked: np.ndarray
    ) -> np.ndarray:
        """
        Compute state derivatives.

        Args:
            state_vec: [x,y,z, vx,vy,vz, yaw,pitch,roll, yaw_rate,pitch_rate,roll_rate]
            command: Actuator input for this step
            locked: Boolean mask of velocity components held by a write

        Returns:
            State derivative vector
        """
        m = self.params.mass
        g = self.params.gravity
        v = state_vec[3:6]
        rates = state_vec[9:12]

        gravity_world = np.array([0.0, -m * g, 0.0])
        accel = (command.force + gravity_world) / m - self.params.linear_damping * v
        accel[locked] = 0.0

        # Torque is ordered (pitch, yaw, roll); rates are (yaw, pitch, roll)
        tau_pitch, tau_yaw, tau_roll = command.torque
        angular_accel = np.array(
            [
                tau_yaw / self.params.Iy,
                tau_pitch / self.params.Ix,
                tau_roll / self.params.Iz,
            ]
        )
        angular_accel -= self.params.angular_damping * rates

        return np.concatenate([v, accel, rates, angular_accel])

    def _euler_integration(self, state_vec, command, locked, dt) -> np.ndarray:
        """x(t + dt) = x(t) + dt * f(x(t), u(t))"""
        return state_vec + dt * self._dynamics(state_vec, command, locked)

    def _rk4_integration(self, state_vec, command, locked, dt) -> np.ndarray:
        """Classic 4th-order Runge-Kutta step."""
        k1 = self._dynamics(state_vec, command, locked)
        k2 = self._dynamics(state_vec + 0.5 * dt * k1, command, locked)
        k3 = self._dynamics(state_vec + 0.5 * dt * k2, command, locked)
        k4 = self._dynamics(state_vec + dt * k3, command, locked)
        return state_vec + (dt / 6.0) * (k1 + 2 * k2 + 2 * k3 + k4)

    def step(self, command: ActuatorInput, dt: float) -> VehicleState:
        """
        Advance the simulation by one time step.

        Args:
            command: Forces, torques and velocity writes for this step
            dt: Time step [s]; non-positive steps leave the state unchanged

        Returns:
            Updated vehicle state
        """
        if dt <= 0:
            return self.state

        state_vec = self.state.to_array()
        locked = np.zeros(3, dtype=bool)

        if command.horizontal_velocity is not None:
            state_vec[3], state_vec[5] = command.horizontal_velocity
            locked[[0, 2]] = True
        if command.vertical_velocity is not None:
            state_vec[4] = command.vertical_velocity
            locked[1] = True

        if self.integration_method == IntegrationMethod.EULER:
            new_vec = self._euler_integration(state_vec, command, locked, dt)
        else:
            new_vec = self._rk4_integration(state_vec, command, locked, dt)

        # Ground contact
        if new_vec[1] < self.params.ground_height:
            new_vec[1] = self.params.ground_height
            new_vec[4] = max(new_vec[4], 0.0)

        self.state = self.state.with_array(new_vec, self.state.timestamp + dt)
        self._update_history()

        self.total_steps += 1
        self.total_simulation_time += dt

        return self.state

    def _update_history(self):
        self.position_history.append(self.state.get_position().tolist())
        self.velocity_history.append(self.state.get_velocity().tolist())

    def get_state(self) -> VehicleState:
        return self.state

    def get_position_history(self) -> list:
        return list(self.position_history)

    def get_velocity_history(self) -> list:
        return list(self.velocity_history)

    def set_integration_method(self, method: IntegrationMethod):
        """Change the integration method at runtime."""
        self.integration_method = method

    def get_hover_thrust(self) -> float:
        """Thrust required to hold altitude with a level attitude."""
        return self.params.mass * self.params.gravity

    def ground_reset(self) -> VehicleState:
        """Put the vehicle on the ground plane and stop its vertical motion."""
        self.state.y = self.params.ground_height
        self.state.vy = 0.0
        return self.state

    def on_ground(self) -> bool:
        return self.state.y <= self.params.ground_height + 1e-9
