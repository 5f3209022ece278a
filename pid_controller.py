"""
pid_controller.py - Single-Axis PID Primitive for the Hover Cascade
Hover Cascade - Flight Control Stack

This module implements the PID (Proportional-Integral-Derivative) primitive
shared by every axis of the flight controller:

1. Altitude / hover (vertical position)
2. Cruise X / Z (horizontal velocity)
3. Attitude pitch / roll / yaw (orientation angle, wraparound-aware)

It also provides the angle-error utility used by the attitude axes and the
linear gain-scheduling helper used by the altitude and pitch/roll axes.

Reference:
- Åström, K. J., & Murray, R. M. (2010). Feedback systems: An introduction
  for scientists and engineers. Princeton University Press.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Smallest time step handed to the derivative term [s]
DT_EPSILON = 1e-4

TWO_PI = 2.0 * math.pi


def wrap_angle(angle: float) -> float:
    """
    Wrap an angle into the half-open interval (-pi, pi].

    Both -pi and +pi map to +pi so the boundary sign is consistent.
    """
    wrapped = -((-angle + math.pi) % TWO_PI - math.pi)
    return float(wrapped)


def angle_error(target: float, current: float) -> float:
    """Shortest signed angular distance from current to target."""
    return wrap_angle(target - current)


def scheduled_kp(min_kp: float, max_kp: float, normalized_state: float) -> float:
    """
    Linearly interpolate a proportional gain from a normalized state.

    kp = min_kp + (max_kp - min_kp) * clamp(normalized_state, 0, 1)
    """
    s = float(np.clip(normalized_state, 0.0, 1.0))
    return min_kp + (max_kp - min_kp) * s


@dataclass
class PIDGains:
    """
    PID controller gains.

    Standard PID control law:
    u(t) = Kp * e(t) + Ki * ∫e(τ)dτ + Kd * de(t)/dt

    Where:
    - kp: Proportional gain (may be rescheduled every tick)
    - ki: Integral gain
    - kd: Derivative gain
    """

    kp: float = 1.0
    ki: float = 0.0
    kd: float = 0.0

    # Symmetric output clamp (None = unclamped)
    output_limit: Optional[float] = None

    # Integral clamp (None = unbounded, matching the flown vehicle)
    integral_limit: Optional[float] = None

    # Gain schedule endpoints for kp (both None = fixed kp)
    min_kp: Optional[float] = None
    max_kp: Optional[float] = None

    def __post_init__(self):
        for name in ("kp", "ki", "kd"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.output_limit is not None and self.output_limit <= 0:
            raise ValueError(f"output_limit must be > 0, got {self.output_limit}")
        if self.integral_limit is not None and self.integral_limit <= 0:
            raise ValueError(f"integral_limit must be > 0, got {self.integral_limit}")
        if (self.min_kp is None) != (self.max_kp is None):
            raise ValueError("min_kp and max_kp must be given together")
        if self.min_kp is not None and (self.min_kp < 0 or self.max_kp < 0):
            raise ValueError("scheduled gains must be >= 0")

    @property
    def scheduled(self) -> bool:
        return self.min_kp is not None


@dataclass
class PIDState:
    """Internal state of a PID controller."""

    integral_e: float = 0.0  # Accumulated error * dt
    prev_e: float = 0.0  # Error from last tick
    needs_reseed: bool = True  # prev_e must be replaced on next update


class PIDController:
    """
    Single-axis PID controller.

    Features:
    - Wraparound-aware error for angular axes
    - Optional gain scheduling of kp
    - Output limiting to a symmetric range
    - Derivative reseeding so a resumed axis does not kick

    The integral is left unbounded unless ``integral_limit`` is set.
    """

    def __init__(
        self, gains: Optional[PIDGains] = None, name: str = "PID", angular: bool = False
    ):
        """
        Initialize PID controller.

        Args:
            gains: PID gains (uses defaults if None)
            name: Identifier for logging/debugging
            angular: Compute the error through angle_error()
        """
        self.gains = gains if gains is not None else PIDGains()
        self.name = name
        self.angular = angular
        self.state = PIDState()

        # Performance metrics
        self.total_updates = 0
        self.total_error_squared = 0.0

    def reset(self):
        """Zero integral and error and reseed on the next update."""
        self.state = PIDState()
        self.total_updates = 0
        self.total_error_squared = 0.0

    def reseed(self):
        """Use the next error as prev_e so the derivative does not spike."""
        self.state.needs_reseed = True

    def set_gains(
        self,
        kp: Optional[float] = None,
        ki: Optional[float] = None,
        kd: Optional[float] = None,
    ):
        """
        Update individual gains at runtime.

        A fixed kp replaces any gain schedule, otherwise the next update
        would overwrite it.
        """
        if kp is not None:
            if self.gains.scheduled:
                logger.info("%s: fixed kp=%.3f replaces gain schedule", self.name, kp)
                self.gains.min_kp = None
                self.gains.max_kp = None
            self.gains.kp = kp
        if ki is not None:
            self.gains.ki = ki
        if kd is not None:
            self.gains.kd = kd

    def error(self, target: float, measurement: float) -> float:
        if self.angular:
            return angle_error(target, measurement)
        return target - measurement

    def update(
        self,
        target: float,
        measurement: float,
        dt: float,
        schedule_state: Optional[float] = None,
    ) -> float:
        """
        Compute PID control output.

        Args:
            target: Desired value (setpoint)
            measurement: Current measured value
            dt: Time step since last update [s], floored to DT_EPSILON
            schedule_state: Normalized state in [0, 1] for gain scheduling

        Returns:
            Control output, clamped to output_limit when configured
        """
        dt = max(dt, DT_EPSILON)
        gains = self.gains

        if gains.scheduled and schedule_state is not None:
            gains.kp = scheduled_kp(gains.min_kp, gains.max_kp, schedule_state)

        e = self.error(target, measurement)

        if self.state.needs_reseed:
            self.state.prev_e = e
            self.state.needs_reseed = False

        self.state.integral_e += e * dt
        if gains.integral_limit is not None:
            self.state.integral_e = float(
                np.clip(
                    self.state.integral_e, -gains.integral_limit, gains.integral_limit
                )
            )

        u = (
            gains.kp * e
            + gains.ki * self.state.integral_e
            + gains.kd * (e - self.state.prev_e) / dt
        )
        self.state.prev_e = e

        if gains.output_limit is not None:
            u = float(np.clip(u, -gains.output_limit, gains.output_limit))

        self.total_updates += 1
        self.total_error_squared += e**2

        return u

    def get_rmse(self) -> float:
        """Get root mean squared error over all updates."""
        if self.total_updates == 0:
            return 0.0
        return math.sqrt(self.total_error_squared / self.total_updates)

    def get_components(
        self, target: float, measurement: float, dt: float
    ) -> Tuple[float, float, float, float]:
        """
        Get individual P, I, D components for debugging/tuning.

        Does not mutate controller state.

        Returns:
            Tuple of (P, I, D, total) values
        """
        dt = max(dt, DT_EPSILON)
        e = self.error(target, measurement)
        prev_e = e if self.state.needs_reseed else self.state.prev_e

        P = self.gains.kp * e
        I = self.gains.ki * (self.state.integral_e + e * dt)
        D = self.gains.kd * (e - prev_e) / dt

        return P, I, D, P + I + D
