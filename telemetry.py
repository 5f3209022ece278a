"""
telemetry.py - Display Values for the Flight Controller
Hover Cascade - Flight Control Stack

Collects target and measured values of every axis into one snapshot and
formats them as "label: value unit" lines. Angles are stored in radians and
displayed in degrees.
"""

import math
from dataclasses import dataclass
from typing import List

from engine_state import EngineState


def format_readout(label: str, value: float, unit: str = "", precision: int = 2) -> str:
    """Format a single telemetry line, e.g. 'Output Y: 3.00 m'."""
    text = f"{label}: {value:.{precision}f}"
    return f"{text} {unit}" if unit else text


@dataclass
class TelemetryData:
    """Container for telemetry data to display."""

    # Altitude [m]
    altitude: float = 0.0
    target_altitude: float = 0.0

    # Horizontal velocity [m/s]
    vx: float = 0.0
    vz: float = 0.0
    target_vx: float = 0.0
    target_vz: float = 0.0
    vy: float = 0.0

    # Attitude [deg]
    pitch: float = 0.0
    roll: float = 0.0
    yaw: float = 0.0
    target_pitch: float = 0.0
    target_roll: float = 0.0
    target_yaw: float = 0.0

    # Position [m]
    x: float = 0.0
    z: float = 0.0

    engine_state: EngineState = EngineState.OFF
    timestamp: float = 0.0

    def lines(self) -> List[str]:
        """Readout lines in display order."""
        return [
            f"Engine: {self.engine_state.value}",
            format_readout("Output Y", self.altitude, "m"),
            format_readout("Target Y", self.target_altitude, "m"),
            format_readout("Velocity Y", self.vy, "m/s"),
            format_readout("Velocity X", self.vx, "m/s"),
            format_readout("Target X", self.target_vx, "m/s"),
            format_readout("Velocity Z", self.vz, "m/s"),
            format_readout("Target Z", self.target_vz, "m/s"),
            format_readout("Pitch", self.pitch, "deg", 1),
            format_readout("Target pitch", self.target_pitch, "deg", 1),
            format_readout("Roll", self.roll, "deg", 1),
            format_readout("Target roll", self.target_roll, "deg", 1),
            format_readout("Yaw", self.yaw, "deg", 1),
            format_readout("Target yaw", self.target_yaw, "deg", 1),
        ]


def build_telemetry(controller, state) -> TelemetryData:
    """
    Snapshot a FlightController and the VehicleState it is flying.

    Args:
        controller: Object with ``targets`` and ``engine_state``
        state: VehicleState
    """
    targets = controller.targets
    return TelemetryData(
        altitude=state.y,
        target_altitude=targets.altitude,
        vx=state.vx,
        vy=state.vy,
        vz=state.vz,
        target_vx=targets.velocity_x,
        target_vz=targets.velocity_z,
        pitch=math.degrees(state.pitch),
        roll=math.degrees(state.roll),
        yaw=math.degrees(state.yaw),
        target_pitch=math.degrees(targets.pitch),
        target_roll=math.degrees(targets.roll),
        target_yaw=math.degrees(targets.yaw),
        x=state.x,
        z=state.z,
        engine_state=controller.engine_state,
        timestamp=state.timestamp,
    )
