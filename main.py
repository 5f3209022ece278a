"""
main.py - Host Application for the Hover Cascade
Hover Cascade - Flight Control Stack

This is the entry point that wires all components together:
- Keyboard input snapshots
- Flight controller (engine, governor, PID cascade)
- In-process rigid-body vehicle model
- Optional telemetry window
- Fixed-rate control loop with overrun tracking

Architecture:
    ┌────────────────────────────────────────────────────────────┐
    │                  Control Loop (60Hz)                       │
    │  ┌──────────┐   ┌────────────┐   ┌──────────────┐          │
    │  │ Keyboard │──▶│   Flight   │──▶│   Vehicle    │          │
    │  │ Handler  │   │ Controller │   │    Model     │          │
    │  └──────────┘   └────────────┘   └──────────────┘          │
    │                        │                  │                │
    │                        ▼                  ▼                │
    │                 ┌──────────────────────────────┐           │
    │                 │     Telemetry snapshot       │           │
    │                 └──────────────────────────────┘           │
    └────────────────────────────────────────────────────────────┘
                                 │
                                 ▼
                       ┌──────────────────┐
                       │   GUI (20Hz)     │
                       └──────────────────┘
"""

import argparse
import logging
import time
from dataclasses import dataclass
from typing import Optional

from flight_controller import AltitudeMode, FlightController, FlightControllerConfig
from input_handler import Command, KeyboardHandler, SimulationInput
from telemetry import TelemetryData
from vehicle_model import VehicleModel, VehicleState

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] [%(name)s] %(levelname)s: %(message)s"


@dataclass
class SimulationConfig:
    """Configuration parameters for the host loop."""

    # Timing parameters
    control_rate_hz: float = 60.0
    gui_update_rate_hz: float = 20.0
    telemetry_log_period_s: float = 1.0

    altitude_mode: AltitudeMode = AltitudeMode.VELOCITY
    start_engine_on: bool = False
    spawn_height: float = 3.0  # [m]

    use_gui: bool = True
    duration: Optional[float] = None  # [s], None = until shutdown
    log_level: str = "INFO"

    def __post_init__(self):
        if self.control_rate_hz <= 0:
            raise ValueError(f"control_rate_hz must be > 0, got {self.control_rate_hz}")
        if self.gui_update_rate_hz <= 0:
            raise ValueError("gui_update_rate_hz must be > 0")
        if self.duration is not None and self.duration < 0:
            raise ValueError(f"duration must be >= 0, got {self.duration}")
        if self.spawn_height < 0:
            raise ValueError(f"spawn_height must be >= 0, got {self.spawn_height}")

    @property
    def period_s(self) -> float:
        return 1.0 / self.control_rate_hz


class SimulationApp:
    """
    Runs the flight controller against the vehicle model at a fixed rate.

    Shutdown is a host concern: a pressed SHUTDOWN command raises
    SystemExit(0) before the controller sees the tick.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config if config is not None else SimulationConfig()
        cfg = self.config

        self.model = VehicleModel(initial_state=VehicleState(y=cfg.spawn_height))
        self.controller = FlightController(
            FlightControllerConfig(
                altitude_mode=cfg.altitude_mode,
                start_engine_on=cfg.start_engine_on,
            )
        )
        self.input_handler = KeyboardHandler()
        self.gui = None

        self.running = False
        self.loop_count = 0
        self.sim_time = 0.0

        # Loop timing
        self.overruns = 0
        self.worst_execution_ms = 0.0

        self._gui_every = max(1, round(cfg.control_rate_hz / cfg.gui_update_rate_hz))
        self._log_every = max(1, round(cfg.control_rate_hz * cfg.telemetry_log_period_s))

    def step(self, sim_input: SimulationInput, dt: float) -> VehicleState:
        """
        Run one tick: shutdown check, controller, physics, telemetry.

        While GROUND_RESET is held the vehicle is put back on the ground after
        the physics step. Targets are left alone, so it climbs back.

        Raises:
            SystemExit: when SHUTDOWN was pressed on this tick
        """
        if sim_input.was_pressed(Command.SHUTDOWN):
            logger.info("shutdown requested")
            raise SystemExit(0)

        command = self.controller.tick(self.model.state, sim_input, dt)
        state = self.model.step(command, dt)
        if sim_input.is_held(Command.GROUND_RESET):
            state = self.model.ground_reset()

        self.loop_count += 1
        self.sim_time += dt
        self._publish(state)
        return state

    def telemetry(self) -> TelemetryData:
        return self.controller.readouts(self.model.state)

    def _publish(self, state: VehicleState):
        if self.gui and self.loop_count % self._gui_every == 0:
            self.gui.update_telemetry(self.controller.readouts(state))

        if self.loop_count % self._log_every == 0 and logger.isEnabledFor(logging.DEBUG):
            logger.debug(" | ".join(self.controller.readouts(state).lines()))

    def _start_gui(self):
        # tkinter is only needed when the window is requested
        from visualization import VisualizationGUI

        self.gui = VisualizationGUI("Hover Cascade")
        self.gui.start()
        logger.info("GUI started")

    def _finished(self) -> bool:
        duration = self.config.duration
        if duration is not None and self.sim_time >= duration:
            return True
        if self.gui and not self.gui.is_running():
            logger.info("GUI closed")
            return True
        return False

    def run(self):
        """
        Fixed-rate control loop.

        Each tick uses the measured wall time since the previous tick as dt.
        Overruns skip to the next slot instead of bursting.
        """
        cfg = self.config
        period = cfg.period_s

        print("\n" + "=" * 60)
        print("Hover Cascade - Flight Control Stack")
        print("=" * 60)
        self._print_instructions()

        if not self.input_handler.is_available():
            logger.warning("no keyboard input; the vehicle will only hold its targets")

        if cfg.use_gui:
            self._start_gui()

        logger.info(
            "control loop at %.1f Hz, altitude mode %s", cfg.control_rate_hz, cfg.altitude_mode.value
        )

        self.running = True
        next_loop_time = time.perf_counter()
        last_tick = next_loop_time - period

        try:
            while self.running and not self._finished():
                loop_start = time.perf_counter()
                dt = loop_start - last_tick
                last_tick = loop_start

                self.step(self.input_handler.poll(), dt)

                execution_ms = (time.perf_counter() - loop_start) * 1000
                self.worst_execution_ms = max(self.worst_execution_ms, execution_ms)

                next_loop_time += period
                sleep_time = next_loop_time - time.perf_counter()
                if sleep_time > 0:
                    time.sleep(sleep_time)
                else:
                    self.overruns += 1
                    next_loop_time = time.perf_counter() + period
        except KeyboardInterrupt:
            logger.info("interrupted")
        finally:
            self.cleanup()

    def _print_instructions(self):
        """Print control instructions."""
        bindings = self.input_handler.describe_bindings()
        print("\n" + "-" * 60)
        print("CONTROL INSTRUCTIONS")
        print("-" * 60)
        for command in Command:
            print(f"  {bindings[command.name]:<16} {command.name.replace('_', ' ').title()}")
        print("-" * 60)

    def cleanup(self):
        """Stop the GUI and report loop statistics."""
        self.running = False
        if self.gui:
            self.gui.stop()
        logger.info(
            "ran %d ticks (%.2f s simulated), worst tick %.3f ms, %d overruns",
            self.loop_count,
            self.sim_time,
            self.worst_execution_ms,
            self.overruns,
        )


def build_config(argv=None) -> SimulationConfig:
    parser = argparse.ArgumentParser(description="Hover Cascade flight controller")
    parser.add_argument("--no-gui", action="store_true", help="Run without GUI")
    parser.add_argument("--rate", type=float, default=60.0, help="Control loop rate (Hz)")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in AltitudeMode],
        default=AltitudeMode.VELOCITY.value,
        help="Altitude control mode",
    )
    parser.add_argument(
        "--duration", type=float, default=None, help="Stop after this much simulated time (s)"
    )
    parser.add_argument("--engine-on", action="store_true", help="Start with the engine on")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    args = parser.parse_args(argv)

    return SimulationConfig(
        control_rate_hz=args.rate,
        altitude_mode=AltitudeMode(args.mode),
        start_engine_on=args.engine_on,
        use_gui=not args.no_gui,
        duration=args.duration,
        log_level=args.log_level,
    )


def main(argv=None):
    """Main entry point."""
    config = build_config(argv)
    logging.basicConfig(level=getattr(logging, config.log_level), format=LOG_FORMAT)

    app = SimulationApp(config)
    app.run()


if __name__ == "__main__":
    main()
