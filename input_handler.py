"""
input_handler.py - Keyboard Input Snapshot for the Hover Cascade
Hover Cascade - Flight Control Stack

This module turns raw key states into the per-tick input snapshot consumed by
the flight controller:

- held commands (level semantics: ascend, pitch, move, ...)
- pressed commands (edge semantics: engine toggle, shutdown)

Key states are read with the `keyboard` library. The translation from raw
key names to commands is a pure function so hosts that own their own event
loop can build snapshots without the library.

Reference:
- Real-time input polling best practices
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, FrozenSet, Iterable, Optional

logger = logging.getLogger(__name__)

# Try to import keyboard for keyboard input
keyboard: Optional[Any] = None
KEYBOARD_AVAILABLE = False
try:
    import keyboard as _keyboard

    keyboard = _keyboard
    KEYBOARD_AVAILABLE = True
except ImportError:
    logger.warning(
        "keyboard library not available. Install with: pip install keyboard"
    )
except OSError as exc:
    # keyboard raises on hosts without input device access
    logger.warning("keyboard library unusable on this host: %s", exc)


class Command(Enum):
    """Discrete pilot commands."""

    ASCEND = auto()
    DESCEND = auto()
    PITCH_FORWARD = auto()
    PITCH_BACK = auto()
    ROLL_LEFT = auto()
    ROLL_RIGHT = auto()
    YAW_LEFT = auto()
    YAW_RIGHT = auto()
    MOVE_FORWARD = auto()
    MOVE_BACK = auto()
    MOVE_LEFT = auto()
    MOVE_RIGHT = auto()
    ENGINE_TOGGLE = auto()
    GROUND_RESET = auto()
    SHUTDOWN = auto()


MOVE_COMMANDS = frozenset(
    {Command.MOVE_FORWARD, Command.MOVE_BACK, Command.MOVE_LEFT, Command.MOVE_RIGHT}
)
ALTITUDE_COMMANDS = frozenset({Command.ASCEND, Command.DESCEND})
PITCH_COMMANDS = frozenset({Command.PITCH_FORWARD, Command.PITCH_BACK})
ROLL_COMMANDS = frozenset({Command.ROLL_LEFT, Command.ROLL_RIGHT})
YAW_COMMANDS = frozenset({Command.YAW_LEFT, Command.YAW_RIGHT})

# Commands whose increments are gated by the governor timer
GOVERNED_COMMANDS = (
    MOVE_COMMANDS | ALTITUDE_COMMANDS | PITCH_COMMANDS | ROLL_COMMANDS | YAW_COMMANDS
)


@dataclass(frozen=True)
class SimulationInput:
    """
    Per-tick input snapshot.

    held: commands whose key is down this tick
    pressed: commands whose key went down this tick
    """

    held: FrozenSet[Command] = frozenset()
    pressed: FrozenSet[Command] = frozenset()
    timestamp: float = 0.0

    def is_held(self, command: Command) -> bool:
        return command in self.held

    def was_pressed(self, command: Command) -> bool:
        return command in self.pressed

    def any_held(self, commands: Iterable[Command]) -> bool:
        return any(c in self.held for c in commands)

    @classmethod
    def holding(cls, *commands: Command) -> "SimulationInput":
        """Snapshot with the given commands held and nothing just pressed."""
        return cls(held=frozenset(commands))

    @classmethod
    def pressing(cls, *commands: Command) -> "SimulationInput":
        """Snapshot with the given commands pressed on this tick."""
        return cls(held=frozenset(commands), pressed=frozenset(commands))


def _default_key_map() -> Dict[str, Command]:
    return {
        # Altitude
        "space": Command.ASCEND,
        "ctrl": Command.DESCEND,
        "tab": Command.GROUND_RESET,
        # Movement (WASD)
        "w": Command.MOVE_FORWARD,
        "s": Command.MOVE_BACK,
        "a": Command.MOVE_LEFT,
        "d": Command.MOVE_RIGHT,
        # Attitude (arrows, Q/E)
        "up": Command.PITCH_FORWARD,
        "down": Command.PITCH_BACK,
        "left": Command.ROLL_LEFT,
        "right": Command.ROLL_RIGHT,
        "q": Command.YAW_LEFT,
        "e": Command.YAW_RIGHT,
        # Controls
        "enter": Command.ENGINE_TOGGLE,
        "esc": Command.SHUTDOWN,
    }


@dataclass
class InputConfig:
    """Configuration for input handling."""

    key_map: Dict[str, Command] = field(default_factory=_default_key_map)

    def keys_for(self, command: Command) -> list:
        return sorted(k for k, c in self.key_map.items() if c == command)


def snapshot_from_keys(
    held_keys: Iterable[str],
    previous_keys: Iterable[str] = (),
    config: Optional[InputConfig] = None,
    timestamp: float = 0.0,
) -> SimulationInput:
    """
    Translate raw key names into a SimulationInput.

    A command is pressed when one of its keys is down now and was up on the
    previous poll. Unknown keys are ignored.

    Args:
        held_keys: Names of keys currently down
        previous_keys: Names of keys down on the previous poll
        config: Key bindings (defaults if None)
        timestamp: Poll time stored on the snapshot
    """
    key_map = (config if config is not None else InputConfig()).key_map
    now = {k for k in held_keys if k in key_map}
    before = {k for k in previous_keys if k in key_map}

    held = frozenset(key_map[k] for k in now)
    pressed = frozenset(key_map[k] for k in now - before)
    return SimulationInput(held=held, pressed=pressed, timestamp=timestamp)


class KeyboardHandler:
    """
    Keyboard input handler.

    Key mappings:
    - Space / Ctrl: Raise / lower altitude target
    - Tab: Put the vehicle back on the ground (while held)
    - W/A/S/D: Move forward / left / back / right
    - Up/Down: Pitch forward / back
    - Left/Right: Roll left / right
    - Q/E: Yaw left / right
    - Enter: Engine on/off toggle
    - Escape: Shutdown

    Toggles and shutdown fire once per press, not once per tick held.
    """

    def __init__(self, config: Optional[InputConfig] = None):
        """
        Initialize keyboard handler.

        Args:
            config: Input configuration
        """
        self.config = config if config is not None else InputConfig()
        self.last_input = SimulationInput()

        # Keys down on the previous poll, for edge detection
        self._prev_keys: FrozenSet[str] = frozenset()

        # Set when reading keys fails at runtime (e.g. no device access)
        self._disabled = False

        # Statistics
        self.poll_count = 0

    def is_available(self) -> bool:
        """Check if keyboard library is available."""
        return KEYBOARD_AVAILABLE and not self._disabled

    def _read_keys(self) -> FrozenSet[str]:
        # poll() checks availability first
        return frozenset(k for k in self.config.key_map if keyboard.is_pressed(k))

    def poll(self) -> SimulationInput:
        """
        Poll keyboard for current state.

        Returns:
            Input snapshot (empty when no keyboard is available)
        """
        now = time.perf_counter()
        if not self.is_available() or keyboard is None:
            self.last_input = SimulationInput(timestamp=now)
            return self.last_input

        try:
            keys = self._read_keys()
        except (ImportError, OSError) as exc:
            # keyboard defers its device checks to the first read
            logger.warning("keyboard input disabled: %s", exc)
            self._disabled = True
            self.last_input = SimulationInput(timestamp=now)
            return self.last_input

        self.last_input = snapshot_from_keys(keys, self._prev_keys, self.config, now)
        self._prev_keys = keys
        self.poll_count += 1

        if self.last_input.pressed:
            logger.debug(
                "pressed: %s", ", ".join(c.name for c in self.last_input.pressed)
            )

        return self.last_input

    def describe_bindings(self) -> Dict[str, str]:
        """Command name -> comma separated key names, for instructions."""
        return {
            command.name: ", ".join(self.config.keys_for(command))
            for command in Command
        }
