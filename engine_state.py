"""
engine_state.py - Engine On/Off State Machine
Hover Cascade - Flight Control Stack

Two states gate the whole controller cascade:

    OFF --(toggle pressed)--> ON --(toggle pressed)--> OFF

The toggle is edge-triggered: it fires once per key press no matter how many
ticks the key stays down. Listeners registered per direction reset the
setpoints and controller state on each transition.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from input_handler import Command, SimulationInput

logger = logging.getLogger(__name__)


class EngineState(Enum):
    """Engine state."""

    OFF = "Off"
    ON = "On"

    @property
    def is_on(self) -> bool:
        return self is EngineState.ON


@dataclass(frozen=True)
class EngineTransition:
    """A single state change."""

    previous: EngineState
    current: EngineState


TransitionListener = Callable[[EngineTransition], None]


class EngineStateMachine:
    """Edge-triggered On/Off engine gate."""

    def __init__(self, initial: EngineState = EngineState.OFF):
        self.state = initial
        self.transition_count = 0
        self._listeners: Dict[EngineState, List[TransitionListener]] = {
            EngineState.ON: [],
            EngineState.OFF: [],
        }

    @property
    def is_on(self) -> bool:
        return self.state.is_on

    def on_enter(self, state: EngineState, listener: TransitionListener):
        """Register a callback run after entering ``state``."""
        self._listeners[state].append(listener)

    def set_state(self, state: EngineState) -> Optional[EngineTransition]:
        """Force a state. Returns the transition, or None if unchanged."""
        if state is self.state:
            return None

        return self._enter(state)

    def _enter(self, state: EngineState) -> EngineTransition:
        transition = EngineTransition(previous=self.state, current=state)
        self.state = state
        self.transition_count += 1
        logger.info("Engine %s -> %s", transition.previous.value, state.value)

        for listener in self._listeners[state]:
            listener(transition)
        return transition

    def toggle(self) -> EngineTransition:
        return self._enter(EngineState.OFF if self.is_on else EngineState.ON)

    def handle(self, sim_input: SimulationInput) -> Optional[EngineTransition]:
        """Toggle once if ENGINE_TOGGLE was pressed this tick."""
        if sim_input.was_pressed(Command.ENGINE_TOGGLE):
            return self.toggle()
        return None
