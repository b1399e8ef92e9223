"""
Serializable machine snapshots for save/load.
"""

import logging
import pickle
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class MachineState:
    """Complete serializable interpreter state"""
    memory: bytes
    v: List[int]
    i: int
    pc: int
    stack: List[int]
    sp: int
    delay_timer: int
    sound_timer: int
    framebuffer: bytes
    keys: List[bool]


def save_state(path: str, state: MachineState):
    """Write a snapshot to disk"""
    with open(path, 'wb') as f:
        pickle.dump(state, f)
    logger.info("Saved state to %s", path)


def load_state_file(path: str) -> MachineState:
    """Read a snapshot written by save_state()"""
    with open(path, 'rb') as f:
        state = pickle.load(f)
    if not isinstance(state, MachineState):
        raise TypeError(f"{path} does not contain a machine state")
    logger.info("Loaded state from %s", path)
    return state
