"""
Interpreter and driver configuration.
"""

from dataclasses import dataclass
from enum import Enum, auto

from .constants import CPU_FREQUENCY, FRAME_RATE, TIMER_FREQUENCY


class TimerMode(Enum):
    """How the delay/sound timers are clocked"""
    COUPLED = auto()      # Machine.step() ticks the timers every instruction
    DECOUPLED = auto()    # Driver calls Machine.tick_timers() at timer_frequency


class FaultPolicy(Enum):
    """What the driver does when step() raises an ExecutionFault"""
    HALT = auto()         # Stop running, keep state for inspection
    SKIP = auto()         # Step over the offending word and continue
    RAISE = auto()        # Propagate to the caller


@dataclass
class MachineConfig:
    """Emulator configuration settings"""
    # Timing
    cpu_frequency: int = CPU_FREQUENCY      # Instructions per second
    timer_frequency: int = TIMER_FREQUENCY  # Timer decrement rate (Hz)
    frame_rate: int = FRAME_RATE
    timer_mode: TimerMode = TimerMode.COUPLED

    # Display
    clip_sprites: bool = False              # Drop pixels past the edge instead of wrapping

    # Faults
    fault_policy: FaultPolicy = FaultPolicy.HALT

    # Debugging
    trace: bool = False                     # Log every decoded instruction

    @property
    def cycles_per_frame(self) -> int:
        return max(1, self.cpu_frequency // self.frame_rate)
