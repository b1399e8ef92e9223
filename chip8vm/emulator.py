"""
Frame-paced driver around Machine.

Emulator serializes every access to the machine behind one lock, runs
instructions in frame-sized batches, clocks the timers (when they are
decoupled from instruction execution) and applies the configured
FaultPolicy. start()/stop() run the CPU and timer loops on background
threads for the GUI; run_frame() can be called directly when headless.
"""

import logging
import threading
import time
from typing import Optional

from .config import FaultPolicy, MachineConfig, TimerMode
from .errors import ExecutionFault
from .machine import Machine
from .state import MachineState

logger = logging.getLogger(__name__)

MAX_SPEED = 16


class Emulator:
    """Owns a Machine and drives it at a fixed frame rate"""

    def __init__(self, config: MachineConfig = None, machine: Machine = None):
        self.config = config or MachineConfig()
        self.machine = machine or Machine(self.config)
        self.lock = threading.Lock()

        self.halted = False
        self.paused = False
        self.speed_multiplier = 1
        self.last_fault: Optional[ExecutionFault] = None

        self._rom: Optional[bytes] = None
        self._running = False
        self._cpu_thread: Optional[threading.Thread] = None
        self._timer_thread: Optional[threading.Thread] = None
        self._tone_pending = False

    # ==================== PROGRAM CONTROL ====================

    def load_rom(self, data: bytes, name: str = ""):
        with self.lock:
            self.machine.load_rom(data, name)
            self._rom = bytes(data)
            self.halted = False
            self.last_fault = None

    def reload(self):
        """Reset the machine with the last loaded ROM"""
        if self._rom is None:
            return
        self.load_rom(self._rom, self.machine.rom_name)

    def set_key(self, index: int, pressed: bool):
        with self.lock:
            self.machine.set_key(index, pressed)

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False

    def toggle_pause(self):
        self.paused = not self.paused

    def set_speed(self, multiplier: int):
        """Set emulation speed (1x to 16x)"""
        self.speed_multiplier = max(1, min(MAX_SPEED, multiplier))

    # ==================== EXECUTION ====================

    def run_frame(self) -> bool:
        """
        Execute one frame worth of instructions.

        Returns True if a tone was requested at any point during the frame.
        """
        tone = False
        if self.halted or self.paused:
            return tone

        coupled = self.config.timer_mode is TimerMode.COUPLED
        cycles = self.config.cycles_per_frame * self.speed_multiplier
        with self.lock:
            for _ in range(cycles):
                if not self._step_locked():
                    break
                if coupled and self.machine.tone_requested:
                    tone = True
            if not coupled and not self._running:
                # Headless: one timer tick per frame keeps 60Hz timing
                tone = self.machine.tick_timers() or tone
        return tone

    def _step_locked(self) -> bool:
        """Step once and apply the fault policy. Returns False to stop the frame."""
        try:
            self.machine.step()
        except ExecutionFault as exc:
            self.last_fault = exc
            policy = self.config.fault_policy
            if policy is FaultPolicy.RAISE:
                raise
            if policy is FaultPolicy.SKIP:
                logger.warning("%s; skipping", exc)
                self.machine.pc = (self.machine.pc + 2) & 0xFFFF
                return True
            logger.error("%s; halting\n%s", exc, self.machine.dump_state())
            self.halted = True
            return False
        return True

    def tick_timers(self) -> bool:
        with self.lock:
            tone = self.machine.tick_timers()
        if tone:
            self._tone_pending = True
        return tone

    def consume_tone(self) -> bool:
        """Return and clear the tone raised by the background timer loop"""
        tone, self._tone_pending = self._tone_pending, False
        return tone

    # ==================== DISPLAY ACCESS ====================

    def snapshot_framebuffer(self) -> Optional[bytes]:
        """Copy the framebuffer if it changed since the last call"""
        with self.lock:
            if not self.machine.draw_flag:
                return None
            self.machine.draw_flag = False
            return bytes(self.machine.framebuffer)

    def get_state(self) -> MachineState:
        with self.lock:
            return self.machine.get_state()

    def load_state(self, state: MachineState):
        with self.lock:
            self.machine.load_state(state)
            self.halted = False

    # ==================== THREADS ====================

    def start(self):
        """Start CPU and timer threads"""
        if self._running:
            return
        self._running = True
        self._cpu_thread = threading.Thread(target=self._emulation_loop, daemon=True)
        self._cpu_thread.start()
        if self.config.timer_mode is TimerMode.DECOUPLED:
            self._timer_thread = threading.Thread(target=self._timer_loop, daemon=True)
            self._timer_thread.start()

    def stop(self):
        self._running = False
        for thread in (self._cpu_thread, self._timer_thread):
            if thread:
                thread.join(timeout=1.0)
        self._cpu_thread = None
        self._timer_thread = None

    @property
    def running(self) -> bool:
        return self._running

    def _emulation_loop(self):
        """Main CPU emulation loop"""
        frame_time = 1.0 / self.config.frame_rate
        while self._running:
            start_time = time.perf_counter()
            try:
                if self.run_frame():
                    self._tone_pending = True
            except ExecutionFault:
                logger.exception("Emulation stopped")
                self.halted = True

            elapsed = time.perf_counter() - start_time
            sleep_time = frame_time - elapsed
            if sleep_time > 0:
                time.sleep(sleep_time)

    def _timer_loop(self):
        """Timer decrement loop (60Hz)"""
        period = 1.0 / self.config.timer_frequency
        while self._running:
            if not self.paused and not self.halted:
                self.tick_timers()
            time.sleep(period)
