"""
Gamepad input via pygame.

Polls the first connected joystick on a background thread and reports
CHIP-8 key changes through a callback, typically Emulator.set_key.
"""

import logging
import threading
import time
from typing import Callable, Optional, Set, Tuple

import pygame

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1 / 120  # 120Hz polling

# PS5/Atari style button numbering
BUTTON_SQUARE = 0
BUTTON_CIRCLE = 1
BUTTON_CROSS = 2
BUTTON_TRIANGLE = 3
BUTTON_L1 = 4
BUTTON_R1 = 5
BUTTON_L2 = 6
BUTTON_R2 = 7
BUTTON_SHARE = 8
BUTTON_OPTIONS = 9

BUTTON_MAP = {
    BUTTON_CROSS: 0x5,      # Most games use 5 as "action"
    BUTTON_CIRCLE: 0x6,
    BUTTON_SQUARE: 0x4,
    BUTTON_TRIANGLE: 0x8,
    BUTTON_L1: 0x1,
    BUTTON_R1: 0xC,
    BUTTON_L2: 0xA,
    BUTTON_R2: 0xB,
    BUTTON_SHARE: 0x0,
    BUTTON_OPTIONS: 0xF,
}

# D-pad -> keypad arrows (2=down, 4=left, 6=right, 8=up)
HAT_UP = 0x8
HAT_DOWN = 0x2
HAT_LEFT = 0x4
HAT_RIGHT = 0x6


def hat_keys(value: Tuple[int, int]) -> Set[int]:
    """CHIP-8 keys held for a D-pad position; diagonals hold two keys"""
    hx, hy = value
    keys = set()
    if hx < 0:
        keys.add(HAT_LEFT)
    elif hx > 0:
        keys.add(HAT_RIGHT)
    if hy > 0:
        keys.add(HAT_UP)
    elif hy < 0:
        keys.add(HAT_DOWN)
    return keys


class Chip8Controller:
    """Joystick poller that maps buttons and D-pad onto the hex keypad"""

    def __init__(self, on_key_change: Callable[[int, bool], None]):
        self.on_key_change = on_key_change
        self.joystick = None
        self.connected = False
        self.running = False
        self._hat_held: Set[int] = set()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start controller polling thread"""
        pygame.init()
        pygame.joystick.init()
        self.running = True
        self._thread = threading.Thread(target=self._poll_loop, daemon=True)
        self._thread.start()

    def stop(self):
        self.running = False
        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None

    def _poll_loop(self):
        while self.running:
            self._check_connection()
            if self.connected:
                for event in pygame.event.get():
                    self.handle_event(event)
            time.sleep(POLL_INTERVAL)

    def _check_connection(self):
        pygame.event.pump()
        count = pygame.joystick.get_count()

        if count > 0 and not self.connected:
            self.joystick = pygame.joystick.Joystick(0)
            self.joystick.init()
            self.connected = True
            logger.info("Controller connected: %s", self.joystick.get_name())
        elif count == 0 and self.connected:
            self.connected = False
            self.joystick = None
            self.release_all()
            logger.info("Controller disconnected")

    def handle_event(self, event):
        """Translate one pygame joystick event"""
        if event.type == pygame.JOYBUTTONDOWN:
            self.handle_button(event.button, True)
        elif event.type == pygame.JOYBUTTONUP:
            self.handle_button(event.button, False)
        elif event.type == pygame.JOYHATMOTION:
            self.handle_hat(event.value)

    def handle_button(self, button: int, pressed: bool):
        key = BUTTON_MAP.get(button)
        if key is not None:
            self.on_key_change(key, pressed)

    def handle_hat(self, value: Tuple[int, int]):
        held = hat_keys(value)
        for key in self._hat_held - held:
            self.on_key_change(key, False)
        for key in held - self._hat_held:
            self.on_key_change(key, True)
        self._hat_held = held

    def release_all(self):
        for key in self._hat_held:
            self.on_key_change(key, False)
        self._hat_held = set()
        for key in BUTTON_MAP.values():
            self.on_key_change(key, False)
