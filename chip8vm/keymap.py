"""Host keyboard to hex keypad mapping."""

from typing import Optional

from .constants import KEYBOARD_MAP


def map_host_key(keysym: str) -> Optional[int]:
    """CHIP-8 key for a host key name (Tk keysym), or None if unmapped"""
    return KEYBOARD_MAP.get(keysym.lower())
