"""Shared fixtures for the interpreter tests."""

import random

import pytest

from chip8vm import Machine, MachineConfig


def program(*words: int) -> bytes:
    """Assemble raw instruction words into a big-endian image"""
    return b"".join(word.to_bytes(2, "big") for word in words)


def run(machine: Machine, *words: int, steps: int = None) -> Machine:
    """Load words at 0x200 and execute them (one step per word by default)"""
    machine.load_image(program(*words))
    for _ in range(len(words) if steps is None else steps):
        machine.step()
    return machine


@pytest.fixture
def config():
    return MachineConfig()


@pytest.fixture
def machine(config):
    return Machine(config, rng=random.Random(1234))
