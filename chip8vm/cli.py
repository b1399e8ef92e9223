"""
Command-line entry point.

    chip8vm ROM [--hz N] [--decoupled-timers] [--clip] [--trace]
    chip8vm ROM --headless --frames N
"""

import argparse
import logging
import os
import sys

from .config import FaultPolicy, MachineConfig, TimerMode
from .constants import CPU_FREQUENCY
from .emulator import Emulator
from .errors import Chip8Error

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chip8vm", description="CHIP-8 interpreter")
    parser.add_argument("rom", nargs="?", help="program image to load at 0x200")
    parser.add_argument("--hz", type=int, default=CPU_FREQUENCY,
                        help="instructions per second (default: %(default)s)")
    parser.add_argument("--decoupled-timers", action="store_true",
                        help="tick timers at 60Hz instead of once per instruction")
    parser.add_argument("--clip", action="store_true",
                        help="clip sprites at the screen edge instead of wrapping")
    parser.add_argument("--on-fault", choices=[p.name.lower() for p in FaultPolicy],
                        default="halt", help="what to do on a bad instruction")
    parser.add_argument("--trace", action="store_true", help="log every instruction")
    parser.add_argument("--headless", action="store_true", help="run without a window")
    parser.add_argument("--frames", type=int, default=60,
                        help="frames to run in headless mode (default: %(default)s)")
    parser.add_argument("--no-controller", action="store_true", help="disable gamepad input")
    return parser


def config_from_args(args) -> MachineConfig:
    return MachineConfig(
        cpu_frequency=args.hz,
        timer_mode=TimerMode.DECOUPLED if args.decoupled_timers else TimerMode.COUPLED,
        clip_sprites=args.clip,
        fault_policy=FaultPolicy[args.on_fault.upper()],
        trace=args.trace,
    )


def render_text(framebuffer: bytes, width: int = 64) -> str:
    """Framebuffer as lines of '#' and '.'"""
    rows = []
    for start in range(0, len(framebuffer), width):
        rows.append("".join("#" if p else "." for p in framebuffer[start:start + width]))
    return "\n".join(rows)


def run_headless(emulator: Emulator, frames: int) -> int:
    for _ in range(frames):
        emulator.run_frame()
        if emulator.halted:
            break
    print(render_text(bytes(emulator.machine.framebuffer)))
    return 1 if emulator.halted else 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.trace else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )
    emulator = Emulator(config_from_args(args))

    if args.headless:
        if not args.rom:
            logger.error("--headless needs a ROM")
            return 2
        try:
            with open(args.rom, 'rb') as f:
                emulator.load_rom(f.read(), os.path.basename(args.rom))
        except (OSError, Chip8Error) as e:
            logger.error("Failed to load ROM: %s", e)
            return 2
        return run_headless(emulator, args.frames)

    from .gui import Chip8GUI

    app = Chip8GUI(emulator, use_controller=not args.no_controller)
    if args.rom and os.path.exists(args.rom):
        # Schedule ROM load after GUI is ready
        app.root.after(100, lambda: app.load_rom(args.rom))
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
