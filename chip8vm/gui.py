"""
Tkinter front end.

Renders the framebuffer on a canvas, forwards keyboard and gamepad input
to the Emulator and rings the bell when a tone is requested.
"""

import logging
import os
import pickle
import tkinter as tk
from tkinter import filedialog, messagebox
from typing import Optional

from .constants import DISPLAY_HEIGHT, DISPLAY_WIDTH
from .controller import Chip8Controller
from .emulator import Emulator
from .errors import Chip8Error
from .keymap import map_host_key
from .state import load_state_file, save_state

logger = logging.getLogger(__name__)

WINDOW_WIDTH = 640
WINDOW_HEIGHT = 368
DISPLAY_AREA_HEIGHT = 320
STATUS_BAR_HEIGHT = 48

COLORS = {
    'bg': '#0C0C0C',
    'pixel_on': '#C0C0C0',
    'pixel_off': '#1A1A1A',
    'status_bg': '#1E1E1E',
    'status_fg': '#707070',
    'accent': '#4A9EFF',
}


class Chip8Display:
    """Tkinter canvas-based framebuffer renderer"""

    def __init__(self, canvas: tk.Canvas):
        self.canvas = canvas
        self.pixel_rects = []
        self._last: Optional[bytes] = None
        self._create_pixels()

    def _create_pixels(self):
        """Pre-create one rectangle per pixel"""
        self.canvas.delete("all")
        scale_x = int(self.canvas['width']) / DISPLAY_WIDTH
        scale_y = int(self.canvas['height']) / DISPLAY_HEIGHT

        for y in range(DISPLAY_HEIGHT):
            for x in range(DISPLAY_WIDTH):
                x1 = x * scale_x
                y1 = y * scale_y
                rect = self.canvas.create_rectangle(
                    x1, y1, x1 + scale_x, y1 + scale_y,
                    fill=COLORS['pixel_off'],
                    outline=""
                )
                self.pixel_rects.append(rect)

    def render(self, framebuffer: bytes):
        """Repaint pixels that changed since the last render"""
        previous = self._last
        for offset, pixel in enumerate(framebuffer):
            if previous is not None and previous[offset] == pixel:
                continue
            color = COLORS['pixel_on'] if pixel else COLORS['pixel_off']
            self.canvas.itemconfig(self.pixel_rects[offset], fill=color)
        self._last = bytes(framebuffer)


class Chip8GUI:
    """Main emulator window"""

    def __init__(self, emulator: Emulator, use_controller: bool = True):
        self.emulator = emulator

        self.root = tk.Tk()
        self.root.title("CHIP-8")
        self.root.geometry(f"{WINDOW_WIDTH}x{WINDOW_HEIGHT}")
        self.root.resizable(False, False)
        self.root.configure(bg=COLORS['bg'])

        self._create_ui()
        self.display_renderer = Chip8Display(self.canvas)
        self._bind_keys()

        self.controller: Optional[Chip8Controller] = None
        if use_controller:
            self.controller = Chip8Controller(self.emulator.set_key)

    def _create_ui(self):
        self.canvas = tk.Canvas(
            self.root,
            width=WINDOW_WIDTH,
            height=DISPLAY_AREA_HEIGHT,
            bg=COLORS['bg'],
            highlightthickness=0
        )
        self.canvas.pack(side=tk.TOP)

        status_frame = tk.Frame(self.root, height=STATUS_BAR_HEIGHT, bg=COLORS['status_bg'])
        status_frame.pack(side=tk.BOTTOM, fill=tk.X)
        status_frame.pack_propagate(False)

        self.rom_label = tk.Label(
            status_frame, text="No ROM - Ctrl+O to load",
            fg=COLORS['status_fg'], bg=COLORS['status_bg'], font=("Consolas", 9)
        )
        self.rom_label.pack(side=tk.LEFT, padx=10)

        self.state_label = tk.Label(
            status_frame, text="Stopped",
            fg=COLORS['status_fg'], bg=COLORS['status_bg'], font=("Consolas", 9)
        )
        self.state_label.pack(side=tk.RIGHT, padx=10)

        self.speed_label = tk.Label(
            status_frame, text="1x",
            fg=COLORS['accent'], bg=COLORS['status_bg'], font=("Consolas", 9, "bold")
        )
        self.speed_label.pack(side=tk.RIGHT, padx=10)

    def _bind_keys(self):
        self.root.bind("<KeyPress>", self._on_key_down)
        self.root.bind("<KeyRelease>", self._on_key_up)

        # Emulator controls
        self.root.bind("<F9>", lambda e: self._reset())
        self.root.bind("<space>", lambda e: self._toggle_pause())
        self.root.bind("<F5>", lambda e: self._save_state())
        self.root.bind("<F7>", lambda e: self._load_state())
        self.root.bind("<F1>", lambda e: self._change_speed(0.5))
        self.root.bind("<F2>", lambda e: self._change_speed(2))
        self.root.bind("<F4>", lambda e: logger.info("\n%s", self.emulator.machine.dump_state()))
        self.root.bind("<Control-o>", lambda e: self._open_file_dialog())

    def _on_key_down(self, event):
        key = map_host_key(event.keysym)
        if key is not None:
            self.emulator.set_key(key, True)

    def _on_key_up(self, event):
        key = map_host_key(event.keysym)
        if key is not None:
            self.emulator.set_key(key, False)

    def _open_file_dialog(self):
        filepath = filedialog.askopenfilename(
            title="Select CHIP-8 ROM",
            filetypes=[("CHIP-8 ROM", "*.ch8"), ("CHIP-8 ROM", "*.c8"), ("All files", "*.*")]
        )
        if filepath:
            self.load_rom(filepath)

    def load_rom(self, filepath: str):
        try:
            with open(filepath, 'rb') as f:
                data = f.read()
            name = os.path.basename(filepath)
            self.emulator.load_rom(data, name)
        except (OSError, Chip8Error) as e:
            messagebox.showerror("Error", f"Failed to load ROM:\n{e}")
            return
        self.rom_label.config(text=f"ROM: {name} ({len(data)}b)")
        self.emulator.start()
        self._update_status()

    def _render_loop(self):
        """Display update loop"""
        framebuffer = self.emulator.snapshot_framebuffer()
        if framebuffer is not None:
            self.display_renderer.render(framebuffer)
        if self.emulator.consume_tone():
            self.root.bell()
        self._update_status()
        self.root.after(1000 // 60, self._render_loop)

    def _update_status(self):
        emu = self.emulator
        if emu.halted:
            text = "Halted"
            if emu.last_fault is not None:
                text = f"Halted: {emu.last_fault.reason}"
        elif emu.paused:
            text = "Paused"
        elif emu.running:
            text = "Running"
        else:
            text = "Stopped"
        self.state_label.config(text=text)
        self.speed_label.config(text=f"{emu.speed_multiplier}x")

    def _reset(self):
        self.emulator.reload()

    def _toggle_pause(self):
        self.emulator.toggle_pause()

    def _change_speed(self, factor: float):
        self.emulator.set_speed(int(self.emulator.speed_multiplier * factor))

    def _save_path(self) -> str:
        return f"{self.emulator.machine.rom_name}.sav"

    def _save_state(self):
        if not self.emulator.machine.rom_name:
            return
        try:
            save_state(self._save_path(), self.emulator.get_state())
        except OSError as e:
            messagebox.showerror("Error", f"Save failed:\n{e}")

    def _load_state(self):
        if not self.emulator.machine.rom_name:
            return
        try:
            state = load_state_file(self._save_path())
        except FileNotFoundError:
            return
        except (OSError, TypeError, pickle.UnpicklingError) as e:
            messagebox.showerror("Error", f"Load failed:\n{e}")
            return
        self.emulator.load_state(state)

    def run(self):
        """Start the application"""
        if self.controller:
            self.controller.start()
        self.root.protocol("WM_DELETE_WINDOW", self._on_close)
        self._render_loop()
        self.root.mainloop()

    def _on_close(self):
        self.emulator.stop()
        if self.controller:
            self.controller.stop()
        self.root.destroy()
