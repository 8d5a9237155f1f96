"""
Reference host shell: a tkinter window that drives the interpreter.

Runs a fixed number of instructions per frame, ticks the timers from the
wall clock, renders the framebuffer, forwards key events and rings the
terminal bell when the sound timer switches on.
"""

import logging
import tkinter as tk
from tkinter import Canvas
from typing import Optional

import numpy as np

from .constants import DISPLAY_WIDTH, DISPLAY_HEIGHT, KEY_MAPPING
from .errors import ExecutionError
from .interpreter import Chip8Interpreter, StepResult
from .timers import TimerClock

logger = logging.getLogger(__name__)

FRAME_MS = 16


class TkHost:
    def __init__(self, interpreter: Chip8Interpreter, scale: int = 10,
                 instructions_per_frame: int = 10, title: str = "CHIP-8 Display"):
        self.interpreter = interpreter
        self.scale = scale
        self.instructions_per_frame = instructions_per_frame
        self.title = title
        self.clock = TimerClock()

        self._window_closing = False
        self._pixels_drawn: Optional[np.ndarray] = None
        self._sound_was_active = False
        self._pressed_keys = set()

    def run(self):
        """Open the window and block until it is closed"""
        self.root = tk.Tk()
        self.root.title(self.title)
        self.root.resizable(False, False)

        self.canvas = Canvas(self.root, width=DISPLAY_WIDTH * self.scale,
                             height=DISPLAY_HEIGHT * self.scale, bg='black')
        self.canvas.pack()
        self._rects = [[self._make_rect(x, y) for x in range(DISPLAY_WIDTH)]
                       for y in range(DISPLAY_HEIGHT)]

        self.status = tk.Label(self.root, text="", font=('Courier', 9), anchor='w')
        self.status.pack(fill='x', padx=5, pady=5)

        self.root.bind('<KeyPress>', self._key_press)
        self.root.bind('<KeyRelease>', self._key_release)
        self.root.protocol("WM_DELETE_WINDOW", self.close)
        self.root.focus_set()

        self.clock.restart()
        self._update_frame()
        try:
            self.root.mainloop()
        finally:
            self._window_closing = True

    def close(self):
        self._window_closing = True
        self.root.quit()
        self.root.destroy()

    def _make_rect(self, x: int, y: int):
        x1, y1 = x * self.scale, y * self.scale
        return self.canvas.create_rectangle(x1, y1, x1 + self.scale, y1 + self.scale,
                                            fill='black', outline='')

    def _key_press(self, event):
        key = event.keysym.lower()
        if key == 'escape':
            self.close()
            return
        chip8_key = KEY_MAPPING.get(key)
        if chip8_key is not None and chip8_key not in self._pressed_keys:
            self._pressed_keys.add(chip8_key)
            self.interpreter.set_key_state(chip8_key, True)
            logger.debug("Key pressed: %s -> CHIP-8 key 0x%X", key, chip8_key)

    def _key_release(self, event):
        chip8_key = KEY_MAPPING.get(event.keysym.lower())
        if chip8_key is not None and chip8_key in self._pressed_keys:
            self._pressed_keys.remove(chip8_key)
            self.interpreter.set_key_state(chip8_key, False)

    def _update_frame(self):
        if self._window_closing:
            return

        try:
            for _ in range(self.instructions_per_frame):
                if self.interpreter.step() is StepResult.WAITING:
                    break
        except ExecutionError as fault:
            self.status.config(text=f"Halted: {fault}")
            self._render()
            return

        for _ in range(self.clock.due_ticks()):
            self.interpreter.tick_timers()

        sound_active = self.interpreter.sound_active
        if sound_active and not self._sound_was_active:
            self.root.bell()
        self._sound_was_active = sound_active

        self._render()
        regs = self.interpreter.registers
        self.status.config(text=f"PC: 0x{regs.pc:03X}  I: 0x{regs.index:03X}  "
                                f"Instructions: {self.interpreter.stats['instructions_executed']}")
        self.root.after(FRAME_MS, self._update_frame)

    def _render(self):
        pixels = self.interpreter.get_display()
        if self._pixels_drawn is None:
            changed = np.argwhere(np.ones_like(pixels))
        else:
            changed = np.argwhere(pixels != self._pixels_drawn)
        for y, x in changed:
            self.canvas.itemconfig(self._rects[y][x], fill='white' if pixels[y, x] else 'black')
        self._pixels_drawn = pixels
