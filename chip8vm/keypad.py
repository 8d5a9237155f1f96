"""
Hex keypad state as seen by the interpreter.
"""

from collections import deque
from typing import Optional

import numpy as np

from .constants import KEYPAD_SIZE
from .errors import ConfigError


class Keypad:
    """
    Sixteen key states written by the host.

    While a key wait is armed, presses are also latched so the key-wait
    instruction can see a press that happened between two steps even if
    the key was already released again.
    """

    def __init__(self):
        self.keys = np.zeros(KEYPAD_SIZE, dtype=bool)
        self._pressed_events = deque(maxlen=KEYPAD_SIZE)
        self._armed = False

    def reset(self):
        self.keys.fill(False)
        self._pressed_events.clear()
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def latched_presses(self) -> int:
        return len(self._pressed_events)

    def set_key(self, key: int, pressed: bool):
        if not 0 <= key < KEYPAD_SIZE:
            raise ConfigError(f"key index out of range: {key}")
        was_pressed = bool(self.keys[key])
        self.keys[key] = bool(pressed)
        if self._armed and pressed and not was_pressed:
            self._pressed_events.append(key)

    def is_pressed(self, key: int) -> bool:
        return bool(self.keys[key & 0xF])

    def clear_presses(self):
        """Forget latched presses and start latching new ones (key wait begins)"""
        self._pressed_events.clear()
        self._armed = True

    def take_press(self) -> Optional[int]:
        """Oldest key that went down since the wait was armed, or None"""
        if not self._pressed_events:
            return None
        key = self._pressed_events.popleft()
        self._pressed_events.clear()
        self._armed = False
        return key
