"""
64x32 monochrome framebuffer with XOR sprite compositing.
"""

import os
from typing import Union

import numpy as np
from PIL import Image

from .constants import DISPLAY_WIDTH, DISPLAY_HEIGHT


class Framebuffer:
    """
    Pixel grid indexed [row, column], 1 = on.

    Sprites are XORed in; a pixel going from on to off is a collision.
    """

    def __init__(self):
        self.pixels = np.zeros((DISPLAY_HEIGHT, DISPLAY_WIDTH), dtype=np.uint8)

    def clear(self):
        self.pixels.fill(0)

    def draw_sprite(self, x: int, y: int, sprite: np.ndarray, wrap: bool = False) -> bool:
        """
        XOR a sprite into the grid.

        Args:
            x, y: Top-left corner, already reduced modulo the screen size
            sprite: One byte per row, MSB is the leftmost pixel
            wrap: Wrap pixels past the edge instead of clipping them

        Returns:
            True if any lit pixel was turned off
        """
        collision = False

        for row, sprite_byte in enumerate(sprite):
            sprite_byte = int(sprite_byte)
            pixel_y = y + row
            if pixel_y >= DISPLAY_HEIGHT:
                if not wrap:
                    break
                pixel_y %= DISPLAY_HEIGHT

            for col in range(8):
                if not sprite_byte & (0x80 >> col):
                    continue

                pixel_x = x + col
                if pixel_x >= DISPLAY_WIDTH:
                    if not wrap:
                        break
                    pixel_x %= DISPLAY_WIDTH

                if self.pixels[pixel_y, pixel_x]:
                    collision = True
                self.pixels[pixel_y, pixel_x] ^= 1

        return collision

    def snapshot(self) -> np.ndarray:
        """Copy of the current grid, safe to hand to the host"""
        return self.pixels.copy()

    def lit_pixels(self) -> int:
        return int(self.pixels.sum())

    def to_text(self, on: str = '██', off: str = '  ') -> str:
        return '\n'.join(''.join(on if pixel else off for pixel in row) for row in self.pixels)

    def to_image(self, scale: int = 8) -> Image.Image:
        """Render as a grayscale PIL image, each CHIP-8 pixel scale x scale"""
        display_img = (self.pixels * 255).astype(np.uint8)
        scaled_img = np.repeat(np.repeat(display_img, scale, axis=0), scale, axis=1)
        # 2D uint8 arrays map to mode 'L'
        return Image.fromarray(scaled_img)

    def save_png(self, path: Union[str, os.PathLike], scale: int = 8) -> str:
        path = os.fspath(path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.to_image(scale).save(path)
        return path
