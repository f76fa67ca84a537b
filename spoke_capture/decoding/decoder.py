"""Raw buffer → canonical pixel grid.

Surfaces may pad every row up to an alignment boundary, so a buffer row is
``row_stride`` bytes while only ``pixel_stride * width`` of them are pixels.
Decoding removes that padding.
"""
from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image

from spoke_capture.capture.frame import RawFrame


@dataclass(frozen=True, eq=False)
class PixelGrid:
    pixels: np.ndarray   # (height, width, channels) uint8, no row padding

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    def to_image(self) -> Image.Image:
        if self.channels == 1:
            return Image.fromarray(self.pixels[..., 0])
        return Image.fromarray(self.pixels)

    def to_png_bytes(self) -> bytes:
        out = io.BytesIO()
        self.to_image().save(out, format="PNG")
        return out.getvalue()


def decode(raw: RawFrame) -> PixelGrid:
    """Copy the pixels of *raw* into a tightly packed ``width × height`` grid.

    The buffer is read as ``height`` rows of ``row_stride`` bytes. Some
    surfaces leave the padding off the final row; missing trailing bytes are
    zero-filled.
    """
    expected = raw.row_stride * raw.height
    data = np.frombuffer(raw.buffer, dtype=np.uint8, count=min(len(raw.buffer), expected))
    if data.size < expected:
        data = np.concatenate([data, np.zeros(expected - data.size, dtype=np.uint8)])

    rows = data.reshape(raw.height, raw.row_stride)
    if raw.row_padding > 0:
        rows = rows[:, : raw.pixel_stride * raw.width]

    pixels = rows.reshape(raw.height, raw.width, raw.pixel_stride)
    # Copy so the grid never aliases the frame's buffer once it is released.
    return PixelGrid(pixels=np.array(pixels, dtype=np.uint8, copy=True))
