"""Capture surfaces: the "pull latest frame or none available" boundary.

A surface mirrors the visible display into a pollable buffer. ``acquire_latest``
returns ``None`` when nothing new is available since the previous pull, which
is the transient condition the frame source retries on.
"""
from __future__ import annotations

import hashlib
import logging
from pathlib import Path

import mss
import numpy as np
from PIL import Image

from spoke_capture.capture.frame import DisplayMetrics, RawFrame

logger = logging.getLogger(__name__)

RGBA_PIXEL_STRIDE = 4


class CaptureSurface:
    def acquire_latest(self) -> RawFrame | None:
        raise NotImplementedError

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# MssCaptureSurface — live desktop capture
# ---------------------------------------------------------------------------

class MssCaptureSurface(CaptureSurface):
    """Desktop capture backed by ``mss``.

    Grabs the configured monitor (or its top-left ``metrics`` region when
    display metrics are given) as tightly packed RGBA. A grab whose pixels
    match the previous successful pull is reported as "no new frame".

    Grabs run on the pipeline's capture worker thread. ``close()`` may be
    called from another thread once that worker has shut down.
    """

    def __init__(self, metrics: DisplayMetrics | None = None, monitor: int = 1) -> None:
        self._metrics = metrics
        self._monitor = monitor
        self._sct = None   # lazy-init on the capture thread
        self._last_digest: bytes | None = None

    def _get_sct(self):
        if self._sct is None:
            self._sct = mss.mss()
        return self._sct

    def _region(self, sct) -> dict:
        mon = sct.monitors[self._monitor]
        if self._metrics is None:
            return mon
        return {
            "left": mon["left"],
            "top": mon["top"],
            "width": min(self._metrics.width, mon["width"]),
            "height": min(self._metrics.height, mon["height"]),
        }

    def acquire_latest(self) -> RawFrame | None:
        sct = self._get_sct()
        shot = sct.grab(self._region(sct))

        digest = hashlib.blake2b(shot.bgra, digest_size=16).digest()
        if digest == self._last_digest:
            return None

        bgra = np.frombuffer(shot.bgra, dtype=np.uint8).reshape(shot.height, shot.width, 4)
        rgba = bgra[..., [2, 1, 0, 3]].copy()
        rgba[..., 3] = 255

        self._last_digest = digest
        return RawFrame(
            width=shot.width,
            height=shot.height,
            pixel_stride=RGBA_PIXEL_STRIDE,
            row_stride=shot.width * RGBA_PIXEL_STRIDE,
            buffer=rgba.tobytes(),
        )

    def close(self) -> None:
        if self._sct is not None:
            self._sct.close()
            self._sct = None
            logger.info("mss_surface_closed")


# ---------------------------------------------------------------------------
# SyntheticCaptureSurface — dev/test frames with padded rows
# ---------------------------------------------------------------------------

class SyntheticCaptureSurface(CaptureSurface):
    """Produces a fresh RGBA frame on every pull.

    Rows are padded up to ``row_alignment`` bytes, the way hardware surfaces
    align their buffers. Pixels come from ``image_path`` when given, otherwise
    a blank white screen of ``metrics`` size.
    """

    def __init__(
        self,
        metrics: DisplayMetrics,
        row_alignment: int = 64,
        image_path: Path | None = None,
    ) -> None:
        self._metrics = metrics
        self._row_alignment = row_alignment
        self._image_path = image_path
        self._pixels: np.ndarray | None = None
        self.outstanding = 0   # frames handed out and not yet released

    def _get_pixels(self) -> np.ndarray:
        if self._pixels is None:
            if self._image_path is not None:
                with Image.open(self._image_path) as img:
                    self._pixels = np.array(img.convert("RGBA"))
            else:
                self._pixels = np.full(
                    (self._metrics.height, self._metrics.width, RGBA_PIXEL_STRIDE), 255, dtype=np.uint8
                )
        return self._pixels

    def _release(self) -> None:
        self.outstanding -= 1

    def acquire_latest(self) -> RawFrame | None:
        pixels = self._get_pixels()
        height, width, _ = pixels.shape
        packed = width * RGBA_PIXEL_STRIDE
        row_stride = -(-packed // self._row_alignment) * self._row_alignment

        buffer = bytearray(row_stride * height)
        rows = np.frombuffer(buffer, dtype=np.uint8).reshape(height, row_stride)
        rows[:, :packed] = pixels.reshape(height, packed)

        self.outstanding += 1
        return RawFrame(
            width=width,
            height=height,
            pixel_stride=RGBA_PIXEL_STRIDE,
            row_stride=row_stride,
            buffer=buffer,
            _release=self._release,
        )
