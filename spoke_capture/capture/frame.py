from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class DisplayMetrics:
    width: int
    height: int
    density_dpi: int = 160


@dataclass(eq=False)
class RawFrame:
    """One raw pixel buffer pulled from a capture surface.

    ``row_stride`` may exceed ``pixel_stride * width`` when the surface pads
    rows for alignment. The frame owns its buffer until ``close()`` hands it
    back to the surface; ``close()`` is safe to call more than once.
    """

    width: int
    height: int
    pixel_stride: int
    row_stride: int
    buffer: bytes | bytearray | memoryview
    _release: Callable[[], None] | None = field(default=None, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Frame dimensions must be positive, got {self.width}x{self.height}")
        if self.pixel_stride <= 0:
            raise ValueError(f"pixel_stride must be positive, got {self.pixel_stride}")
        if self.row_stride < self.pixel_stride * self.width:
            raise ValueError(
                f"row_stride={self.row_stride} is smaller than "
                f"pixel_stride*width={self.pixel_stride * self.width}"
            )

    @property
    def row_padding(self) -> int:
        return self.row_stride - self.pixel_stride * self.width

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._release is not None:
            self._release()

    def __enter__(self) -> RawFrame:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
