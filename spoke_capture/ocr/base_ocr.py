from __future__ import annotations

from dataclasses import dataclass

from spoke_capture.decoding.decoder import PixelGrid


@dataclass(frozen=True)
class OCRResult:
    text: str
    confidence: float  # 0.0 to 1.0


class OCREngine:
    async def recognize(self, grid: PixelGrid) -> OCRResult:
        raise NotImplementedError

    def close(self) -> None:
        pass
