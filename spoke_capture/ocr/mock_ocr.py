from __future__ import annotations

from spoke_capture.decoding.decoder import PixelGrid
from spoke_capture.ocr.base_ocr import OCRResult, OCREngine


class MockOCREngine(OCREngine):
    async def recognize(self, grid: PixelGrid) -> OCRResult:
        # Mock OCR for development/testing: a delivery stop as shown in the route app
        return OCRResult(
            text="Acme Corp\n123 Oak St\nSpringfield, 62704\nRing doorbell twice",
            confidence=0.85,
        )
