from __future__ import annotations

from spoke_capture.core.config import Settings
from spoke_capture.ocr.base_ocr import OCREngine
from spoke_capture.ocr.mock_ocr import MockOCREngine


def get_ocr_engine(settings: Settings) -> OCREngine:
    """Return the configured OCR engine instance.

    OCR_PROVIDER options:
        mock         — synthetic text (dev/test, no deps required)
        paddleocr    — LocalOCREngine (pip install paddlepaddle paddleocr)
        tesseract    — TesseractOCREngine (pip install pytesseract + tesseract binary)
        aws_textract — CloudOCREngine (pip install boto3 + AWS credentials)
    """
    provider = settings.ocr_provider.lower().strip()

    if provider == "mock":
        return MockOCREngine()

    if provider == "paddleocr":
        from spoke_capture.ocr.engines import LocalOCREngine
        return LocalOCREngine(lang=settings.paddle_lang, use_gpu=settings.paddle_use_gpu)

    if provider == "tesseract":
        from spoke_capture.ocr.engines import TesseractOCREngine
        return TesseractOCREngine(lang=settings.tesseract_lang, tesseract_cmd=settings.tesseract_cmd)

    if provider == "aws_textract":
        from spoke_capture.ocr.engines import CloudOCREngine
        return CloudOCREngine(
            region=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
        )

    raise ValueError(f"Unknown OCR_PROVIDER={settings.ocr_provider!r}")
