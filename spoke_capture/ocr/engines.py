"""LocalOCREngine (PaddleOCR), TesseractOCREngine and CloudOCREngine (AWS Textract).

Every engine hands its blocking library call to an executor thread and
resumes on the caller's event loop once the result is ready. Frames are
always passed upright (0-degree orientation), so no angle classification is
requested.
"""
from __future__ import annotations

import asyncio
import logging

from spoke_capture.decoding.decoder import PixelGrid
from spoke_capture.ocr.base_ocr import OCREngine, OCRResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# LocalOCREngine — PaddleOCR
# ---------------------------------------------------------------------------

class LocalOCREngine(OCREngine):
    """OCR engine backed by PaddleOCR (runs 100% locally, no cloud calls).

    Install dependency:
        pip install paddlepaddle paddleocr

    Config (via .env):
        OCR_PROVIDER=paddleocr
        PADDLE_LANG=en      # language code: en | ch | fr | es | etc.
        PADDLE_USE_GPU=false
    """

    def __init__(self, lang: str = "en", use_gpu: bool = False) -> None:
        self._lang = lang
        self._use_gpu = use_gpu
        self._ocr = None   # lazy-init to avoid import cost at startup

    def _get_ocr(self):
        if self._ocr is None:
            try:
                from paddleocr import PaddleOCR  # type: ignore[import]
            except ModuleNotFoundError as exc:
                raise RuntimeError(
                    "PaddleOCR is not installed. Run: pip install paddlepaddle paddleocr"
                ) from exc
            self._ocr = PaddleOCR(
                lang=self._lang,
                device="gpu" if self._use_gpu else "cpu",
                use_doc_orientation_classify=False,
                use_doc_unwarping=False,
                use_textline_orientation=False,
            )
        return self._ocr

    async def recognize(self, grid: PixelGrid) -> OCRResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._run_paddle, grid)

    def _run_paddle(self, grid: PixelGrid) -> OCRResult:
        # PaddleOCR expects BGR, like an OpenCV frame
        bgr = grid.pixels[..., [2, 1, 0]] if grid.channels >= 3 else grid.pixels[..., 0]

        ocr = self._get_ocr()
        result = ocr.predict(bgr)

        lines: list[str] = []
        confidences: list[float] = []

        for page in result or []:
            for text, conf in zip(page["rec_texts"], page["rec_scores"]):
                lines.append(text)
                confidences.append(float(conf))

        full_text = "\n".join(lines)
        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0

        logger.info(
            "paddleocr_complete",
            extra={"lines": len(lines), "avg_confidence": round(avg_confidence, 4)},
        )

        return OCRResult(text=full_text, confidence=avg_confidence)

    def close(self) -> None:
        self._ocr = None


# ---------------------------------------------------------------------------
# TesseractOCREngine — pytesseract
# ---------------------------------------------------------------------------

class TesseractOCREngine(OCREngine):
    """OCR engine backed by the Tesseract binary through pytesseract.

    Install dependency:
        pip install pytesseract   (plus the tesseract binary on PATH)

    Config (via .env):
        OCR_PROVIDER=tesseract
        TESSERACT_LANG=eng
        TESSERACT_CMD=/usr/bin/tesseract   # only when not on PATH
    """

    def __init__(self, lang: str = "eng", tesseract_cmd: str | None = None) -> None:
        self._lang = lang
        self._tesseract_cmd = tesseract_cmd

    def _get_pytesseract(self):
        try:
            import pytesseract  # type: ignore[import]
        except ModuleNotFoundError as exc:
            raise RuntimeError(
                "pytesseract is not installed. Run: pip install pytesseract"
            ) from exc
        if self._tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._tesseract_cmd
        return pytesseract

    async def recognize(self, grid: PixelGrid) -> OCRResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._run_tesseract, grid)

    def _run_tesseract(self, grid: PixelGrid) -> OCRResult:
        pytesseract = self._get_pytesseract()
        image = grid.to_image().convert("RGB")

        data = pytesseract.image_to_data(
            image, lang=self._lang, output_type=pytesseract.Output.DICT
        )

        # Regroup word-level rows into lines, keeping Tesseract's reading order.
        lines: dict[tuple[int, int, int], list[str]] = {}
        confidences: list[float] = []
        for i, word in enumerate(data["text"]):
            if not word.strip():
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word)
            conf = float(data["conf"][i])
            if conf >= 0:
                confidences.append(conf / 100.0)

        full_text = "\n".join(" ".join(words) for words in lines.values())
        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0

        logger.info(
            "tesseract_complete",
            extra={"lines": len(lines), "avg_confidence": round(avg_confidence, 4)},
        )

        return OCRResult(text=full_text, confidence=avg_confidence)


# ---------------------------------------------------------------------------
# CloudOCREngine — AWS Textract
# ---------------------------------------------------------------------------

class CloudOCREngine(OCREngine):
    """OCR engine backed by AWS Textract.

    Config (via .env):
        OCR_PROVIDER=aws_textract
        AWS_REGION=us-east-1
        AWS_ACCESS_KEY_ID=...      (or use IAM role)
        AWS_SECRET_ACCESS_KEY=...

    Install dependency:
        pip install boto3
    """

    def __init__(
        self,
        region: str = "us-east-1",
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
    ) -> None:
        self._region = region
        self._access_key = aws_access_key_id
        self._secret_key = aws_secret_access_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                import boto3  # type: ignore[import]
            except ModuleNotFoundError as exc:
                raise RuntimeError(
                    "boto3 is not installed. Run: pip install boto3"
                ) from exc
            kwargs: dict = {"region_name": self._region}
            if self._access_key:
                kwargs["aws_access_key_id"] = self._access_key
                kwargs["aws_secret_access_key"] = self._secret_key
            self._client = boto3.client("textract", **kwargs)
        return self._client

    async def recognize(self, grid: PixelGrid) -> OCRResult:
        """Call AWS Textract DetectDocumentText on the grid encoded as PNG."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._call_textract, grid.to_png_bytes())

    def _call_textract(self, image_bytes: bytes) -> OCRResult:
        client = self._get_client()
        response = client.detect_document_text(Document={"Bytes": image_bytes})

        lines: list[str] = []
        confidences: list[float] = []

        for block in response.get("Blocks", []):
            if block["BlockType"] == "LINE":
                lines.append(block.get("Text", ""))
                confidences.append(float(block.get("Confidence", 0)) / 100.0)

        full_text = "\n".join(lines)
        avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0

        logger.info(
            "textract_complete",
            extra={"lines": len(lines), "avg_confidence": round(avg_confidence, 4)},
        )

        return OCRResult(text=full_text, confidence=avg_confidence)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
