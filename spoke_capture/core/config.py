from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    # Ledger location: <documents_root>/<ledger_dir_name>/<ledger_file_name>
    documents_root: Path = Path.home() / "Documents"
    ledger_dir_name: str = "SpokeExports"
    ledger_file_name: str = "addresses.csv"

    # Capture surface: mss | synthetic
    capture_provider: str = "mss"
    capture_monitor: int = 1
    display_width: int | None = None
    display_height: int | None = None
    display_density_dpi: int = 160
    synthetic_image_path: Path | None = None

    capture_max_attempts: int = 2
    capture_retry_delay_ms: int = 100
    # Periodic trigger; disabled when unset
    capture_interval_s: float | None = None

    skip_blank_text: bool = True
    recent_runs_limit: int = 50

    # OCR provider: mock | paddleocr | tesseract | aws_textract
    ocr_provider: str = "mock"
    paddle_lang: str = "en"
    paddle_use_gpu: bool = False
    tesseract_cmd: str | None = None
    tesseract_lang: str = "eng"

    # AWS Textract (only needed when ocr_provider=aws_textract)
    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    @property
    def ledger_path(self) -> Path:
        return self.documents_root / self.ledger_dir_name / self.ledger_file_name


settings = Settings()
