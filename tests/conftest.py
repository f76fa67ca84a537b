"""Shared pytest configuration and fixtures."""
from __future__ import annotations

import os
import tempfile

# Provide env vars before any spoke_capture module is imported
os.environ.setdefault("CAPTURE_PROVIDER", "synthetic")
os.environ.setdefault("OCR_PROVIDER", "mock")
os.environ.setdefault("DOCUMENTS_ROOT", tempfile.mkdtemp(prefix="spoke-docs-"))
