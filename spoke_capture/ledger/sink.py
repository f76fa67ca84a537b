"""Append-only address ledger.

The ledger is a CSV-like text file: one header row, then one row per parsed
record with every field wrapped in double quotes. Embedded quote characters
are written as-is (no escaping), so a field containing ``","`` will not read
back faithfully.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path

from spoke_capture.core.errors import WriteError
from spoke_capture.parsing.parser import ParsedRecord

logger = logging.getLogger(__name__)

HEADER = "Address Line 1,Zip/Postal Code,City,Notes"

_locks: dict[Path, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    key = path.resolve()
    with _locks_guard:
        return _locks.setdefault(key, threading.Lock())


def format_row(record: ParsedRecord) -> str:
    fields = (record.address_line1, record.zip, record.city, record.notes)
    return ",".join(f'"{value}"' for value in fields)


def _parse_row(line: str) -> ParsedRecord | None:
    if len(line) < 2 or not (line.startswith('"') and line.endswith('"')):
        return None
    fields = line[1:-1].split('","')
    if len(fields) != 4:
        return None
    address_line1, zip_code, city, notes = fields
    return ParsedRecord(address_line1=address_line1, zip=zip_code, city=city, notes=notes)


class LedgerSink:
    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: ParsedRecord) -> None:
        """Append *record*, writing the header first when the file is new.

        Appends from every sink in this process that target the same file are
        serialized, so the header is written once and rows never interleave.

        Raises:
            WriteError: the directory or file could not be written.
        """
        row = format_row(record) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with _lock_for(self._path):
                is_new = not self._path.exists()
                payload = f"{HEADER}\n{row}" if is_new else row
                with self._path.open("a", encoding="utf-8", newline="") as fh:
                    fh.write(payload)
        except OSError as exc:
            logger.error("ledger_write_failed", extra={"path": str(self._path), "error": str(exc)})
            raise WriteError(self._path, exc) from exc

        logger.info("ledger_row_appended", extra={"path": str(self._path), "new_file": is_new})

    def read_records(self) -> list[ParsedRecord]:
        """Return the ledger rows in file order; rows that don't split into four fields are skipped."""
        if not self._path.exists():
            return []
        with _lock_for(self._path):
            lines = self._path.read_text(encoding="utf-8").splitlines()

        records: list[ParsedRecord] = []
        for line in lines[1:] if lines and lines[0] == HEADER else lines:
            record = _parse_row(line)
            if record is None:
                logger.warning("ledger_row_unreadable", extra={"path": str(self._path)})
                continue
            records.append(record)
        return records
