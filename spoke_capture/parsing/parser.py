"""Line-classification of recognized screen text into address fields.

This is a heuristic, not an address grammar. Lines are visited in order and
each one lands in the first bucket whose rule matches:

1. The first line carrying a standalone 5-digit token gives ``zip`` (the
   token) and ``city`` (the rest of that line, with surrounding whitespace
   and commas stripped). Later lines never revisit this rule.
2. The first remaining line containing any digit is ``address_line1``,
   kept verbatim.
3. Everything else is appended to ``notes``, each line followed by a space.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

_ZIP_RE = re.compile(r"\b\d{5}\b", re.ASCII)
_DIGIT_RE = re.compile(r"\d", re.ASCII)
_LINE_BREAK_RE = re.compile(r"\r\n|\n|\r")
_EDGE_RE = re.compile(r"^[\s,]+|[\s,]+$")


@dataclass(frozen=True)
class ParsedRecord:
    address_line1: str = ""
    zip: str = ""
    city: str = ""
    notes: str = ""


def parse(text: str) -> ParsedRecord:
    address_line1 = ""
    zip_code = ""
    city = ""
    notes = ""

    for line in _LINE_BREAK_RE.split(text):
        match = _ZIP_RE.search(line) if not zip_code else None
        if match:
            zip_code = match.group()
            city = _EDGE_RE.sub("", line[: match.start()] + line[match.end():])
        elif _DIGIT_RE.search(line) and not address_line1:
            address_line1 = line
        else:
            notes += f"{line} "

    return ParsedRecord(address_line1=address_line1, zip=zip_code, city=city, notes=notes)
