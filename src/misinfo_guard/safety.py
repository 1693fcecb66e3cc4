from __future__ import annotations

import re
from typing import List

from .text_utils import normalize_quotes

RED_FLAG_KEYWORDS = (
    "chest pain",
    "heart attack",
    "stroke",
    "can't breathe",
    "suicidal",
    "overdose",
    "severe bleeding",
    "pregnancy bleeding",
    "seizure",
    "anaphylaxis",
    "severe allergic",
    "unconscious",
    "paralysis",
    "crushing chest",
    "sudden numbness",
    "slurred speech",
)

DOSAGE_REDACTION = "[dosage information removed for safety]"

_DOSAGE_PATTERNS = (
    re.compile(
        r"\d+\s*(?:mg|ml|mcg|iu|tablets?|capsules?|pills?|doses?)\s*(?:per|/)?\s*(?:day|daily|hour|hourly)",
        re.IGNORECASE,
    ),
    re.compile(r"take\s+\d+\s*(?:mg|ml|tablets?|capsules?|pills?)", re.IGNORECASE),
    re.compile(r"\d+\s*x\s*\d+\s*(?:mg|ml)", re.IGNORECASE),
)


def detect_red_flags(text: str) -> List[str]:
    """Return emergency keywords present in ``text``, in keyword order."""
    lowered = normalize_quotes(text).lower()
    return [keyword for keyword in RED_FLAG_KEYWORDS if keyword in lowered]


def filter_dosage(text: str) -> str:
    filtered = text
    for pattern in _DOSAGE_PATTERNS:
        filtered = pattern.sub(DOSAGE_REDACTION, filtered)
    return filtered
