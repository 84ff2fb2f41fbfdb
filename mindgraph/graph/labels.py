"""
MindGraph — Label Cleaner
==========================
Turns raw node titles from the generative model into presentable labels.

Syllabus-style output tends to carry administrative boilerplate around the
actual topic name:
  "Unit II: Thermodynamics (8 Lecture Hours)"  →  "Thermodynamics"
  "3. Kinetics - 4 marks"                     →  "Kinetics"
  "• 3 hours Mitochondria"                    →  "Mitochondria"
"""

import re
from typing import Optional

MIN_LABEL_LENGTH = 2

# ── Patterns ─────────────────────────────────────────────────────────────────

_ADMIN_PREFIX = re.compile(
    r"^(?:unit|module|chapter|section|topic)\b[\s\-:]*"
    r"(?:(?:[ivx]+|\d+(?:\.\d+)*)\b[\s.:\-]*|[.:\-][\s.:\-]*)",
    re.IGNORECASE,
)
_NUMBERING = re.compile(r"^\d+(?:\.\d+)+\.?\s+|^\d+\.\s*")
_BULLET = re.compile(r"^[•◦▪‣·\-\*–—]\s*")
_PAREN_ANNOTATION = re.compile(
    r"\(\s*\d+\s*(?:lecture\s*)?(?:hours?|hrs?|marks?|credits?)\s*\)",
    re.IGNORECASE,
)
_ANNOTATION = re.compile(
    r"\b\d+\s*(?:lecture\s*)?(?:hours?|hrs?|marks?|credits?)\b",
    re.IGNORECASE,
)
_MULTI_SPACE = re.compile(r"\s{2,}")
_EDGE_PUNCTUATION = re.compile(r"^[\s:,;\-]+|[\s:,;\-]+$")

_UNIT_NUMBER = re.compile(r"\b(?:unit|module)[\s\-:]*([ivx]+|\d+)\b", re.IGNORECASE)
_LEADING_ROMAN = re.compile(r"^([ivx]+)\b", re.IGNORECASE)


def _strip_boilerplate(text: str) -> str:
    # Every pass only removes characters, so this reaches a fixed point.
    while True:
        previous = text
        text = _ADMIN_PREFIX.sub("", text, count=1)
        text = _NUMBERING.sub("", text, count=1)
        text = _BULLET.sub("", text, count=1)
        text = _PAREN_ANNOTATION.sub(" ", text)
        text = _ANNOTATION.sub(" ", text)
        text = _MULTI_SPACE.sub(" ", text)
        text = _EDGE_PUNCTUATION.sub("", text)
        if text == previous:
            return text


def clean_label(raw: str, fallback: Optional[str] = None) -> str:
    """
    Strip unit/module prefixes, numbering, bullets and hour/marks annotations.

    When nothing presentable is left (fewer than 2 characters) the original
    input is returned untouched, or `fallback` if the caller supplied one.
    Cleaning an already clean label is a no-op.
    """
    if not isinstance(raw, str):
        raise TypeError(f"clean_label expects str, got {type(raw).__name__}")

    cleaned = _strip_boilerplate(raw)
    if len(cleaned) < MIN_LABEL_LENGTH:
        return fallback if fallback is not None else raw
    return cleaned


def extract_unit_number(raw: str) -> Optional[str]:
    """Return the numeral of a 'Unit IV' / 'Module 3' style prefix, if any."""
    if not isinstance(raw, str):
        raise TypeError(f"extract_unit_number expects str, got {type(raw).__name__}")

    match = _UNIT_NUMBER.search(raw) or _LEADING_ROMAN.match(raw)
    return match.group(1) if match else None
