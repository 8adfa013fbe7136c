from __future__ import annotations

import re

from location_mcp.core.models import Query


_WS = re.compile(r"\s+")
_DIGIT = re.compile(r"\d")
_HOUSE_NUMBER = re.compile(r"\b\d+[A-Za-z]?\b")


def normalize_query(q: str) -> str:
    q = (q or "").strip()
    q = _WS.sub(" ", q)
    return q


def has_house_number(text: str) -> bool:
    return bool(_DIGIT.search(text or ""))


def extract_house_number(text: str) -> str | None:
    """
    First street-number token: digits optionally followed by one letter
    ("742", "12B"), bounded by word edges.
    """
    m = _HOUSE_NUMBER.search(text or "")
    return m.group(0) if m else None


def has_house_number_match(candidate_text: str, house_number: str | None) -> bool:
    if not house_number:
        return False
    pattern = rf"\b{re.escape(house_number)}\b"
    return re.search(pattern, candidate_text or "", flags=re.IGNORECASE) is not None


def parse_query(raw: str) -> Query:
    raw = raw or ""
    trimmed = normalize_query(raw)
    return Query(
        raw=raw,
        trimmed=trimmed,
        has_house_number=has_house_number(trimmed),
        house_number=extract_house_number(trimmed),
    )
