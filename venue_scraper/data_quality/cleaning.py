import re
import html
from typing import Optional


def normalize_whitespace(text: Optional[str]) -> Optional[str]:
    """
    Normalizes whitespace in a string.
    - Strips leading/trailing whitespace.
    - Collapses internal whitespace runs (spaces, tabs, newlines, nbsp) into one space.
    - Returns None if the input is None or nothing is left.
    """
    if text is None:
        return None

    text = re.sub(r'\s+', ' ', text.replace('\xa0', ' ')).strip()
    return text if text else None


def clean_html_entities(text: Optional[str]) -> Optional[str]:
    """Converts HTML character entities (&amp;, &nbsp;, ...) to Unicode characters."""
    if text is None:
        return None
    return html.unescape(text)


def clean_and_normalize_text(text: Optional[str]) -> Optional[str]:
    """Applies HTML entity decoding and whitespace normalization."""
    if text is None:
        return None
    return normalize_whitespace(clean_html_entities(text))


def clean_text(text: Optional[str]) -> str:
    """Like clean_and_normalize_text but never returns None."""
    return clean_and_normalize_text(text) or ""


def parse_first_float(text: Optional[str]) -> Optional[float]:
    """Returns the first decimal number in text, or None."""
    if not text:
        return None
    match = re.search(r'\d+(?:\.\d+)?', text)
    return float(match.group(0)) if match else None


def clamp_rating(value: Optional[float], ceiling: float = 5.0) -> float:
    """Clamps a parsed rating into [0, ceiling]; None becomes 0.0."""
    if value is None:
        return 0.0
    if value > ceiling:
        return ceiling
    if value < 0:
        return 0.0
    return value
