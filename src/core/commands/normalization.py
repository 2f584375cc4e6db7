"""
Stage and text normalization helpers.

Free text from the intent parser or the raw transcript is mapped onto the
closed Stage enum with keyword rules. Text folding is shared by the candidate
resolver and the clarification resolver.
"""

import re
import unicodedata
from typing import Optional

from db.enums import Stage

# Keyword prefixes per stage. A keyword must start a word, so "Interviewing"
# and "applied" match while "reapply" does not.
_STAGE_RULES = [
    (re.compile(r"\bwish(?:list)?", re.IGNORECASE), Stage.WISHLIST),
    (re.compile(r"\bappl(?:ied|y|ed)?", re.IGNORECASE), Stage.APPLIED),
    (re.compile(r"\binterview(?:s)?", re.IGNORECASE), Stage.INTERVIEW),
    (re.compile(r"\boffer(?:s)?", re.IGNORECASE), Stage.OFFER),
    (re.compile(r"\b(?:archive(?:d)?|close(?:d)?|reject(?:ed)?)", re.IGNORECASE), Stage.ARCHIVED),
]

_FROM_TO_PATTERN = re.compile(r"\bfrom\s+.+?\s+to\s+(.+)$", re.IGNORECASE)
_TO_PATTERN = re.compile(r"\b(?:to|into)\s+", re.IGNORECASE)

_RECORD_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def fold(text: Optional[str]) -> str:
    """Lowercase, strip accents and surrounding whitespace."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold().strip()


def alnum_only(text: Optional[str]) -> str:
    """Folded text with every non-alphanumeric character removed."""
    return re.sub(r"[^0-9a-z]", "", fold(text))


def is_record_id(value: Optional[str]) -> bool:
    return bool(value) and bool(_RECORD_ID_PATTERN.match(value.strip()))


def _scan_stage(text: str) -> Optional[str]:
    """Earliest keyword hit in text wins."""
    best = None
    best_pos = None
    for pattern, stage in _STAGE_RULES:
        match = pattern.search(text)
        if match and (best_pos is None or match.start() < best_pos):
            best, best_pos = stage, match.start()
    return best.value if best else None


def normalize_stage(text: Optional[str]) -> Optional[str]:
    """
    Map free text onto a Stage value.

    "from X to Y" prefers Y; otherwise the text after the last "to"/"into"
    is tried before the whole string. Returns None for unrecognised text.

    Examples:
        >>> normalize_stage("Interviewing")
        'INTERVIEW'
        >>> normalize_stage("move from applied to offer")
        'OFFER'
        >>> normalize_stage("banana")
    """
    if not text or not isinstance(text, str):
        return None
    value = text.strip()
    if not value:
        return None

    upper = value.upper()
    if upper in {s.value for s in Stage}:
        return upper

    from_to = _FROM_TO_PATTERN.search(value)
    if from_to:
        stage = _scan_stage(from_to.group(1))
        if stage:
            return stage

    to_matches = list(_TO_PATTERN.finditer(value))
    for match in reversed(to_matches):
        stage = _scan_stage(value[match.end():])
        if stage:
            return stage

    return _scan_stage(value)
