"""
Free-text parsing of provider output.

Every strategy goes through these helpers instead of carrying its own
regexes. The conclusion parser has a fixed fallback order:

1. A strict ``CONCLUSION:`` marker (case-insensitive); the conclusion is the
   rest of that line.
2. A strict ``CONFIDENCE: <number>`` marker, accepted only inside [0, 1].
3. Without a ``CONCLUSION:`` marker the whole trimmed text is the conclusion
   and the looser ``confidence (score)? (of)? :? <number>`` pattern is tried.
4. If no confidence is recoverable it stays ``None``; callers apply their own
   default.
"""

import logging
import re
from dataclasses import dataclass

from reason_forge.exceptions import ParseError

logger = logging.getLogger(__name__)

_NUMBER = r"([0-9]+(?:\.[0-9]+)?|\.[0-9]+)"

CONCLUSION_PATTERN = re.compile(r"CONCLUSION:\s*(.+?)(?:\n|$)", re.IGNORECASE | re.DOTALL)
CONFIDENCE_PATTERN = re.compile(r"CONFIDENCE:\s*" + _NUMBER, re.IGNORECASE)
LOOSE_CONFIDENCE_PATTERN = re.compile(r"confidence\s*(?:score)?(?:\s*of)?\s*:?\s*" + _NUMBER, re.IGNORECASE)
SCORE_PATTERN = re.compile(r"SCORE:\s*" + _NUMBER, re.IGNORECASE)
_QUESTION_PREFIX = re.compile(r"^(?:[-*•]+|\(?\d+[.):]|Q\d+[.):]?)\s*", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedConclusion:
    """Conclusion text and, when one was found, its confidence."""
    conclusion: str
    confidence: float | None = None


def _unit_interval(raw: str) -> float | None:
    """Convert a captured number, keeping it only if it lies in [0, 1]."""
    try:
        value = float(raw)
    except ValueError:
        return None
    if 0.0 <= value <= 1.0:
        return value
    logger.debug(f"Discarding out-of-range confidence value {value}")
    return None


def parse_conclusion(text: str, strict: bool = False) -> ParsedConclusion:
    """
    Extract a conclusion and optional confidence from provider text.

    Args:
        text: Raw provider output.
        strict: If True, raise ParseError when there is no CONCLUSION marker
            instead of falling back to the whole text.

    Returns:
        ParsedConclusion: conclusion text and confidence (None if absent).
    """
    text = text or ""
    conclusion_match = CONCLUSION_PATTERN.search(text)

    if conclusion_match:
        confidence_match = CONFIDENCE_PATTERN.search(text)
        confidence = _unit_interval(confidence_match.group(1)) if confidence_match else None
        return ParsedConclusion(conclusion_match.group(1).strip(), confidence)

    if strict:
        raise ParseError("No CONCLUSION marker found in provider output")

    logger.debug("No CONCLUSION marker found, using the full response as conclusion")
    loose_match = LOOSE_CONFIDENCE_PATTERN.search(text)
    confidence = _unit_interval(loose_match.group(1)) if loose_match else None
    return ParsedConclusion(text.strip(), confidence)


def extract_score(text: str) -> float | None:
    """Extract a 'SCORE: x' value in [0, 1] from verification text."""
    match = SCORE_PATTERN.search(text or "")
    if not match:
        return None
    return _unit_interval(match.group(1))


def parse_question_list(text: str) -> list[str]:
    """Split provider output into questions, one per non-empty line.

    Leading bullets and numbering ("1.", "2)", "-", "Q3:") are removed.
    """
    questions = []
    for line in (text or "").splitlines():
        cleaned = _QUESTION_PREFIX.sub("", line.strip()).strip()
        if cleaned:
            questions.append(cleaned)
    return questions


def jaccard_similarity(first: str, second: str) -> float:
    """Jaccard similarity of the lower-cased, whitespace-split word sets."""
    first_words = set(first.lower().split())
    second_words = set(second.lower().split())
    union = first_words | second_words
    if not union:
        return 1.0
    return len(first_words & second_words) / len(union)
