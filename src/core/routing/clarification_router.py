"""
Clarification Router

Maps clarification reasons to the question shown to the user.

This is a pure routing function with no side effects, no execution,
and no rendering logic. It only performs semantic signal → text mapping.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Dict

import yaml

logger = logging.getLogger(__name__)


class ClarificationReason(Enum):
    MISSING_INTENT = "MISSING_INTENT"
    UNSUPPORTED_INTENT = "UNSUPPORTED_INTENT"
    MISSING_STAGE = "MISSING_STAGE"
    MISSING_TEXT = "MISSING_TEXT"
    AMBIGUOUS_TARGET = "AMBIGUOUS_TARGET"
    NO_CANDIDATES = "NO_CANDIDATES"
    CHOICE_NOT_FOUND = "CHOICE_NOT_FOUND"
    STALE_CLARIFICATION = "STALE_CLARIFICATION"


DEFAULT_QUESTIONS: Dict[str, str] = {
    "MISSING_INTENT": "What do you want to do?",
    "UNSUPPORTED_INTENT": "Please specify the action.",
    "MISSING_STAGE": "Which stage should it move to?",
    "MISSING_TEXT": "What should the note say?",
    "AMBIGUOUS_TARGET": "Which job?",
    "NO_CANDIDATES": "I couldn't find a matching job. Which job did you mean?",
    "CHOICE_NOT_FOUND": "I couldn't match that to one of the options. Please pick again.",
    "STALE_CLARIFICATION": "I couldn't find that question anymore. Which job did you mean?",
}


def _load_questions(config_file: Path) -> Dict[str, str]:
    """
    Load clarification questions from a YAML config file.

    Unknown reasons and non-string values are skipped with a warning.

    Raises:
        ValueError: If the file exists but is malformed
    """
    if not config_file.exists():
        logger.warning(
            "Clarification questions config not found at %s. Using built-in defaults",
            config_file
        )
        return dict(DEFAULT_QUESTIONS)

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(
            f"Failed to parse YAML config file {config_file}: {e}"
        ) from e

    if not isinstance(config_data, dict):
        raise ValueError(
            f"Config file {config_file} must contain a YAML dictionary. "
            f"Got {type(config_data)}"
        )

    questions = dict(DEFAULT_QUESTIONS)
    for reason, question in config_data.items():
        if reason not in DEFAULT_QUESTIONS:
            logger.warning("Skipping unknown clarification reason in config: %r", reason)
            continue
        if not isinstance(question, str) or not question.strip():
            logger.warning(
                "Skipping invalid question for %r: expected non-empty string, got %s",
                reason,
                type(question).__name__
            )
            continue
        questions[reason] = question.strip()

    logger.debug("Loaded %d clarification questions from %s", len(questions), config_file)
    return questions


# Load questions at module import time
_QUESTIONS: Dict[str, str] = _load_questions(
    Path(__file__).parent / "config" / "clarification_questions.yaml"
)


def get_question(reason: ClarificationReason) -> str:
    """
    Get the question text for a clarification reason.

    Args:
        reason: Clarification reason

    Returns:
        Question string (e.g., "Which job?")
    """
    return _QUESTIONS.get(reason.value, DEFAULT_QUESTIONS[reason.value])
