"""Validation for questions added one by one or imported in bulk.

Bulk rows arrive already parsed into ``header -> value`` mappings. Headers are
matched loosely so spreadsheets exported by different tools import cleanly:

    question | text | prompt | q | ques              -> question text
    option_a | a | answer a | choice a | opa ...     -> option A (same for B-D)
    correct | answer | key                           -> correct option
    difficulty | level                               -> difficulty (optional)

The correct value may be the option letter (``A``-``D``) or the option text.
Each row is validated on its own; a bad row never prevents the others from
being imported.
"""

from __future__ import annotations

from collections.abc import Mapping
import re

from quizcast.constants.quiz_constants import DEFAULT_DIFFICULTY, OPTION_LETTERS
from quizcast.core.errors import QuestionImportError
from quizcast.core.models import QuestionDraft

_TEXT_KEYS = ("question", "text", "prompt", "q", "ques")
_OPTION_KEY_TEMPLATES = (
    "option{letter}",
    "{letter}",
    "answer{letter}",
    "choice{letter}",
    "choices{letter}",
    "op{letter}",
)
_CORRECT_KEYS = ("correct", "answer", "key")
_DIFFICULTY_KEYS = ("difficulty", "level")

_HEADER_NOISE = re.compile(r"[\s_\-]+")


def normalize_header(header: object) -> str:
    return _HEADER_NOISE.sub("", str(header or "").strip().lower())


def normalize_row(raw: Mapping[str, object]) -> dict[str, str]:
    normalized: dict[str, str] = {}
    for key, value in raw.items():
        normalized[normalize_header(key)] = "" if value is None else str(value).strip()
    return normalized


def build_question(
    text: str | None,
    options: list[str | None],
    correct: str | None,
    difficulty: str | None = None,
) -> QuestionDraft:
    """Validate the fields of one question and return a draft ready to store."""
    cleaned_text = (text or "").strip()
    cleaned_options = [(option or "").strip() for option in options]
    if not cleaned_text or len(cleaned_options) != len(OPTION_LETTERS) or not all(cleaned_options):
        raise QuestionImportError("Missing question/options")

    cleaned_correct = (correct or "").strip()
    if not cleaned_correct:
        raise QuestionImportError("Missing correct answer")
    if cleaned_correct not in cleaned_options:
        raise QuestionImportError("Correct answer must match one of the options")

    return QuestionDraft(
        text=cleaned_text,
        options=tuple(cleaned_options),
        correct=cleaned_correct,
        difficulty=(difficulty or "").strip() or DEFAULT_DIFFICULTY,
    )


def parse_import_row(raw: Mapping[str, object]) -> QuestionDraft:
    row = normalize_row(raw)
    text = _first_present(row, _TEXT_KEYS)
    options = [_option_value(row, letter) for letter in OPTION_LETTERS]
    correct = _map_correct_value(row, options)
    difficulty = _first_present(row, _DIFFICULTY_KEYS)
    return build_question(text, options, correct, difficulty)


def _option_value(row: dict[str, str], letter: str) -> str:
    keys = [template.format(letter=letter.lower()) for template in _OPTION_KEY_TEMPLATES]
    return _first_present(row, keys)


def _map_correct_value(row: dict[str, str], options: list[str]) -> str:
    raw = _first_present(row, _CORRECT_KEYS)
    if not raw:
        return ""
    letter = raw.upper()
    if letter in OPTION_LETTERS:
        return options[OPTION_LETTERS.index(letter)]
    return raw


def _first_present(row: dict[str, str], keys) -> str:
    for key in keys:
        value = row.get(key)
        if value:
            return value
    return ""
