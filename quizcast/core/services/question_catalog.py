"""Service holding the in-memory question catalog loaded from the store."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from threading import Lock

from quizcast.core.errors import InvalidInputError, QuestionImportError
from quizcast.core.models import ImportReport, ImportRowError, QuestionDraft, QuizQuestion
from quizcast.core.question_import import build_question, parse_import_row
from quizcast.storage.store import QuizStore

logger = logging.getLogger(__name__)


class QuestionCatalog:
    """Ordered question list, replaced wholesale whenever the store changes."""

    def __init__(self, store: QuizStore) -> None:
        self._store = store
        self._lock = Lock()
        self._questions: tuple[QuizQuestion, ...] = ()

    def reload(self) -> int:
        questions = tuple(self._store.fetch_questions())
        with self._lock:
            self._questions = questions
        logger.info("Questions loaded: %d", len(questions))
        return len(questions)

    def snapshot(self) -> tuple[QuizQuestion, ...]:
        with self._lock:
            return self._questions

    def get_question_count(self) -> int:
        with self._lock:
            return len(self._questions)

    def add_question(
        self,
        text: str | None,
        options: Sequence[str | None],
        correct: str | None,
        difficulty: str | None = None,
    ) -> int:
        """Validate and insert one question, returning its id."""
        draft = build_question(text, list(options), correct, difficulty)
        (question_id,) = self._store.insert_questions([draft])
        self.reload()
        return question_id

    def import_rows(self, rows: Sequence[Mapping[str, object]]) -> ImportReport:
        """Insert every valid row and report the rows that were skipped."""
        if not rows:
            raise InvalidInputError("Import contains no rows")

        drafts: list[QuestionDraft] = []
        errors: list[ImportRowError] = []
        for row_number, raw in enumerate(rows, start=1):
            try:
                drafts.append(parse_import_row(raw))
            except QuestionImportError as exc:
                errors.append(ImportRowError(row=row_number, error=str(exc), raw=dict(raw)))

        question_ids: list[int] = []
        if drafts:
            question_ids = self._store.insert_questions(drafts)
            self.reload()
        logger.info(
            "Imported %d question(s), skipped %d of %d row(s)",
            len(question_ids),
            len(errors),
            len(rows),
        )
        return ImportReport(
            parsed_rows=len(rows),
            inserted=len(question_ids),
            skipped=len(errors),
            errors=errors,
            question_ids=question_ids,
        )
