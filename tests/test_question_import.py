from __future__ import annotations

import pytest

from quizcast.core.errors import InvalidInputError, QuestionImportError
from quizcast.core.question_import import build_question, normalize_header, parse_import_row
from quizcast.core.services.question_catalog import QuestionCatalog


def _row(text="Largest planet?", a="Mars", b="Jupiter", c="Venus", d="Earth", correct="B", **extra):
    row = {"Question": text, "Option A": a, "Option B": b, "Option C": c, "Option D": d, "Correct": correct}
    row.update(extra)
    return row


@pytest.mark.parametrize(
    ("header", "expected"),
    [("Option A", "optiona"), ("option_b", "optionb"), (" Choice-C ", "choicec"), (None, "")],
)
def test_normalize_header(header, expected):
    assert normalize_header(header) == expected


def test_letter_answer_maps_to_option_text():
    draft = parse_import_row(_row())

    assert draft.text == "Largest planet?"
    assert draft.options == ("Mars", "Jupiter", "Venus", "Earth")
    assert draft.correct == "Jupiter"
    assert draft.difficulty == "Medium"


def test_header_aliases_and_text_answer():
    draft = parse_import_row(
        {"prompt": "2 + 3?", "a": "4", "choice_b": "5", "answer c": "6", "opd": "7", "key": "5", "Level": "Easy"}
    )

    assert draft.options == ("4", "5", "6", "7")
    assert draft.correct == "5"
    assert draft.difficulty == "Easy"


@pytest.mark.parametrize(
    ("row", "message"),
    [
        (_row(text="  "), "Missing question/options"),
        (_row(c=""), "Missing question/options"),
        (_row(correct=""), "Missing correct answer"),
        (_row(correct="Pluto"), "Correct answer must match one of the options"),
    ],
)
def test_invalid_rows(row, message):
    with pytest.raises(QuestionImportError, match=message):
        parse_import_row(row)


def test_build_question_trims_fields():
    draft = build_question("  Q? ", [" a", "b ", "c", "d"], " b ", None)

    assert draft.text == "Q?"
    assert draft.options == ("a", "b", "c", "d")
    assert draft.correct == "b"


def test_bulk_import_keeps_valid_rows(store):
    catalog = QuestionCatalog(store)
    rows = [_row(text=f"Question {n}?") for n in range(1, 6)]
    rows[2] = _row(text="Question 3?", correct="Pluto")

    report = catalog.import_rows(rows)

    assert report.parsed_rows == 5
    assert report.inserted == 4
    assert report.skipped == 1
    assert len(report.question_ids) == 4
    (error,) = report.errors
    assert error.row == 3
    assert error.error == "Correct answer must match one of the options"
    assert error.raw["Question"] == "Question 3?"
    assert [question.text for question in catalog.snapshot()] == [
        "Question 1?",
        "Question 2?",
        "Question 4?",
        "Question 5?",
    ]


def test_bulk_import_with_only_bad_rows_inserts_nothing(store):
    catalog = QuestionCatalog(store)

    report = catalog.import_rows([_row(correct=""), {"unrelated": "x"}])

    assert (report.inserted, report.skipped) == (0, 2)
    assert store.fetch_questions() == []


def test_bulk_import_rejects_empty_input(store):
    with pytest.raises(InvalidInputError, match="Import contains no rows"):
        QuestionCatalog(store).import_rows([])


def test_add_question_refreshes_catalog(store):
    catalog = QuestionCatalog(store)

    question_id = catalog.add_question("Capital of Italy?", ["Rome", "Milan", "Turin", "Naples"], "Rome", "Easy")

    (question,) = catalog.snapshot()
    assert question.id == question_id
    assert question.options == {"A": "Rome", "B": "Milan", "C": "Turin", "D": "Naples"}
    assert question.is_correct("Rome")
    assert not question.is_correct("A")


def test_add_question_validation_error_is_invalid_input(store):
    with pytest.raises(InvalidInputError):
        QuestionCatalog(store).add_question("Q?", ["a", "b", "c"], "a")
