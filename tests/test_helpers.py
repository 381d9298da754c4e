import csv
import io
import logging
from types import SimpleNamespace

import pytest

from app.core.errors import ParseError
from app.services.metadata_extractor import parse_metadata_response
from app.utils.csv_export import CSV_COLUMNS, format_export_filename, render_questions_csv
from app.utils.difficulty import difficulty_code_for_grade, difficulty_label_for_grade
from app.utils.pdf_extract import count_pages


@pytest.mark.parametrize(
    "grade, code",
    [(3, "01"), ("4", "02"), ("5", "03"), ("6", "04"), ("7", "05"), ("8", "06"), ("9", "06"),
     ("10", "07"), ("11", "07"), ("12", "08"), (999, "01"), ("2", "01"), (None, "01"), ("abc", "01"), ("4th", "02")],
)
def test_difficulty_codes(grade, code):
    assert difficulty_code_for_grade(grade) == code


def test_difficulty_labels():
    assert difficulty_label_for_grade("3") == "easy"
    assert difficulty_label_for_grade("6") == "medium"
    assert difficulty_label_for_grade("12") == "hard"
    assert difficulty_label_for_grade(None) == "medium"


def test_filename_strips_symbols():
    assert format_export_filename("3rd", "Math!", "1/2") == "Grade3rd_Math_Semester12_Questions.csv"


def test_filename_defaults():
    assert format_export_filename(None, "", None) == "Grade0_Unknown_Semester00_Questions.csv"


def _q(**kw):
    base = dict(
        question_number=1,
        category="cat",
        difficulty_level="easy",
        question_text="q",
        choice_1="a",
        choice_2="b",
        choice_3="c",
        choice_4="d",
        correct_choice="a",
    )
    base.update(kw)
    return SimpleNamespace(**base)


def test_csv_quotes_text_and_doubles_quotes():
    content = render_questions_csv([_q(question_text='He said "hi"', choice_2="x, y")])
    header, row = content.splitlines()
    assert header == ",".join(CSV_COLUMNS)
    assert row == '1,"cat","easy","He said ""hi""","a","x, y","c","d","a"'

    parsed = list(csv.DictReader(io.StringIO(content)))
    assert parsed[0]["question_text"] == 'He said "hi"'
    assert parsed[0]["choice_2"] == "x, y"


def test_csv_keeps_multiline_text_in_one_record():
    content = render_questions_csv([_q(question_text="line one\nline two")])
    parsed = list(csv.DictReader(io.StringIO(content)))
    assert len(parsed) == 1
    assert parsed[0]["question_text"] == "line one\nline two"


def test_parse_plain_json():
    meta = parse_metadata_response('{"grade": 7, "subject": "Science", "semester": 1}')
    assert meta.as_dict() == {"grade": "7", "subject": "Science", "semester": "1"}


def test_parse_fenced_json():
    meta = parse_metadata_response('```json\n{"grade": "10", "subject": "رياضيات", "semester": "02"}\n```')
    assert meta.grade == "10"
    assert meta.subject == "رياضيات"


@pytest.mark.parametrize(
    "content",
    ["", "not json", "[1, 2]", '{"grade": 3, "subject": "Math"}', '{"grade": null, "subject": "x", "semester": "1"}'],
)
def test_parse_rejects_unusable_replies(content):
    with pytest.raises(ParseError):
        parse_metadata_response(content)


def test_page_count_of_unreadable_pdf_is_zero_and_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="app.utils.pdf_extract"):
        assert count_pages(b"not a pdf") == 0
    assert "PDF page count failed" in caplog.text
