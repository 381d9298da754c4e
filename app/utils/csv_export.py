import csv
import io
from typing import Iterable, Optional

from app.utils.text_utils import strip_non_alnum

CSV_COLUMNS = [
    "question_number",
    "category",
    "difficulty_level",
    "question_text",
    "choice_1",
    "choice_2",
    "choice_3",
    "choice_4",
    "correct_choice",
]


def render_questions_csv(questions: Iterable) -> str:
    """
    Render question rows (ORM objects or anything with the column attributes).
    Header is plain, text fields are always quoted with embedded quotes doubled,
    and question_number stays unquoted.
    """
    buf = io.StringIO()
    buf.write(",".join(CSV_COLUMNS) + "\n")

    writer = csv.writer(buf, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    for q in questions:
        row = [int(q.question_number)]
        row.extend(str(getattr(q, col) or "") for col in CSV_COLUMNS[1:])
        writer.writerow(row)

    return buf.getvalue()


def format_export_filename(grade: Optional[str], subject: Optional[str], semester: Optional[str]) -> str:
    """
    Grade{grade}_{subject}_Semester{semester}_Questions.csv, each part stripped of
    non-alphanumerics; missing parts become "0" / "Unknown" / "00".
    """
    clean_grade = strip_non_alnum(str(grade or "0"))
    clean_subject = strip_non_alnum(str(subject or "Unknown"))
    clean_semester = strip_non_alnum(str(semester or "00"))
    return f"Grade{clean_grade}_{clean_subject}_Semester{clean_semester}_Questions.csv"
