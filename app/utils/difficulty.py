from app.utils.text_utils import leading_int

DEFAULT_DIFFICULTY_CODE = "01"

# grade -> code handed to the question-generation worker
DIFFICULTY_CODES = {
    3: "01",
    4: "02",
    5: "03",
    6: "04",
    7: "05",
    8: "06",
    9: "06",
    10: "07",
    11: "07",
    12: "08",
}


def difficulty_code_for_grade(grade) -> str:
    """
    Two-digit difficulty code for a grade. Grades are read by their leading
    integer; anything outside 3-12 (or unreadable) maps to "01".
    """
    return DIFFICULTY_CODES.get(leading_int(grade), DEFAULT_DIFFICULTY_CODE)


def difficulty_label_for_grade(grade) -> str:
    """Coarse easy/medium/hard label shown next to a book."""
    value = leading_int(grade)
    if value is None:
        return "medium"
    if value <= 3:
        return "easy"
    if value <= 6:
        return "medium"
    return "hard"
