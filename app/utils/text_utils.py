import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def normalize_text(text: str) -> str:
    """
    Trim, NFKC-normalize (folds Arabic presentation forms) and collapse whitespace.
    """
    if not text:
        return ""
    text = unicodedata.normalize("NFKC", text.strip())
    return re.sub(r"\s+", " ", text)


def strip_non_alnum(value: str) -> str:
    """
    Keep ASCII letters and digits only: "Math!" -> "Math", "1/2" -> "12".
    """
    return _NON_ALNUM.sub("", value or "")


def leading_int(value) -> int | None:
    """
    Integer prefix of a value, None if there is none ("3rd" -> 3, "Grade 3" -> None).
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None
