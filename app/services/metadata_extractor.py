import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Optional

from openai import OpenAI, OpenAIError

from app.core.config import Settings
from app.core.errors import ParseError, UpstreamError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Analyze the following text from a school book cover or first pages and extract the grade, subject, and semester. The text may be in Arabic (e.g., "الصف الثالث" for grade 3). Map Arabic grade names to numbers as follows:
- الصف الثالث=grade 3
- الصف الرابع=grade 4
- الصف الخامس=grade 5
- الصف السادس=grade 6
- الصف الأول متوسط=grade 7
- الصف الثاني متوسط=grade 8
- الصف الثالث متوسط=grade 9
- الصف الأول ثانوي=grade 10
- الصف الثاني ثانوي=grade 11
- الصف الثالث ثانوي=grade 12
Provide the output in JSON format with keys 'grade' (numeric), 'subject', and 'semester'."""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


@dataclass
class ExtractedMetadata:
    grade: str
    subject: str
    semester: str

    def as_dict(self) -> dict:
        return asdict(self)


FALLBACK_METADATA = ExtractedMetadata(grade="3", subject="Math", semester="01")


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_metadata_response(content: Optional[str]) -> ExtractedMetadata:
    """
    Parse the model reply into grade/subject/semester.
    Raises ParseError unless it is a JSON object carrying all three keys.
    """
    if not content or not content.strip():
        raise ParseError("Empty metadata response")

    raw = content.strip()
    fenced = _CODE_FENCE.match(raw)
    if fenced:
        raw = fenced.group(1)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError("Metadata response is not valid JSON", details=str(e))

    if not isinstance(data, dict):
        raise ParseError("Metadata response is not a JSON object", details=content)

    values = {key: _as_text(data.get(key)) for key in ("grade", "subject", "semester")}
    missing = [key for key, value in values.items() if value is None]
    if missing:
        raise ParseError("Metadata response is missing keys", details=missing)

    return ExtractedMetadata(**values)


class MetadataExtractor:
    """
    Asks the LLM for a book's grade/subject/semester from a text excerpt.
    ``client`` is an ``openai.OpenAI``-compatible object; it is built lazily from the API key.
    """

    def __init__(
        self,
        client=None,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        strict: bool = False,
    ):
        self._client = client
        self._api_key = api_key
        self.model = model
        self.strict = strict

    @classmethod
    def from_settings(cls, settings: Settings) -> "MetadataExtractor":
        return cls(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            strict=settings.METADATA_STRICT_PARSE,
        )

    # ---------- public API ----------

    def extract(self, excerpt: str) -> ExtractedMetadata:
        content = self._complete(excerpt)
        try:
            return parse_metadata_response(content)
        except ParseError as e:
            if self.strict:
                raise
            logger.warning("Metadata parse failed (%s), using fallback %s", e.message, FALLBACK_METADATA)
            return FALLBACK_METADATA

    # ---------- internals ----------

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise UpstreamError("OpenAI API key not configured")
            self._client = OpenAI(api_key=self._api_key)
        return self._client

    def _complete(self, excerpt: str) -> str:
        client = self._get_client()

        try:
            comp = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": excerpt},
                ],
                response_format={"type": "json_object"},
                temperature=0,
            )
        except OpenAIError as e:
            raise UpstreamError("Failed to extract metadata from OpenAI", details=str(e))

        if not getattr(comp, "choices", None):
            raise UpstreamError("Failed to extract metadata from OpenAI", details="empty choices")

        return comp.choices[0].message.content or ""
