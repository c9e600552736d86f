"""Google Forms import: locate the form, pull its embedded data, normalize the questions.

Google does not document the form payload. The public view page carries it as
an inline script assignment (``var FB_PUBLIC_LOAD_DATA_ = [...];``) whose
meaning is purely positional, so every offset we rely on lives in one accessor
on ``FormPayload`` / ``FormItem`` below.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import httpx

from config import settings
from models import Question

logger = logging.getLogger(__name__)

VIEWFORM_URL_TEMPLATE = "https://docs.google.com/forms/d/e/{form_id}/viewform"
VIEWFORM_MARKER = "/viewform"
UNTITLED_FORM = "Untitled Form"

# Most specific first. The last pattern skips the "e" segment of published
# URLs that end in something other than /viewform (e.g. /formResponse).
_FORM_ID_PATTERNS = [
    re.compile(r"/forms/d/([a-zA-Z0-9_-]+)/edit"),
    re.compile(r"/forms/d/e/([a-zA-Z0-9_-]+)/viewform"),
    re.compile(r"/forms/d/(?:e/)?([a-zA-Z0-9_-]+)"),
]

# The script-end form survives ";" inside question text; the bare form is the
# fallback for pages where the assignment is not the last statement. The first
# one that decodes wins.
_PAYLOAD_PATTERNS = [
    re.compile(r"var FB_PUBLIC_LOAD_DATA_ = ([\s\S]*?);\s*</script>"),
    re.compile(r"var FB_PUBLIC_LOAD_DATA_ = ([\s\S]*?);"),
]


# ── Errors ──────────────────────────────────────────────────────────────

class FormImportError(Exception):
    """Base class for everything that can stop a form import."""


class InvalidUrl(FormImportError):
    pass


class FetchFailure(FormImportError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PayloadNotFound(FormImportError):
    pass


class PayloadMalformed(FormImportError):
    pass


class NoSupportedQuestions(FormImportError):
    def __init__(self, warnings: list[str]):
        super().__init__("No supported question types (single or multiple choice) were found.")
        self.warnings = warnings


# ── Parsed model ────────────────────────────────────────────────────────

class QuestionKind(str, Enum):
    RADIO = "radio"
    CHECKBOX = "checkbox"
    TEXT = "text"
    TEXTAREA = "textarea"
    DROPDOWN = "dropdown"
    SCALE = "scale"
    GRID = "grid"
    DATE = "date"
    TIME = "time"
    UNKNOWN = "unknown"


# Google's item type codes. Codes not listed here (6 = image, 8 = section,
# 11 = video, ...) map to UNKNOWN.
TYPE_CODES: dict[int, QuestionKind] = {
    0: QuestionKind.TEXT,
    1: QuestionKind.TEXTAREA,
    2: QuestionKind.RADIO,
    3: QuestionKind.DROPDOWN,
    4: QuestionKind.CHECKBOX,
    5: QuestionKind.SCALE,
    7: QuestionKind.GRID,
    9: QuestionKind.DATE,
    10: QuestionKind.TIME,
}

SUPPORTED_KINDS = (QuestionKind.RADIO, QuestionKind.CHECKBOX)

UNSUPPORTED_LABELS: dict[QuestionKind, str] = {
    QuestionKind.TEXT: "short text",
    QuestionKind.TEXTAREA: "long text",
    QuestionKind.DROPDOWN: "dropdown",
    QuestionKind.SCALE: "linear scale",
    QuestionKind.GRID: "grid",
    QuestionKind.DATE: "date",
    QuestionKind.TIME: "time",
    QuestionKind.UNKNOWN: "unrecognized format",
}


@dataclass(frozen=True)
class ParsedQuestion:
    question_text: str
    type: QuestionKind
    options: tuple[str, ...] = ()
    required: bool = False


@dataclass(frozen=True)
class ParsedFormData:
    title: str
    description: str
    questions: tuple[ParsedQuestion, ...] = ()


@dataclass
class SurveyDraft:
    """A survey built from an import, not yet saved (no id, no timestamps)."""
    title: str
    description: str
    questions: list[Question] = field(default_factory=list)


@dataclass
class ImportResult:
    survey: SurveyDraft
    warnings: list[str]


# ── Positional accessors ────────────────────────────────────────────────

def _dig(node: Any, *path: int) -> Any:
    """Follow list indices, returning None as soon as a step is missing."""
    cur = node
    for idx in path:
        if not isinstance(cur, list) or idx < 0 or idx >= len(cur):
            return None
        cur = cur[idx]
    return cur


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class FormItem:
    """One entry of the form's item list."""

    def __init__(self, raw: list):
        self.raw = raw

    def text(self) -> str:
        return _text(_dig(self.raw, 1))

    def type_code(self) -> Optional[int]:
        code = _dig(self.raw, 3)
        if isinstance(code, bool) or not isinstance(code, int):
            return None
        return code

    def kind(self) -> QuestionKind:
        return TYPE_CODES.get(self.type_code(), QuestionKind.UNKNOWN)

    def is_required(self) -> bool:
        flag = _dig(self.raw, 4, 0, 2)
        return isinstance(flag, int) and not isinstance(flag, bool) and flag == 1

    def options(self) -> list[str]:
        entries = _dig(self.raw, 4, 0, 1)
        if not isinstance(entries, list):
            return []
        labels = []
        for entry in entries:
            label = _dig(entry, 0)
            if label is None:
                continue
            label = label if isinstance(label, str) else str(label)
            if label:
                labels.append(label)
        return labels


class FormPayload:
    """The ``[1]`` element of FB_PUBLIC_LOAD_DATA_."""

    def __init__(self, raw: list):
        self.raw = raw

    def title(self) -> str:
        return _text(_dig(self.raw, 8)) or UNTITLED_FORM

    def description(self) -> str:
        return _text(_dig(self.raw, 0))

    def items(self) -> list[FormItem]:
        entries = _dig(self.raw, 1)
        if not isinstance(entries, list):
            return []
        items = []
        for pos, entry in enumerate(entries):
            if not isinstance(entry, list) or not entry:
                logger.debug("Skipping malformed form item at position %d", pos)
                continue
            items.append(FormItem(entry))
        return items


# ── Locator ─────────────────────────────────────────────────────────────

def extract_form_id(url: str) -> Optional[str]:
    if not isinstance(url, str):
        return None
    for pattern in _FORM_ID_PATTERNS:
        m = pattern.search(url)
        if m:
            return m.group(1)
    return None


def build_view_url(url: str, form_id: str) -> str:
    if VIEWFORM_MARKER in url:
        return url
    return VIEWFORM_URL_TEMPLATE.format(form_id=form_id)


# ── Extractor ───────────────────────────────────────────────────────────

def fetch_form_html(url: str, transport: Optional[httpx.BaseTransport] = None) -> str:
    """Single GET with a browser User-Agent. No retries."""
    headers = {"User-Agent": settings.form_fetch_user_agent}
    try:
        with httpx.Client(
            timeout=settings.form_fetch_timeout,
            follow_redirects=True,
            transport=transport,
        ) as client:
            resp = client.get(url, headers=headers)
            resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.warning("Form fetch returned %d for %s", e.response.status_code, url)
        raise FetchFailure(
            f"Form page returned HTTP {e.response.status_code}",
            status_code=e.response.status_code,
        ) from e
    except httpx.HTTPError as e:
        logger.warning("Form fetch failed for %s: %s", url, e)
        raise FetchFailure(f"Could not reach the form: {e}") from e
    logger.info("Fetched form page (%d chars) from %s", len(resp.text), url)
    return resp.text


def extract_payload(page_html: str) -> FormPayload:
    matches = [m for m in (p.search(page_html or "") for p in _PAYLOAD_PATTERNS) if m]
    if not matches:
        raise PayloadNotFound("FB_PUBLIC_LOAD_DATA_ not found in the form page")
    error = None
    for m in matches:
        try:
            data = json.loads(m.group(1))
            break
        except json.JSONDecodeError as e:
            error = e
    else:
        raise PayloadMalformed(f"Embedded form data is not valid JSON: {error}") from error
    form = _dig(data, 1)
    if not isinstance(form, list):
        raise PayloadMalformed("Embedded form data has no form definition at [1]")
    return FormPayload(form)


# ── Normalizer ──────────────────────────────────────────────────────────

def parse_form_data(payload: FormPayload) -> ParsedFormData:
    questions = tuple(
        ParsedQuestion(
            question_text=item.text(),
            type=item.kind(),
            options=tuple(item.options()),
            required=item.is_required(),
        )
        for item in payload.items()
    )
    return ParsedFormData(
        title=payload.title(),
        description=payload.description(),
        questions=questions,
    )


def unsupported_warning(position: int, question: ParsedQuestion) -> str:
    label = UNSUPPORTED_LABELS.get(question.type, UNSUPPORTED_LABELS[QuestionKind.UNKNOWN])
    return (
        f'Question {position} "{question.question_text}" ({label}) '
        "is not supported and was skipped."
    )


def convert_to_survey(form: ParsedFormData) -> tuple[SurveyDraft, list[str]]:
    """Keep radio/checkbox questions; warn about everything else.

    ``survey_id`` stays blank on the produced questions until the survey is saved.
    """
    accepted: list[Question] = []
    warnings: list[str] = []
    for index, question in enumerate(form.questions):
        if question.type in SUPPORTED_KINDS:
            accepted.append(Question(
                order=len(accepted),
                type=question.type.value,
                question_text=question.question_text,
                options=list(question.options) or [""],
                required=question.required,
            ))
        else:
            warnings.append(unsupported_warning(index + 1, question))
    draft = SurveyDraft(title=form.title, description=form.description, questions=accepted)
    return draft, warnings


# ── Pipeline ────────────────────────────────────────────────────────────

def import_form(url: str, transport: Optional[httpx.BaseTransport] = None) -> ImportResult:
    form_id = extract_form_id(url)
    if not form_id:
        raise InvalidUrl("Please enter a valid Google Forms URL")

    view_url = build_view_url(url, form_id)
    logger.info("Importing Google Form %s via %s", form_id, view_url)

    page_html = fetch_form_html(view_url, transport=transport)
    try:
        parsed = parse_form_data(extract_payload(page_html))
    except (PayloadNotFound, PayloadMalformed) as e:
        logger.warning("Form %s structure unrecognized: %s", form_id, e)
        raise

    draft, warnings = convert_to_survey(parsed)
    logger.info("Form %s: %d questions parsed, %d imported, %d skipped",
                form_id, len(parsed.questions), len(draft.questions), len(warnings))

    if not draft.questions:
        raise NoSupportedQuestions(warnings)
    return ImportResult(survey=draft, warnings=warnings)
