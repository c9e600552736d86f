"""Local JSON-file storage for surveys and responses, plus JSON/CSV export."""
import csv
import io
import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from config import settings
from models import Survey, SurveyResponse, utc_now

logger = logging.getLogger(__name__)

SURVEYS_FILE = "surveys.json"
RESPONSES_FILE = "responses.json"

_lock = threading.RLock()


class StorageError(Exception):
    pass


def _path(name: str) -> Path:
    return Path(settings.data_dir) / name


def _read(name: str) -> list[dict[str, Any]]:
    fp = _path(name)
    if not fp.exists():
        return []
    try:
        data = json.loads(fp.read_text(encoding="utf-8") or "[]")
    except json.JSONDecodeError as e:
        raise StorageError(f"{fp} is corrupted: {e}") from e
    if not isinstance(data, list):
        raise StorageError(f"{fp} is corrupted: expected a JSON array")
    return data


def _write(name: str, rows: list[dict[str, Any]]) -> None:
    fp = _path(name)
    fp.parent.mkdir(parents=True, exist_ok=True)
    tmp = fp.with_suffix(".tmp")
    tmp.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp.replace(fp)


# ── Surveys ─────────────────────────────────────────────────────────────

def save_survey(survey: Survey) -> Survey:
    """Insert or replace by id. Owned questions get the survey id and a dense order."""
    for order, question in enumerate(survey.questions):
        question.survey_id = survey.id
        question.order = order
    survey.updated_at = utc_now()

    with _lock:
        rows = _read(SURVEYS_FILE)
        row = survey.model_dump()
        for i, existing in enumerate(rows):
            if existing.get("id") == survey.id:
                rows[i] = row
                break
        else:
            rows.append(row)
        _write(SURVEYS_FILE, rows)
    logger.info("Survey saved: %s (%d questions)", survey.id, len(survey.questions))
    return survey


def get_surveys() -> list[Survey]:
    with _lock:
        return [Survey.model_validate(r) for r in _read(SURVEYS_FILE)]


def get_survey(survey_id: str) -> Optional[Survey]:
    for survey in get_surveys():
        if survey.id == survey_id:
            return survey
    return None


def delete_survey(survey_id: str) -> bool:
    """Remove the survey and every response recorded for it."""
    with _lock:
        rows = _read(SURVEYS_FILE)
        kept = [r for r in rows if r.get("id") != survey_id]
        if len(kept) == len(rows):
            return False
        _write(SURVEYS_FILE, kept)
        responses = [r for r in _read(RESPONSES_FILE) if r.get("survey_id") != survey_id]
        _write(RESPONSES_FILE, responses)
    logger.info("Survey deleted: %s", survey_id)
    return True


# ── Responses ───────────────────────────────────────────────────────────

def save_response(response: SurveyResponse) -> SurveyResponse:
    with _lock:
        rows = _read(RESPONSES_FILE)
        rows.append(response.model_dump())
        _write(RESPONSES_FILE, rows)
    logger.info("Response saved: %s for survey %s", response.id, response.survey_id)
    return response


def get_responses() -> list[SurveyResponse]:
    with _lock:
        return [SurveyResponse.model_validate(r) for r in _read(RESPONSES_FILE)]


def get_responses_for_survey(survey_id: str) -> list[SurveyResponse]:
    return [r for r in get_responses() if r.survey_id == survey_id]


# ── Export / import ─────────────────────────────────────────────────────

def export_survey_json(survey_id: str) -> str:
    survey = get_survey(survey_id)
    responses = get_responses_for_survey(survey_id)
    return json.dumps({
        "survey": survey.model_dump() if survey else None,
        "responses": [r.model_dump() for r in responses],
        "exported_at": utc_now(),
    }, ensure_ascii=False, indent=2)


def export_responses_csv(survey_id: str) -> str:
    """One row per response: choice answers by question, then the AI fields."""
    survey = get_survey(survey_id)
    responses = get_responses_for_survey(survey_id)
    if not survey or not responses:
        return ""

    header = ["Response ID", "Submitted At"]
    header += [q.question_text for q in survey.questions]
    header += ["AI Theme", "AI Summary", "Keywords"]

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    for response in responses:
        answers = {a.question_id: a for a in response.choice_answers}
        row = [response.id, response.submitted_at]
        for q in survey.questions:
            answer = answers.get(q.id)
            row.append(answer.as_text() if answer else "")
        row += [response.ai_theme, response.ai_summary, ", ".join(response.ai_keywords)]
        writer.writerow(row)
    return buf.getvalue().rstrip("\n")


def import_survey_json(text: str) -> tuple[Optional[Survey], int]:
    """Load an ``export_survey_json`` document. Returns (survey, responses imported)."""
    try:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise StorageError("Invalid JSON format: expected an object")
        survey = Survey.model_validate(data["survey"]) if data.get("survey") else None
        raw_responses = data.get("responses")
        responses = [
            SurveyResponse.model_validate(r)
            for r in (raw_responses if isinstance(raw_responses, list) else [])
        ]
    except (json.JSONDecodeError, ValidationError) as e:
        raise StorageError(f"Invalid JSON format: {e}") from e

    if survey:
        save_survey(survey)
    for response in responses:
        save_response(response)
    logger.info("Imported survey %s with %d responses",
                survey.id if survey else "(none)", len(responses))
    return survey, len(responses)
