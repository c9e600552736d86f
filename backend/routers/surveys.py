"""Survey management API: CRUD, responses, export and import."""
import logging

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field

from models import Question, Survey
from services import storage

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/surveys", tags=["surveys"])


class SurveyBody(BaseModel):
    title: str
    description: str = ""
    is_active: bool = True
    questions: list[Question] = Field(default_factory=list)


class JsonImportBody(BaseModel):
    content: str


def _get_or_404(survey_id: str) -> Survey:
    survey = storage.get_survey(survey_id)
    if not survey:
        raise HTTPException(status_code=404, detail="Survey not found")
    return survey


def _check_questions(body: SurveyBody):
    if not body.title.strip():
        raise HTTPException(status_code=400, detail="Title cannot be empty")
    if not body.questions:
        raise HTTPException(status_code=400, detail="A survey needs at least one question")


@router.get("")
def list_surveys():
    return [s.model_dump() for s in storage.get_surveys()]


@router.post("", status_code=201)
def create_survey(body: SurveyBody):
    _check_questions(body)
    survey = storage.save_survey(Survey(**body.model_dump()))
    return survey.model_dump()


@router.post("/import-json")
def import_json(body: JsonImportBody):
    try:
        survey, count = storage.import_survey_json(body.content)
    except storage.StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"survey_id": survey.id if survey else None, "responses_imported": count}


@router.get("/{survey_id}")
def get_survey(survey_id: str):
    return _get_or_404(survey_id).model_dump()


@router.put("/{survey_id}")
def update_survey(survey_id: str, body: SurveyBody):
    existing = _get_or_404(survey_id)
    _check_questions(body)
    survey = Survey(id=existing.id, created_at=existing.created_at, **body.model_dump())
    return storage.save_survey(survey).model_dump()


@router.delete("/{survey_id}")
def delete_survey(survey_id: str):
    if not storage.delete_survey(survey_id):
        raise HTTPException(status_code=404, detail="Survey not found")
    return {"deleted": survey_id}


@router.get("/{survey_id}/responses")
def list_responses(survey_id: str):
    _get_or_404(survey_id)
    return [r.model_dump() for r in storage.get_responses_for_survey(survey_id)]


@router.get("/{survey_id}/export.json")
def export_json(survey_id: str):
    _get_or_404(survey_id)
    return Response(
        content=storage.export_survey_json(survey_id),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="survey-{survey_id}.json"'},
    )


@router.get("/{survey_id}/export.csv")
def export_csv(survey_id: str):
    _get_or_404(survey_id)
    return Response(
        content=storage.export_responses_csv(survey_id),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="responses-{survey_id}.csv"'},
    )
