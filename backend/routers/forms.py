"""Google Forms import API."""
import asyncio
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from models import Survey
from services import storage
from services.google_forms import (
    FetchFailure,
    InvalidUrl,
    NoSupportedQuestions,
    PayloadMalformed,
    PayloadNotFound,
    import_form,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/forms", tags=["forms"])


class ImportRequest(BaseModel):
    url: str = ""
    save: bool = False


@router.post("/import")
async def import_google_form(body: ImportRequest):
    url = body.url.strip()
    if not url:
        raise HTTPException(status_code=400, detail="Please enter a URL")

    loop = asyncio.get_event_loop()
    try:
        result = await loop.run_in_executor(None, lambda: import_form(url))
    except InvalidUrl as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FetchFailure:
        raise HTTPException(
            status_code=502,
            detail="Could not fetch the form. Check that the URL is correct and the form is public.",
        )
    except (PayloadNotFound, PayloadMalformed):
        raise HTTPException(
            status_code=422,
            detail="Could not read the form data. The Google Forms page structure may have changed.",
        )
    except NoSupportedQuestions as e:
        return JSONResponse(
            status_code=422,
            content={"detail": str(e), "warnings": e.warnings},
        )

    draft = result.survey
    if body.save:
        survey = storage.save_survey(Survey(
            title=draft.title,
            description=draft.description,
            questions=draft.questions,
        ))
        return {"success": True, "saved": True, "survey": survey.model_dump(), "warnings": result.warnings}

    return {
        "success": True,
        "saved": False,
        "survey": {
            "title": draft.title,
            "description": draft.description,
            "questions": [q.model_dump() for q in draft.questions],
        },
        "warnings": result.warnings,
    }
