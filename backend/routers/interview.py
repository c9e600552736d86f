"""Follow-up interview API: start from choice answers, then exchange messages."""
import asyncio
import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from models import ChoiceAnswer
from services import storage
from services.session_manager import (
    InvalidAnswers,
    SessionClosed,
    SessionNotFound,
    create_session,
    get_session,
    submit_reply,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/interview", tags=["interview"])


class StartRequest(BaseModel):
    survey_id: str
    choice_answers: list[ChoiceAnswer] = Field(default_factory=list)


class ReplyRequest(BaseModel):
    message: str = ""


@router.post("/start")
async def start_interview(body: StartRequest):
    survey = storage.get_survey(body.survey_id)
    if not survey:
        raise HTTPException(status_code=404, detail="Survey not found")
    if not survey.is_active:
        raise HTTPException(status_code=409, detail="This survey is not accepting responses")

    loop = asyncio.get_event_loop()
    try:
        session = await loop.run_in_executor(
            None, lambda: create_session(survey, body.choice_answers),
        )
    except InvalidAnswers as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Theme generation failed")
        raise HTTPException(status_code=502, detail=f"AI analysis failed: {e}")

    return {
        "session_id": session["session_id"],
        "theme": session["theme"],
        "question": session["conversation"][0].content,
    }


@router.post("/{session_id}/reply")
async def reply(session_id: str, body: ReplyRequest):
    message = body.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="Reply cannot be empty")

    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(None, lambda: submit_reply(session_id, message))
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionClosed as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.exception("Interview turn failed for %s", session_id)
        raise HTTPException(status_code=502, detail=f"AI conversation failed: {e}")


@router.get("/{session_id}")
def session_state(session_id: str):
    session = get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Interview session not found")
    return {
        "session_id": session_id,
        "survey_id": session["survey_id"],
        "theme": session["theme"],
        "conversation": [m.model_dump() for m in session["conversation"]],
        "complete": session["complete"],
        "response_id": session["response_id"],
    }
