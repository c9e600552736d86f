"""Interview session manager: choice answers in, follow-up conversation, stored response out."""
import logging
import re
import threading
import time
from typing import Any, Optional

from config import settings
from models import (
    ChoiceAnswer,
    ConversationMessage,
    Survey,
    SurveyResponse,
    generate_session_id,
)
from services import openai_service, storage

logger = logging.getLogger(__name__)

_sessions: dict[str, dict[str, Any]] = {}
_lock = threading.Lock()

_TERMINAL_REPLIES = {
    "nothing",
    "no",
    "none",
    "thats it",
    "that's it",
    "no more",
    "nothing else",
    "na",
    "n/a",
}

CLOSING_MESSAGE = "Thank you for sharing your thoughts. Your answers have been recorded."


class SessionError(Exception):
    pass


class SessionNotFound(SessionError):
    pass


class SessionClosed(SessionError):
    pass


class InvalidAnswers(SessionError):
    pass


# ── Answer validation ───────────────────────────────────────────────────

def validate_answers(survey: Survey, choice_answers: list[ChoiceAnswer]) -> None:
    questions = {q.id: q for q in survey.questions}
    answered: set[str] = set()

    for a in choice_answers:
        q = questions.get(a.question_id)
        if q is None:
            raise InvalidAnswers(f"Unknown question id: {a.question_id}")
        free_text = q.options == [""]
        if q.type == "radio":
            if not isinstance(a.answer, str):
                raise InvalidAnswers(f"Question {q.order + 1} takes a single answer")
            if a.answer and not free_text and a.answer not in q.options:
                raise InvalidAnswers(f"Question {q.order + 1}: '{a.answer}' is not an option")
        else:
            values = a.answer if isinstance(a.answer, list) else [a.answer]
            bad = [v for v in values if v and not free_text and v not in q.options]
            if bad:
                raise InvalidAnswers(f"Question {q.order + 1}: {bad} are not options")
            a.answer = [v for v in values if v]
        if a.as_text():
            answered.add(q.id)

    missing = [q.order + 1 for q in survey.questions if q.required and q.id not in answered]
    if missing:
        raise InvalidAnswers(f"Required questions not answered: {missing}")


# ── Reply heuristics ────────────────────────────────────────────────────

def _normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"[^\w\s']", " ", (text or "").lower())).strip()


def _token_overlap_ratio(a: str, b: str) -> float:
    a_tokens = {t for t in _normalize_text(a).split() if len(t) > 3}
    b_tokens = {t for t in _normalize_text(b).split() if len(t) > 3}
    if not a_tokens or not b_tokens:
        return 0.0
    common = len(a_tokens & b_tokens)
    return common / max(len(a_tokens), len(b_tokens))


def _is_terminal_reply(text: str) -> bool:
    cleaned = _normalize_text(text)
    if not cleaned:
        return True
    if cleaned in _TERMINAL_REPLIES or cleaned.replace("'", "") in _TERMINAL_REPLIES:
        return True
    short = cleaned.replace(" ", "")
    return short in _TERMINAL_REPLIES or short in {"nope", "nah"}


def _is_repeated_reply(history: list[ConversationMessage], reply: str) -> bool:
    previous = [m.content for m in history if m.role == "user"][-3:]
    return any(_token_overlap_ratio(reply, prev) >= 0.75 for prev in previous)


# ── Sessions ────────────────────────────────────────────────────────────

def create_session(survey: Survey, choice_answers: list[ChoiceAnswer]) -> dict[str, Any]:
    validate_answers(survey, choice_answers)
    analysis = openai_service.generate_theme(survey.questions, choice_answers)

    sid = generate_session_id()
    session = {
        "session_id": sid,
        "survey_id": survey.id,
        "created_at": time.time(),
        "choice_answers": choice_answers,
        "theme": analysis["theme"],
        "conversation": [ConversationMessage(role="ai", content=analysis["initial_question"])],
        "complete": False,
        "response_id": None,
        "lock": threading.Lock(),
    }
    with _lock:
        _sessions[sid] = session
    logger.info("Interview session created: %s (survey %s, theme=%s)",
                sid, survey.id, analysis["theme"][:60])
    return session


def get_session(sid: str) -> Optional[dict[str, Any]]:
    return _sessions.get(sid)


def _get(sid: str) -> dict[str, Any]:
    session = _sessions.get(sid)
    if not session:
        raise SessionNotFound(f"Interview session not found: {sid}")
    return session


def _check_open(session: dict[str, Any]) -> None:
    if session["complete"]:
        raise SessionClosed(f"Interview session already complete: {session['session_id']}")


def submit_reply(sid: str, message: str) -> dict[str, Any]:
    """Record the respondent's reply and either ask the next question or wrap up.

    The reply only joins the transcript once the AI calls for this turn succeed,
    so a failed turn can be retried with the same message.
    """
    session = _get(sid)
    with session["lock"]:
        _check_open(session)
        history: list[ConversationMessage] = session["conversation"]
        turn = history + [ConversationMessage(role="user", content=message)]

        if _is_terminal_reply(message):
            logger.info("Session %s: terminal reply, ending interview", sid)
            next_question = None
        elif _is_repeated_reply(history, message):
            logger.info("Session %s: reply repeats earlier content, ending interview", sid)
            next_question = None
        else:
            next_question = openai_service.generate_next_question(
                turn, session["theme"], settings.interview_max_turns,
            )

        if next_question:
            turn.append(ConversationMessage(role="ai", content=next_question))
            session["conversation"] = turn
            return {"complete": False, "next_question": next_question}

        return _finish(session, turn)


def finish_session(sid: str) -> dict[str, Any]:
    session = _get(sid)
    with session["lock"]:
        _check_open(session)
        return _finish(session, list(session["conversation"]))


def _finish(session: dict[str, Any], history: list[ConversationMessage]) -> dict[str, Any]:
    # Caller holds session["lock"].
    sid = session["session_id"]
    summary = openai_service.generate_summary(history)
    keywords = openai_service.extract_keywords(history)
    history = history + [ConversationMessage(role="ai", content=CLOSING_MESSAGE)]

    response = storage.save_response(SurveyResponse(
        survey_id=session["survey_id"],
        session_id=sid,
        choice_answers=session["choice_answers"],
        ai_theme=session["theme"],
        ai_conversation=history,
        ai_summary=summary,
        ai_keywords=keywords,
    ))
    session["conversation"] = history
    session["complete"] = True
    session["response_id"] = response.id
    logger.info("Session %s complete: response %s, %d keywords", sid, response.id, len(keywords))
    return {
        "complete": True,
        "next_question": None,
        "closing_message": CLOSING_MESSAGE,
        "summary": summary,
        "keywords": keywords,
        "response_id": response.id,
    }


def clear_sessions() -> None:
    with _lock:
        _sessions.clear()
