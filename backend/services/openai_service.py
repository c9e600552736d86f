"""OpenAI service: interview theme, follow-up questions, summary and keywords."""
import json
import logging
import re
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from openai import OpenAI

from config import settings
from models import ChoiceAnswer, ConversationMessage, Question
from prompts import (
    CONVERSATION_USER,
    FALLBACK_INITIAL_QUESTION,
    FALLBACK_THEME,
    INTERVIEW_SYSTEM,
    INTERVIEW_USER,
    KEYWORDS_SYSTEM,
    SUMMARY_SYSTEM,
    THEME_ANALYSIS_SYSTEM,
    THEME_ANALYSIS_USER,
)

logger = logging.getLogger(__name__)

_client = None


def get_client() -> OpenAI:
    global _client
    if _client is not None:
        return _client
    key = settings.api_key
    if not key:
        raise RuntimeError(
            "OPENAI_API_KEY is not set. "
            "Please add it to backend/.env (see backend/.env.example)"
        )
    _client = OpenAI(api_key=key)
    logger.info("OpenAI client initialized (key ending …%s)", key[-4:])
    return _client


def get_chat_model() -> ChatOpenAI:
    return ChatOpenAI(
        model=settings.openai_interview_model,
        api_key=settings.api_key,
        temperature=0.5,
        max_tokens=200,
    )


def _clean_json(text: str) -> str:
    text = text.strip()
    text = re.sub(r"^```(?:json)?\s*", "", text)
    text = re.sub(r"\s*```$", "", text)
    return text.strip()


def format_answers(questions: list[Question], choice_answers: list[ChoiceAnswer]) -> str:
    by_id = {a.question_id: a for a in choice_answers}
    blocks = []
    for i, q in enumerate(questions):
        answer = by_id.get(q.id)
        answer_text = answer.as_text() if answer else ""
        blocks.append(f"Q{i + 1}. {q.question_text}\nAnswer: {answer_text or '(no answer)'}")
    return "\n\n".join(blocks)


def format_conversation(history: list[ConversationMessage]) -> str:
    if not history:
        return "(no prior conversation)"
    return "\n".join(
        f"{'Interviewer' if m.role == 'ai' else 'Respondent'}: {m.content}" for m in history
    )


def _complete(system: str, user: str, *, json_mode: bool = False, max_tokens: int = 400) -> str:
    client = get_client()
    kwargs: dict[str, Any] = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    resp = client.chat.completions.create(
        model=settings.openai_analysis_model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        max_tokens=max_tokens,
        temperature=0.3,
        **kwargs,
    )
    return (resp.choices[0].message.content or "").strip()


def generate_theme(questions: list[Question], choice_answers: list[ChoiceAnswer]) -> dict[str, str]:
    """Pick the interview theme and opening question from the choice answers."""
    user_msg = THEME_ANALYSIS_USER.format(
        questions_and_answers=format_answers(questions, choice_answers),
    )
    logger.info("Generating interview theme from %d answers", len(choice_answers))
    text = _complete(THEME_ANALYSIS_SYSTEM, user_msg, json_mode=True)
    try:
        parsed = json.loads(_clean_json(text))
    except json.JSONDecodeError:
        # Some models wrap the object in prose despite JSON mode.
        m = re.search(r"\{[\s\S]*\}", text)
        try:
            parsed = json.loads(m.group(0)) if m else {}
        except json.JSONDecodeError:
            parsed = {}
    if not isinstance(parsed, dict):
        parsed = {}

    theme = str(parsed.get("theme") or "").strip()
    initial = str(parsed.get("initial_question") or parsed.get("initialQuestion") or "").strip()
    if not theme or not initial:
        logger.warning("Theme response unusable, using fallback: %s", text[:80])
        return {"theme": FALLBACK_THEME, "initial_question": FALLBACK_INITIAL_QUESTION}
    return {"theme": theme, "initial_question": initial}


def current_turn(history: list[ConversationMessage]) -> int:
    return len(history) // 2 + 1


def generate_next_question(
    history: list[ConversationMessage],
    theme: str,
    max_turns: Optional[int] = None,
) -> Optional[str]:
    """Next interviewer question, or None once the turn budget is spent."""
    max_turns = max_turns or settings.interview_max_turns
    turn = current_turn(history)
    if turn >= max_turns:
        logger.info("Interview reached turn %d/%d, ending", turn, max_turns)
        return None

    messages = [
        SystemMessage(content=INTERVIEW_SYSTEM.format(max_turns=max_turns, current_turn=turn)),
        HumanMessage(content=INTERVIEW_USER.format(
            theme=theme,
            conversation=format_conversation(history),
        )),
    ]
    result = get_chat_model().invoke(messages)
    question = (result.content or "").strip()
    logger.info("Next question (turn %d/%d): %s", turn, max_turns, question[:60])
    return question or None


def generate_summary(history: list[ConversationMessage]) -> str:
    user_msg = CONVERSATION_USER.format(conversation=format_conversation(history))
    return _complete(SUMMARY_SYSTEM, user_msg)


def extract_keywords(history: list[ConversationMessage]) -> list[str]:
    user_msg = CONVERSATION_USER.format(conversation=format_conversation(history))
    text = _complete(KEYWORDS_SYSTEM, user_msg, max_tokens=120)
    return [k.strip() for k in text.split(",") if k.strip()]
