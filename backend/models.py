"""Survey, question and response models shared by storage, routers and the interviewer."""
import uuid
from datetime import datetime, timezone
from typing import Literal, Union

from pydantic import BaseModel, Field

QuestionType = Literal["radio", "checkbox"]


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


def generate_session_id() -> str:
    return f"session-{uuid.uuid4().hex[:12]}"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Question(BaseModel):
    id: str = Field(default_factory=generate_id)
    survey_id: str = ""
    order: int = 0
    type: QuestionType
    question_text: str
    options: list[str] = Field(default_factory=lambda: [""])
    required: bool = False


class Survey(BaseModel):
    id: str = Field(default_factory=generate_id)
    title: str
    description: str = ""
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    is_active: bool = True
    questions: list[Question] = Field(default_factory=list)


class ChoiceAnswer(BaseModel):
    question_id: str
    answer: Union[str, list[str]]

    def as_text(self) -> str:
        if isinstance(self.answer, list):
            return ", ".join(self.answer)
        return self.answer or ""


class ConversationMessage(BaseModel):
    role: Literal["ai", "user"]
    content: str
    timestamp: str = Field(default_factory=utc_now)


class SurveyResponse(BaseModel):
    id: str = Field(default_factory=generate_id)
    survey_id: str
    submitted_at: str = Field(default_factory=utc_now)
    session_id: str = ""
    choice_answers: list[ChoiceAnswer] = Field(default_factory=list)
    ai_theme: str = ""
    ai_conversation: list[ConversationMessage] = Field(default_factory=list)
    ai_summary: str = ""
    ai_keywords: list[str] = Field(default_factory=list)
