import json

import pytest

from models import ChoiceAnswer, ConversationMessage, Question
from prompts import FALLBACK_INITIAL_QUESTION, FALLBACK_THEME
from services import openai_service


class _FakeChat:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        return type("Result", (), {"content": self.reply})()


def _history(n_pairs):
    msgs = []
    for i in range(n_pairs):
        msgs.append(ConversationMessage(role="ai", content=f"Question {i}?"))
        msgs.append(ConversationMessage(role="user", content=f"Answer {i}."))
    return msgs


def test_format_answers_marks_unanswered():
    q1 = Question(type="radio", question_text="Colour?", options=["Red", "Blue"])
    q2 = Question(type="checkbox", question_text="Pets?", options=["Cat", "Dog"])
    text = openai_service.format_answers([q1, q2], [ChoiceAnswer(question_id=q1.id, answer="Red")])
    assert "Q1. Colour?\nAnswer: Red" in text
    assert "Q2. Pets?\nAnswer: (no answer)" in text


def test_generate_theme_parses_json(monkeypatch):
    reply = json.dumps({"theme": "Why blue wins", "initial_question": "What draws you to blue?"})
    monkeypatch.setattr(openai_service, "_complete", lambda *a, **kw: reply)
    assert openai_service.generate_theme([], []) == {
        "theme": "Why blue wins",
        "initial_question": "What draws you to blue?",
    }


def test_generate_theme_extracts_object_from_prose(monkeypatch):
    reply = 'Sure! {"theme": "T", "initial_question": "Q?"} Hope that helps.'
    monkeypatch.setattr(openai_service, "_complete", lambda *a, **kw: reply)
    assert openai_service.generate_theme([], [])["theme"] == "T"


@pytest.mark.parametrize("reply", ["no json here", '{"theme": ""}', "[1]"])
def test_generate_theme_falls_back(monkeypatch, reply):
    monkeypatch.setattr(openai_service, "_complete", lambda *a, **kw: reply)
    assert openai_service.generate_theme([], []) == {
        "theme": FALLBACK_THEME,
        "initial_question": FALLBACK_INITIAL_QUESTION,
    }


def test_next_question_stops_at_turn_limit_without_calling_model(monkeypatch):
    def boom():
        raise AssertionError("model should not be called")

    monkeypatch.setattr(openai_service, "get_chat_model", boom)
    # 4 full exchanges -> turn 5 of 5
    assert openai_service.generate_next_question(_history(4), "theme", max_turns=5) is None


def test_next_question_asks_model_before_limit(monkeypatch):
    chat = _FakeChat("  What happened next?  ")
    monkeypatch.setattr(openai_service, "get_chat_model", lambda: chat)
    question = openai_service.generate_next_question(_history(1), "Weekend plans", max_turns=5)
    assert question == "What happened next?"
    system, human = chat.calls[0]
    assert "turn 2 of 5" in system.content
    assert "Weekend plans" in human.content
    assert "Respondent: Answer 0." in human.content


def test_extract_keywords_splits_and_trims(monkeypatch):
    monkeypatch.setattr(openai_service, "_complete", lambda *a, **kw: " price, , service ,speed,")
    assert openai_service.extract_keywords(_history(1)) == ["price", "service", "speed"]


def test_get_client_requires_key(monkeypatch):
    from config import settings

    monkeypatch.setattr(openai_service, "_client", None)
    monkeypatch.setattr(settings, "openai_api_key", "  ")
    with pytest.raises(RuntimeError):
        openai_service.get_client()
