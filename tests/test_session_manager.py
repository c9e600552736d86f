import threading
import time

import pytest

from models import ChoiceAnswer, Question, Survey
from services import openai_service, session_manager, storage


@pytest.fixture
def survey():
    return storage.save_survey(Survey(
        title="Commute",
        questions=[
            Question(type="radio", question_text="How do you travel?",
                     options=["Bus", "Bike", "Car"], required=True),
            Question(type="checkbox", question_text="What bothers you?",
                     options=["Traffic", "Cost", "Weather"]),
            Question(type="radio", question_text="Anything else?", options=[""]),
        ],
    ))


@pytest.fixture
def fake_ai(monkeypatch):
    calls = {"next": 0}

    def next_question(history, theme, max_turns=None):
        calls["next"] += 1
        return f"Follow-up {calls['next']}?"

    monkeypatch.setattr(openai_service, "generate_theme",
                        lambda qs, answers: {"theme": "Cycling in the rain", "initial_question": "Why the bike?"})
    monkeypatch.setattr(openai_service, "generate_next_question", next_question)
    monkeypatch.setattr(openai_service, "generate_summary", lambda history: "Rides a bike daily.")
    monkeypatch.setattr(openai_service, "extract_keywords", lambda history: ["bike", "rain"])
    return calls


def _answers(survey, travel="Bike", bothers=("Weather",)):
    q1, q2, _ = survey.questions
    return [
        ChoiceAnswer(question_id=q1.id, answer=travel),
        ChoiceAnswer(question_id=q2.id, answer=list(bothers)),
    ]


def test_validate_rejects_unknown_question(survey):
    with pytest.raises(session_manager.InvalidAnswers):
        session_manager.validate_answers(survey, [ChoiceAnswer(question_id="zzz", answer="Bus")])


def test_validate_requires_required_questions(survey):
    q2 = survey.questions[1]
    with pytest.raises(session_manager.InvalidAnswers, match="Required"):
        session_manager.validate_answers(survey, [ChoiceAnswer(question_id=q2.id, answer=["Cost"])])


def test_validate_rejects_options_not_offered(survey):
    with pytest.raises(session_manager.InvalidAnswers):
        session_manager.validate_answers(survey, _answers(survey, travel="Train"))
    with pytest.raises(session_manager.InvalidAnswers):
        session_manager.validate_answers(survey, _answers(survey, bothers=("Noise",)))


def test_validate_radio_takes_single_answer(survey):
    q1 = survey.questions[0]
    with pytest.raises(session_manager.InvalidAnswers):
        session_manager.validate_answers(survey, [ChoiceAnswer(question_id=q1.id, answer=["Bus"])])


def test_validate_placeholder_options_accept_free_text(survey):
    q3 = survey.questions[2]
    answers = _answers(survey) + [ChoiceAnswer(question_id=q3.id, answer="I walk sometimes")]
    session_manager.validate_answers(survey, answers)


def test_session_runs_until_turn_budget(survey, fake_ai, monkeypatch):
    def limited(history, theme, max_turns=None):
        return None if len(history) >= 4 else "Tell me more?"

    monkeypatch.setattr(openai_service, "generate_next_question", limited)

    session = session_manager.create_session(survey, _answers(survey))
    sid = session["session_id"]
    assert sid.startswith("session-")
    assert session["conversation"][0].content == "Why the bike?"

    first = session_manager.submit_reply(sid, "It is faster than the bus in traffic.")
    assert first == {"complete": False, "next_question": "Tell me more?"}

    done = session_manager.submit_reply(sid, "Mostly I enjoy the exercise on weekdays.")
    assert done["complete"] is True
    assert done["summary"] == "Rides a bike daily."
    assert done["keywords"] == ["bike", "rain"]

    [stored] = storage.get_responses_for_survey(survey.id)
    assert stored.id == done["response_id"]
    assert stored.session_id == sid
    assert stored.ai_theme == "Cycling in the rain"
    assert [m.role for m in stored.ai_conversation] == ["ai", "user", "ai", "user", "ai"]
    assert stored.ai_conversation[-1].content == session_manager.CLOSING_MESSAGE


@pytest.mark.parametrize("reply", ["nothing", "No.", "That's it", "n/a", "nope"])
def test_terminal_reply_ends_interview(survey, fake_ai, reply):
    sid = session_manager.create_session(survey, _answers(survey))["session_id"]
    result = session_manager.submit_reply(sid, reply)
    assert result["complete"] is True
    assert fake_ai["next"] == 0


def test_repeated_reply_ends_interview(survey, fake_ai):
    sid = session_manager.create_session(survey, _answers(survey))["session_id"]
    answer = "Cycling keeps me healthy and saves money every single month"
    assert session_manager.submit_reply(sid, answer)["complete"] is False
    assert session_manager.submit_reply(sid, answer)["complete"] is True


def test_closed_and_missing_sessions(survey, fake_ai):
    with pytest.raises(session_manager.SessionNotFound):
        session_manager.submit_reply("session-missing", "hello")

    sid = session_manager.create_session(survey, _answers(survey))["session_id"]
    session_manager.submit_reply(sid, "nothing")
    with pytest.raises(session_manager.SessionClosed):
        session_manager.submit_reply(sid, "one more thing")
    assert session_manager.get_session(sid)["complete"] is True


def test_failed_turn_can_be_retried_with_same_reply(survey, fake_ai, monkeypatch):
    sid = session_manager.create_session(survey, _answers(survey))["session_id"]
    reply = "Because the weather was lovely all through the spring"

    def broken(history, theme, max_turns=None):
        raise RuntimeError("model unavailable")

    monkeypatch.setattr(openai_service, "generate_next_question", broken)
    with pytest.raises(RuntimeError):
        session_manager.submit_reply(sid, reply)
    assert [m.role for m in session_manager.get_session(sid)["conversation"]] == ["ai"]

    monkeypatch.setattr(openai_service, "generate_next_question",
                        lambda history, theme, max_turns=None: "And in winter?")
    result = session_manager.submit_reply(sid, reply)
    assert result == {"complete": False, "next_question": "And in winter?"}
    contents = [m.content for m in session_manager.get_session(sid)["conversation"]]
    assert contents == ["Why the bike?", reply, "And in winter?"]


def test_failed_wrap_up_leaves_session_open(survey, fake_ai, monkeypatch):
    sid = session_manager.create_session(survey, _answers(survey))["session_id"]

    def broken(history):
        raise RuntimeError("model unavailable")

    monkeypatch.setattr(openai_service, "generate_summary", broken)
    with pytest.raises(RuntimeError):
        session_manager.submit_reply(sid, "nothing")
    session = session_manager.get_session(sid)
    assert session["complete"] is False
    assert len(session["conversation"]) == 1
    assert storage.get_responses() == []


def test_concurrent_final_replies_store_one_response(survey, fake_ai, monkeypatch):
    sid = session_manager.create_session(survey, _answers(survey))["session_id"]

    def slow_summary(history):
        time.sleep(0.2)
        return "Rides a bike daily."

    monkeypatch.setattr(openai_service, "generate_summary", slow_summary)

    results, errors = [], []

    def reply():
        try:
            results.append(session_manager.submit_reply(sid, "nothing"))
        except session_manager.SessionClosed as e:
            errors.append(e)

    threads = [threading.Thread(target=reply) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert len(results) == 1
    assert len(errors) == 1
    assert len(storage.get_responses_for_survey(survey.id)) == 1
