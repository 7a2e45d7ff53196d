from __future__ import annotations

import threading

import pytest

from jsonsock.handlers import HandlerContext, handle_quiz_game
from jsonsock.quiz import DEFAULT_QUESTIONS, QuestionBank, QuizQuestion, QuizSession


def _quiz(ctx: HandlerContext, **fields: object) -> dict:
    return handle_quiz_game({"type": "quizgame", **fields}, ctx)


def test_bank_starts_with_seed_questions() -> None:
    assert QuestionBank().snapshot() == list(DEFAULT_QUESTIONS)


def test_request_question_draws_from_bank(ctx: HandlerContext) -> None:
    res = _quiz(ctx, addQuestion=False)
    assert res["ok"] is True
    assert res["type"] == "quizgame"
    assert res["question"] in {q.question_text for q in DEFAULT_QUESTIONS}
    assert ctx.session.current_question.question_text == res["question"]


def test_correct_answer_is_trimmed_and_case_insensitive(single_question_bank: QuestionBank) -> None:
    ctx = HandlerContext(QuizSession(), single_question_bank)
    _quiz(ctx, addQuestion=False)
    assert _quiz(ctx, answer="  pARIS ") == {"ok": True, "result": True, "type": "quizgame"}
    assert ctx.session.current_question is None


def test_wrong_answer_keeps_question_and_resends_it(single_question_bank: QuestionBank) -> None:
    ctx = HandlerContext(QuizSession(), single_question_bank)
    _quiz(ctx, addQuestion=False)
    res = _quiz(ctx, answer="London")
    assert res == {
        "ok": True,
        "type": "quizgame",
        "result": False,
        "question": "What is the capital of France?",
    }
    assert _quiz(ctx, answer="Paris")["result"] is True


def test_answer_without_active_question(ctx: HandlerContext) -> None:
    res = _quiz(ctx, answer="4")
    assert res["ok"] is False
    assert res["message"] == "No active quiz question. Please request a new question first."


def test_answer_after_correct_answer_needs_a_new_question(single_question_bank: QuestionBank) -> None:
    ctx = HandlerContext(QuizSession(), single_question_bank)
    _quiz(ctx, addQuestion=False)
    _quiz(ctx, answer="Paris")
    assert _quiz(ctx, answer="Paris")["ok"] is False


def test_answer_must_be_a_string_when_question_is_active(single_question_bank: QuestionBank) -> None:
    ctx = HandlerContext(QuizSession(), single_question_bank)
    _quiz(ctx, addQuestion=False)
    assert _quiz(ctx, answer=4)["message"] == "Field answer needs to be of type: String"


def test_add_question_grows_bank_without_touching_session(ctx: HandlerContext) -> None:
    res = _quiz(ctx, addQuestion=True, question="What is 3*3?", answer="9")
    assert res == {"ok": True, "type": "quizgame"}
    assert ctx.bank.snapshot()[-1] == QuizQuestion("What is 3*3?", "9")
    assert len(ctx.bank) == len(DEFAULT_QUESTIONS) + 1
    assert ctx.session.current_question is None


@pytest.mark.parametrize(
    ("fields", "message"),
    [
        ({"answer": "9"}, "Field question does not exist in request"),
        ({"question": "Q?"}, "Field answer does not exist in request"),
        ({"question": 3, "answer": "9"}, "Field question needs to be of type: String"),
        ({"question": "Q?", "answer": 9}, "Field answer needs to be of type: String"),
        ({"question": "   ", "answer": "9"}, "Field question must not be empty"),
    ],
)
def test_add_question_errors_leave_bank_unchanged(ctx: HandlerContext, fields: dict, message: str) -> None:
    before = len(ctx.bank)
    res = _quiz(ctx, addQuestion=True, **fields)
    assert res["ok"] is False
    assert res["message"] == message
    assert len(ctx.bank) == before


def test_add_question_flag_accepts_boolean_strings(ctx: HandlerContext) -> None:
    assert "question" in _quiz(ctx, addQuestion="false")
    assert _quiz(ctx, addQuestion="maybe")["message"] == "Field addQuestion needs to be of type: boolean"


def test_empty_bank() -> None:
    ctx = HandlerContext(QuizSession(), QuestionBank([]))
    res = _quiz(ctx, addQuestion=False)
    assert res == {"ok": False, "message": "No quiz questions available.", "type": "quizgame"}
    assert ctx.session.current_question is None


def test_request_without_add_question_or_answer(ctx: HandlerContext) -> None:
    assert _quiz(ctx)["message"] == "Invalid quizgame request. Must include 'addQuestion' or 'answer'."


def test_sessions_do_not_share_current_question(single_question_bank: QuestionBank) -> None:
    first = HandlerContext(QuizSession(), single_question_bank)
    second = HandlerContext(QuizSession(), single_question_bank)
    _quiz(first, addQuestion=False)
    assert _quiz(second, answer="Paris")["ok"] is False
    assert _quiz(first, answer="Paris")["result"] is True


def test_bank_rejects_blank_question_text() -> None:
    with pytest.raises(ValueError):
        QuestionBank([QuizQuestion("", "x")])


def test_concurrent_adds_are_not_lost() -> None:
    bank = QuestionBank([])

    def add_many(worker: int) -> None:
        for i in range(200):
            bank.add(QuizQuestion(f"q{worker}-{i}", "a"))

    threads = [threading.Thread(target=add_many, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(bank) == 1600
