"""
Quiz game state.

The question bank is shared by every connection for the lifetime of the process and only grows.
Each connection gets its own QuizSession holding the question it was last asked, so one client
answering never clears another client's question.
"""
import logging
import random
import threading
from typing import Iterable, NamedTuple

from ._types import Response
from .validation import error_response

logger = logging.getLogger(__name__)

NO_QUESTIONS = "No quiz questions available."
NO_ACTIVE_QUESTION = "No active quiz question. Please request a new question first."


class QuizQuestion(NamedTuple):
    question_text: str
    answer: str


DEFAULT_QUESTIONS = (
    QuizQuestion("What is 2+2?", "4"),
    QuizQuestion("What is the capital of France?", "Paris"),
)


class QuestionBank:
    """Append-only list of questions, safe to share between connection handlers."""

    def __init__(self, questions: Iterable[QuizQuestion] = DEFAULT_QUESTIONS, rng: random.Random | None = None):
        self._lock = threading.Lock()
        self._questions: list[QuizQuestion] = []
        self._rng = rng or random.Random()
        for question in questions:
            self.add(question)

    def add(self, question: QuizQuestion) -> None:
        if not question.question_text.strip():
            raise ValueError("question text must not be empty")
        with self._lock:
            self._questions.append(question)

    def pick(self) -> QuizQuestion | None:
        with self._lock:
            if not self._questions:
                return None
            return self._rng.choice(self._questions)

    def snapshot(self) -> list[QuizQuestion]:
        with self._lock:
            return list(self._questions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._questions)


class QuizSession:
    """
    Per-connection quiz state: either idle (current_question is None) or waiting for an
    answer to current_question.
    """

    def __init__(self):
        self.current_question: QuizQuestion | None = None

    @property
    def active(self) -> bool:
        return self.current_question is not None

    def next_question(self, bank: QuestionBank) -> Response:
        question = bank.pick()
        if question is None:
            return error_response(NO_QUESTIONS)
        self.current_question = question
        return {"ok": True, "question": question.question_text}

    def answer(self, answer: str) -> Response:
        question = self.current_question
        if question is None:
            return error_response(NO_ACTIVE_QUESTION)
        correct = answer.strip().casefold() == question.answer.strip().casefold()
        if not correct:
            logger.info("Quiz answer incorrect: %r", answer)
            return {"ok": True, "result": False, "question": question.question_text}
        logger.info("Quiz answer correct: %r", answer)
        self.current_question = None
        return {"ok": True, "result": True}
