# handlers.py

import logging
from typing import Callable, Dict

from ._types import Request, Response
from .quiz import NO_ACTIVE_QUESTION, QuestionBank, QuizQuestion, QuizSession
from .validation import (
    Kind,
    error_response,
    parse_bool,
    parse_int,
    require_field,
    require_fields,
    require_type,
    require_types,
)

logger = logging.getLogger(__name__)


class HandlerContext:
    """Everything a handler may touch besides the request itself."""

    def __init__(self, session: QuizSession, bank: QuestionBank):
        self.session = session
        self.bank = bank


def handle_echo(req: Request, ctx: HandlerContext) -> Response:
    """
    Handle echo requests.
    Return the data string prefixed with a fixed greeting.
    """
    logger.info("Processing echo request: %s", req)
    error = require_field(req, "data") or require_type(req, "data", Kind.STRING)
    if error:
        return error
    return {"ok": True, "type": "echo", "echo": "Here is your echo: " + req["data"]}


def handle_add(req: Request, ctx: HandlerContext) -> Response:
    """
    Handle add requests (num1 + num2).
    Both operands usually arrive as decimal strings; a single message covers either one failing to parse.
    """
    logger.info("Processing add request: %s", req)
    error = require_fields(req, "num1", "num2")
    if error:
        return error
    try:
        result = parse_int(req["num1"]) + parse_int(req["num2"])
    except ValueError:
        return error_response("Field num1/num2 needs to be of type: int")
    return {"ok": True, "type": "add", "result": result}


def handle_addmany(req: Request, ctx: HandlerContext) -> Response:
    """
    Handle addmany requests: sum every entry of the nums array.
    One bad entry fails the whole request, no partial sum is returned.
    """
    logger.info("Processing addmany request: %s", req)
    error = require_field(req, "nums") or require_type(req, "nums", Kind.ARRAY)
    if error:
        return error
    result = 0
    for value in req["nums"]:
        try:
            result += parse_int(value)
        except ValueError:
            return error_response("Values in array need to be ints")
    return {"ok": True, "type": "addmany", "result": result}


def handle_string_concatenation(req: Request, ctx: HandlerContext) -> Response:
    """
    Handle stringconcatenation requests.
    Two request shapes are accepted: a "strings" array, or the pair string1/string2.
    """
    if "strings" in req:
        return _concatenate_list(req)
    logger.info("Processing stringconcatenation request: %s", req)
    error = require_fields(req, "string1", "string2") or require_types(
        req, ("string1", Kind.STRING), ("string2", Kind.STRING)
    )
    if error:
        return error
    return {"ok": True, "type": "stringconcatenation", "result": req["string1"] + req["string2"]}


def _concatenate_list(req: Request) -> Response:
    logger.info("Processing concatenation request: %s", req)
    error = require_type(req, "strings", Kind.ARRAY)
    if error:
        return error
    parts = req["strings"]
    if not all(isinstance(part, str) for part in parts):
        return error_response("All elements in strings must be of type: String")
    return {"ok": True, "type": "stringconcatenation", "result": "".join(parts)}


def handle_quiz_game(req: Request, ctx: HandlerContext) -> Response:
    """
    Handle quizgame requests against this connection's quiz session.

    addQuestion=true   add question/answer to the shared bank
    addQuestion=false  ask for a random question from the bank
    answer             answer the question that is currently outstanding

    A request carrying "options" is the stateless multiple choice variant instead.
    """
    if "options" in req:
        return handle_multiple_choice(req, ctx)
    logger.info("Processing quizgame request: %s", req)
    response = _quiz_game(req, ctx)
    response["type"] = "quizgame"
    return response


def _quiz_game(req: Request, ctx: HandlerContext) -> Response:
    if "addQuestion" in req:
        try:
            add_question = parse_bool(req["addQuestion"])
        except ValueError:
            return error_response(f"Field addQuestion needs to be of type: {Kind.BOOLEAN.value}")
        if not add_question:
            return ctx.session.next_question(ctx.bank)

        error = require_fields(req, "question", "answer") or require_types(
            req, ("question", Kind.STRING), ("answer", Kind.STRING)
        )
        if error:
            return error
        if not req["question"].strip():
            return error_response("Field question must not be empty")
        ctx.bank.add(QuizQuestion(req["question"], req["answer"]))
        logger.info("Added quiz question %r, bank now holds %d", req["question"], len(ctx.bank))
        return {"ok": True}

    if "answer" in req:
        # with no question outstanding the answer's type is irrelevant
        if not ctx.session.active:
            return error_response(NO_ACTIVE_QUESTION)
        error = require_type(req, "answer", Kind.STRING)
        if error:
            return error
        return ctx.session.answer(req["answer"])

    return error_response("Invalid quizgame request. Must include 'addQuestion' or 'answer'.")


def handle_multiple_choice(req: Request, ctx: HandlerContext) -> Response:
    """
    Handle the multiple choice quiz: the client sends a question, its options and the index it picked.
    Nothing is looked up; the index is range checked and echoed back.
    """
    logger.info("Processing quiz request: %s", req)
    error = require_fields(req, "question", "options", "answer") or require_types(
        req, ("question", Kind.STRING), ("options", Kind.ARRAY)
    )
    if error:
        return error
    try:
        answer = parse_int(req["answer"])
    except ValueError:
        return error_response(f"Field answer needs to be of type: {Kind.INT.value}")
    if not 0 <= answer < len(req["options"]):
        return error_response("Answer is not in range of options")
    return {"ok": True, "result": answer}


# map request types to handler functions
HANDLERS: Dict[str, Callable[[Request, HandlerContext], Response]] = {
    "echo": handle_echo,
    "add": handle_add,
    "addmany": handle_addmany,
    "stringconcatenation": handle_string_concatenation,
    "quizgame": handle_quiz_game,
    "quiz": handle_multiple_choice,
}
