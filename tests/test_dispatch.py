from __future__ import annotations

import json
import logging

import pytest

from jsonsock.dispatch import Dispatcher
from jsonsock.handlers import HANDLERS, HandlerContext


@pytest.fixture()
def dispatcher() -> Dispatcher:
    return Dispatcher()


@pytest.mark.parametrize("payload", ["a", "", "{", "5", '"text"', "null", "true"])
def test_payload_that_is_not_an_object_or_array(dispatcher: Dispatcher, ctx: HandlerContext, payload: str) -> None:
    assert dispatcher.dispatch(payload, ctx) == {"ok": False, "message": "req not JSON"}


def test_json_array_is_not_a_request(dispatcher: Dispatcher, ctx: HandlerContext) -> None:
    assert dispatcher.dispatch('["echo"]', ctx) == {"ok": False, "message": "Invalid JSON format."}


def test_missing_type(dispatcher: Dispatcher, ctx: HandlerContext) -> None:
    assert dispatcher.dispatch('{"data": "x"}', ctx) == {"ok": False, "message": "No request type was given."}


def test_unsupported_type(dispatcher: Dispatcher, ctx: HandlerContext) -> None:
    res = dispatcher.dispatch('{"type": "multiply"}', ctx)
    assert res == {"ok": False, "message": "Type multiply is not supported.", "type": "multiply"}


def test_non_string_type_is_unsupported(dispatcher: Dispatcher, ctx: HandlerContext) -> None:
    res = dispatcher.dispatch('{"type": 5}', ctx)
    assert res["ok"] is False
    assert res["message"] == "Type 5 is not supported."


def test_routes_by_type_and_stamps_type_on_errors(dispatcher: Dispatcher, ctx: HandlerContext) -> None:
    res = dispatcher.dispatch(json.dumps({"type": "add", "num1": "20", "num2": "22"}), ctx)
    assert res == {"ok": True, "type": "add", "result": 42}
    res = dispatcher.dispatch(json.dumps({"type": "echo"}), ctx)
    assert res == {"ok": False, "type": "echo", "message": "Field data does not exist in request"}


def test_multiple_choice_keeps_request_type(dispatcher: Dispatcher, ctx: HandlerContext) -> None:
    req = {"question": "Q?", "options": ["a", "b"], "answer": 1}
    assert dispatcher.dispatch(json.dumps({"type": "quizgame", **req}), ctx)["type"] == "quizgame"
    assert dispatcher.dispatch(json.dumps({"type": "quiz", **req}), ctx)["type"] == "quiz"


def test_same_request_twice_gives_identical_responses(dispatcher: Dispatcher, ctx: HandlerContext) -> None:
    payload = json.dumps({"type": "add", "num1": "1", "num2": "2"})
    assert dispatcher.dispatch(payload, ctx) == dispatcher.dispatch(payload, ctx)


def test_handler_exception_becomes_internal_error(ctx: HandlerContext, caplog: pytest.LogCaptureFixture) -> None:
    def explode(req: dict, ctx: HandlerContext) -> dict:
        raise RuntimeError("boom")

    dispatcher = Dispatcher({**HANDLERS, "explode": explode})
    with caplog.at_level(logging.ERROR, logger="jsonsock.dispatch"):
        res = dispatcher.dispatch('{"type": "explode"}', ctx)

    assert res == {"ok": False, "type": "explode", "message": "Internal server error while processing request."}
    assert "boom" in caplog.text
    # the dispatcher keeps working afterwards
    assert dispatcher.dispatch('{"type": "echo", "data": "x"}', ctx)["ok"] is True


def test_nesting_too_deep_to_parse_is_not_json(dispatcher: Dispatcher, ctx: HandlerContext) -> None:
    assert dispatcher.dispatch("[" * 60000, ctx) == {"ok": False, "message": "req not JSON"}
    assert dispatcher.dispatch('{"a":' * 60000, ctx) == {"ok": False, "message": "req not JSON"}
