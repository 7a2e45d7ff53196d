import json
import logging
from typing import Callable, Mapping

from ._types import Request, Response
from .handlers import HANDLERS, HandlerContext
from .validation import error_response

logger = logging.getLogger(__name__)

NOT_JSON = "req not JSON"
NOT_AN_OBJECT = "Invalid JSON format."
NO_TYPE = "No request type was given."
INTERNAL_ERROR = "Internal server error while processing request."

Handler = Callable[[Request, HandlerContext], Response]


class Dispatcher:
    """
    Turns one decoded payload into one response.

    Every failure short of a broken stream ends up as an {"ok": false, "message": ...} response,
    so the connection loop can always write something back and keep reading.
    """

    def __init__(self, handlers: Mapping[str, Handler] = HANDLERS):
        self.handlers = handlers

    def dispatch(self, payload: str, ctx: HandlerContext) -> Response:
        try:
            req = json.loads(payload)
        except (ValueError, RecursionError):
            return error_response(NOT_JSON)

        if isinstance(req, list):
            logger.error("Request is a JSON array, expected an object: %s", payload)
            return error_response(NOT_AN_OBJECT)
        if not isinstance(req, dict):
            return error_response(NOT_JSON)

        if "type" not in req:
            logger.warning("No type in request: %s", req)
            return error_response(NO_TYPE)

        req_type = req["type"]
        type_name = req_type if isinstance(req_type, str) else json.dumps(req_type)
        handler = self.handlers.get(req_type) if isinstance(req_type, str) else None
        if handler is None:
            logger.warning("Wrong type request received: %s", req)
            return error_response(f"Type {type_name} is not supported.", type=type_name)

        try:
            response = handler(req, ctx)
        except Exception as exc:
            logger.error("Exception processing %s request: %s", type_name, exc, exc_info=exc)
            response = error_response(INTERNAL_ERROR)
        response.setdefault("type", type_name)
        return response
