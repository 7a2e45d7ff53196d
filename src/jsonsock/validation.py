"""
Field checks shared by every operation handler.

Checks return None when the request passes, otherwise a ready-made error response.
Handlers run them in a fixed order so the first failing field always decides the message.
"""
import re
from enum import Enum
from typing import Any

from ._types import Request, Response


_DECIMAL = re.compile(r"[+-]?[0-9]+")


class Kind(Enum):
    STRING = "String"
    INT = "int"
    BOOLEAN = "boolean"
    ARRAY = "JSON Array"


def error_response(message: str, **fields: Any) -> Response:
    return {"ok": False, "message": message, **fields}


def is_kind(value: Any, kind: Kind) -> bool:
    if kind is Kind.STRING:
        return isinstance(value, str)
    if kind is Kind.INT:
        # bool is a subclass of int, but true/false are not numbers on the wire
        return isinstance(value, int) and not isinstance(value, bool)
    if kind is Kind.BOOLEAN:
        return isinstance(value, bool)
    return isinstance(value, list)


def require_field(req: Request, name: str) -> Response | None:
    if name not in req:
        return error_response(f"Field {name} does not exist in request")
    return None


def require_type(req: Request, name: str, kind: Kind) -> Response | None:
    if not is_kind(req[name], kind):
        return error_response(f"Field {name} needs to be of type: {kind.value}")
    return None


def require_fields(req: Request, *names: str) -> Response | None:
    for name in names:
        error = require_field(req, name)
        if error is not None:
            return error
    return None


def require_types(req: Request, *checks: tuple[str, Kind]) -> Response | None:
    for name, kind in checks:
        error = require_type(req, name, kind)
        if error is not None:
            return error
    return None


def parse_int(value: Any) -> int:
    """
    Read an integer the way clients send them: as JSON numbers or as decimal strings ("42").
    Raises ValueError for anything else, booleans included.
    """
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not _DECIMAL.fullmatch(text):
            raise ValueError(f"{value!r} is not a decimal integer")
        return int(text)
    raise ValueError(f"{value!r} is not an integer")


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ValueError(f"{value!r} is not a boolean")
