from typing import Any, Union


JSONValue = Union[str, int, float, bool, None, list[Any], dict[str, Any]]

# Requests and responses travel as plain JSON objects; keys are not fixed per operation.
Request = dict[str, JSONValue]
Response = dict[str, JSONValue]


