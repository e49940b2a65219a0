"""Validators for index names, record identifiers and JSON documents."""

from __future__ import annotations

import json
import re
from typing import Any, Optional, Union

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError, ValidationError
from jsonschema.validators import validator_for

JSONInput = Union[bytes, bytearray, str]


class InvalidArgError(Exception):
    """An argument was rejected; compares equal by subject and reason."""

    def __init__(self, subj: str, reason: str) -> None:
        super().__init__(subj, reason)
        self.subj = subj
        self.reason = reason

    def __str__(self) -> str:
        return f"invalid {self.subj}: {self.reason}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InvalidArgError):
            return NotImplemented
        return (self.subj, self.reason) == (other.subj, other.reason)

    def __hash__(self) -> int:
        return hash((InvalidArgError, self.subj, self.reason))


class NotFoundError(Exception):
    """A requested entity does not exist; compares equal by subject."""

    def __init__(self, subj: str) -> None:
        super().__init__(subj)
        self.subj = subj

    def __str__(self) -> str:
        return f"{self.subj} is not found"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NotFoundError):
            return NotImplemented
        return self.subj == other.subj

    def __hash__(self) -> int:
        return hash((NotFoundError, self.subj))


class IndexNameValidator:
    """Checks that a string is an acceptable index name."""

    PATTERN = "^[a-zA-Z0-9.-]{1,255}$"

    def __init__(self) -> None:
        self._name_re = re.compile(self.PATTERN)

    def validate(self, s: str) -> None:
        """Raise InvalidArgError unless *s* is a valid index name."""
        if not s:
            raise InvalidArgError("index name", "must not be empty")
        if not self._name_re.fullmatch(s):
            raise InvalidArgError("index name", "must match the regexp " + self._name_re.pattern)
        if s.startswith(".") or s.endswith("."):
            raise InvalidArgError("index name", "must not start or end with a dot")
        if s.startswith("-") or s.endswith("-"):
            raise InvalidArgError("index name", "must not start or end with a dash")
        if ".." in s:
            raise InvalidArgError("index name", "must not contain consecutive dots")


class RecordIDValidator:
    """Checks that a string is an acceptable record identifier."""

    def validate(self, s: str) -> None:
        """Raise InvalidArgError if *s* is empty."""
        if not s:
            raise InvalidArgError("record id", "must not be empty")


class _SyntaxProblem(ValueError):
    pass


def _quote_char(c: str) -> str:
    if c == "'":
        return "'\\''"
    if c == '"':
        return "'\"'"
    if c.isprintable():
        return f"'{c}'"
    return "'" + c.encode("unicode_escape").decode("ascii") + "'"


def _reject_constant(name: str) -> Any:
    if name.startswith("-"):
        raise _SyntaxProblem(f"invalid character {_quote_char(name[1])} in numeric literal")
    raise _SyntaxProblem(f"invalid character {_quote_char(name[0])} looking for beginning of value")


def _enclosing(doc: str, pos: int) -> Optional[str]:
    """Return the innermost open bracket before *pos*, ignoring string contents."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for c in doc[:pos]:
        if in_string:
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c in "{[":
            stack.append(c)
        elif c in "}]" and stack:
            stack.pop()
    return stack[-1] if stack else None


def _describe_syntax_error(exc: json.JSONDecodeError) -> str:
    doc, pos, msg = exc.doc, exc.pos, exc.msg

    if msg.startswith("Illegal trailing comma"):
        pos += 1
        while pos < len(doc) and doc[pos] in " \t\r\n":
            pos += 1
        if pos >= len(doc):
            return "unexpected end of JSON input"
        if _enclosing(doc, pos) == "{":
            tail = "looking for beginning of object key string"
        else:
            tail = "looking for beginning of value"
        return f"invalid character {_quote_char(doc[pos])} {tail}"

    if pos >= len(doc) or msg.startswith("Unterminated string"):
        return "unexpected end of JSON input"

    if msg.startswith("Expecting property name"):
        tail = "looking for beginning of object key string"
    elif msg.startswith("Expecting value"):
        tail = "looking for beginning of value"
    elif msg.startswith("Expecting ':'"):
        tail = "after object key"
    elif msg.startswith("Expecting ','"):
        if _enclosing(doc, pos) == "[":
            tail = "after array element"
        else:
            tail = "after object key:value pair"
    elif msg.startswith("Extra data"):
        tail = "after top-level value"
    elif msg.startswith("Invalid control character"):
        tail = "in string literal"
    elif msg.startswith("Invalid \\"):
        tail = "in string escape code"
    else:
        return msg
    return f"invalid character {_quote_char(doc[pos])} {tail}"


def _decode(raw: JSONInput) -> Any:
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
    except UnicodeDecodeError as exc:
        raise _SyntaxProblem("invalid UTF-8 in JSON input") from exc
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise _SyntaxProblem(_describe_syntax_error(exc)) from exc


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "integer" if value.is_integer() else "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _describe_validation_error(error: ValidationError) -> str:
    field = ".".join(str(part) for part in error.absolute_path) or "(root)"

    if error.validator == "type":
        expected = error.validator_value
        if isinstance(expected, list):
            expected = "/".join(expected)
        description = f"Invalid type. Expected: {expected}, given: {_json_type(error.instance)}"
    elif error.validator == "required" and isinstance(error.instance, dict):
        missing = next(
            (name for name in error.validator_value if name not in error.instance),
            None,
        )
        description = f"{missing} is required" if missing is not None else error.message
    else:
        description = error.message

    return f"{field}: {description}"


class JSONValidator:
    """Validates JSON documents against an optional JSON schema."""

    def validate(self, schema: Optional[JSONInput], data: Optional[JSONInput]) -> Any:
        """Check *data* against *schema* and return the decoded document.

        A missing schema accepts any well-formed document.
        """
        if not data:
            raise InvalidArgError("json", "empty")

        if schema is None:
            schema = "{}"

        try:
            schema_doc = _decode(schema)
            validator_cls = validator_for(schema_doc, default=Draft7Validator)
            validator_cls.check_schema(schema_doc)
            document = _decode(data)
        except _SyntaxProblem as exc:
            raise InvalidArgError("json schema or data", str(exc)) from exc
        except SchemaError as exc:
            raise InvalidArgError("json schema or data", exc.message) from exc

        first_error = next(iter(validator_cls(schema_doc).iter_errors(document)), None)
        if first_error is not None:
            raise InvalidArgError("json", _describe_validation_error(first_error))

        return document