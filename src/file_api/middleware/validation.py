"""Declarative request validation for JSON bodies, query strings and headers."""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from file_api._types import Handler
from file_api.component import Component
from file_api.context import RequestContext
from file_api.exceptions import ValidationError
from file_api.logging_config import get_logger
from file_api.response import Response, error_response_for

logger = get_logger(__name__)

# A rule returns True when the value passes, or an error message (False uses
# the field's default message).
Rule = Callable[[Any], "bool | str"]

_TYPE_NAMES = ("string", "number", "boolean", "object", "array")


@dataclass(frozen=True)
class FieldSpec:
    type: str
    required: bool = False
    min: float | None = None
    max: float | None = None
    pattern: str | re.Pattern[str] | None = None
    enum: Sequence[Any] | None = None
    rules: Sequence[Rule] = ()
    schema: Mapping[str, FieldSpec] | None = None
    items: FieldSpec | None = None
    message: str | None = None

    def __post_init__(self) -> None:
        if self.type not in _TYPE_NAMES:
            raise ValueError(f"Unknown field type: {self.type}")


Schema = Mapping[str, FieldSpec]


@dataclass
class SchemaResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    value: dict[str, Any] = field(default_factory=dict)


def _type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def validate_field(name: str, value: Any, spec: FieldSpec) -> str | None:
    """Return the first error for ``value`` or None when it is valid."""
    if spec.required and (value is None or value == ""):
        return spec.message or f"{name} is required"
    if value is None:
        return None

    if _type_name(value) != spec.type:
        return spec.message or f"{name} must be of type {spec.type}"

    if spec.type == "string":
        if spec.min is not None and len(value) < spec.min:
            return spec.message or f"{name} must be at least {_format_bound(spec.min)} characters"
        if spec.max is not None and len(value) > spec.max:
            return spec.message or f"{name} must be at most {_format_bound(spec.max)} characters"
        if spec.pattern is not None and not re.search(spec.pattern, value):
            return spec.message or f"{name} does not match required pattern"

    if spec.type == "number":
        if spec.min is not None and value < spec.min:
            return spec.message or f"{name} must be at least {_format_bound(spec.min)}"
        if spec.max is not None and value > spec.max:
            return spec.message or f"{name} must be at most {_format_bound(spec.max)}"

    if spec.enum is not None and value not in spec.enum:
        allowed = ", ".join(str(v) for v in spec.enum)
        return spec.message or f"{name} must be one of: {allowed}"

    if spec.type == "array" and spec.items is not None:
        for index, item in enumerate(value):
            error = validate_field(f"{name}[{index}]", item, spec.items)
            if error:
                return error

    if spec.type == "object" and spec.schema is not None:
        nested = validate_schema(value, spec.schema, allow_additional=True)
        if not nested.is_valid:
            return ", ".join(nested.errors)

    for rule in spec.rules:
        outcome = rule(value)
        if outcome is not True:
            if isinstance(outcome, str):
                return outcome
            return spec.message or f"{name} is invalid"

    return None


def validate_schema(
    data: Mapping[str, Any],
    schema: Schema,
    *,
    allow_additional: bool = False,
    strip_unknown: bool = False,
) -> SchemaResult:
    """Validate ``data`` field by field, collecting every error.

    Keys absent from ``schema`` are errors unless ``allow_additional`` (kept
    in the result) or ``strip_unknown`` (dropped) is set.
    """
    result = SchemaResult(is_valid=True)

    for name, spec in schema.items():
        value = data.get(name)
        error = validate_field(name, value, spec)
        if error:
            result.errors.append(error)
        elif name in data:
            result.value[name] = value

    for key, value in data.items():
        if key in schema:
            continue
        if allow_additional:
            result.value[key] = value
        elif not strip_unknown:
            result.errors.append(f"Unknown field: {key}")

    result.is_valid = not result.errors
    return result


class rules:
    """Factories for common string rules."""

    _EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    _UUID_RE = re.compile(
        r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
    )
    _ALNUM_RE = re.compile(r"^[a-zA-Z0-9]+$")

    @staticmethod
    def email() -> Rule:
        return lambda value: bool(rules._EMAIL_RE.match(value)) or "Must be a valid email address"

    @staticmethod
    def url() -> Rule:
        def check(value: str) -> bool | str:
            parsed = urlparse(value)
            return bool(parsed.scheme and parsed.netloc) or "Must be a valid URL"

        return check

    @staticmethod
    def uuid() -> Rule:
        return lambda value: bool(rules._UUID_RE.match(value)) or "Must be a valid UUID"

    @staticmethod
    def alphanumeric() -> Rule:
        return lambda value: (
            bool(rules._ALNUM_RE.match(value)) or "Must contain only letters and numbers"
        )

    @staticmethod
    def matches(pattern: str | re.Pattern[str], message: str | None = None) -> Rule:
        return lambda value: (
            bool(re.search(pattern, value)) or message or "Does not match required pattern"
        )


class ValidateRequest(Component):
    """Rejects requests whose body, query or headers fail their schemas.

    Header names are matched lowercase. A valid JSON body is made available
    to the handler as ``ctx.state["body"]``.
    """

    def __init__(
        self,
        *,
        body: Schema | None = None,
        query: Schema | None = None,
        headers: Schema | None = None,
        allow_additional: bool = False,
        strip_unknown: bool = False,
    ) -> None:
        self._body = body
        self._query = query
        self._headers = headers
        self._allow_additional = allow_additional
        self._strip_unknown = strip_unknown

    async def dispatch(self, ctx: RequestContext, call_next: Handler) -> Response:
        errors: list[str] = []
        validated_body: dict[str, Any] | None = None

        if self._body is not None and ctx.body:
            try:
                data = json.loads(ctx.body)
            except (json.JSONDecodeError, UnicodeDecodeError):
                errors.append("Body: Invalid JSON")
            else:
                if isinstance(data, dict):
                    result = validate_schema(
                        data,
                        self._body,
                        allow_additional=self._allow_additional,
                        strip_unknown=self._strip_unknown,
                    )
                    errors.extend(f"Body: {e}" for e in result.errors)
                    validated_body = result.value
                else:
                    errors.append("Body: must be of type object")

        if self._query is not None and ctx.query_params:
            result = validate_schema(
                ctx.query_params,
                self._query,
                allow_additional=self._allow_additional,
                strip_unknown=self._strip_unknown,
            )
            errors.extend(f"Query: {e}" for e in result.errors)

        if self._headers is not None:
            result = validate_schema(dict(ctx.headers), self._headers, allow_additional=True)
            errors.extend(f"Headers: {e}" for e in result.errors)

        if errors:
            logger.warning("Validation failed", extra={"errors": errors})
            return error_response_for(ValidationError("; ".join(errors)))

        if validated_body is not None:
            ctx = ctx.with_state(body=validated_body)
        return await call_next(ctx)
