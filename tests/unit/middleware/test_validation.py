"""Tests for schema validation and the ValidateRequest middleware."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fakes import echo_handler

from file_api.middleware.validation import (
    FieldSpec,
    ValidateRequest,
    rules,
    validate_field,
    validate_schema,
)


class TestValidateField:
    @pytest.mark.parametrize(
        ("value", "spec", "expected"),
        [
            (None, FieldSpec("string", required=True), "name is required"),
            ("", FieldSpec("string", required=True), "name is required"),
            (None, FieldSpec("string"), None),
            (5, FieldSpec("string"), "name must be of type string"),
            (True, FieldSpec("number"), "name must be of type number"),
            ("ab", FieldSpec("string", min=3), "name must be at least 3 characters"),
            ("abcdef", FieldSpec("string", max=5), "name must be at most 5 characters"),
            ("abc1", FieldSpec("string", pattern=r"^[a-z]+$"), "name does not match required pattern"),
            (0, FieldSpec("number", min=1), "name must be at least 1"),
            (10.5, FieldSpec("number", max=10), "name must be at most 10"),
            ("c", FieldSpec("string", enum=["a", "b"]), "name must be one of: a, b"),
            ("ok", FieldSpec("string", min=1, max=5), None),
        ],
    )
    def test_messages(self, value: Any, spec: FieldSpec, expected: str | None) -> None:
        assert validate_field("name", value, spec) == expected

    def test_custom_message_overrides(self) -> None:
        spec = FieldSpec("string", required=True, message="Give it a name")
        assert validate_field("name", None, spec) == "Give it a name"

    def test_array_items(self) -> None:
        spec = FieldSpec("array", items=FieldSpec("number"))
        assert validate_field("ids", [1, 2], spec) is None
        assert validate_field("ids", [1, "x"], spec) == "ids[1] must be of type number"

    def test_nested_object(self) -> None:
        spec = FieldSpec("object", schema={"city": FieldSpec("string", required=True)})
        assert validate_field("address", {"city": "Oslo"}, spec) is None
        assert validate_field("address", {}, spec) == "city is required"

    def test_rule_message_and_default(self) -> None:
        assert validate_field("email", "nope", FieldSpec("string", rules=[rules.email()])) == (
            "Must be a valid email address"
        )
        assert validate_field("x", "v", FieldSpec("string", rules=[lambda v: False])) == (
            "x is invalid"
        )

    def test_unknown_type_name_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            FieldSpec("date")


class TestRules:
    def test_email(self) -> None:
        assert rules.email()("a@b.co") is True

    def test_url(self) -> None:
        assert rules.url()("https://example.com/x") is True
        assert rules.url()("example.com") == "Must be a valid URL"

    def test_uuid(self) -> None:
        assert rules.uuid()("0b7e6f1c-3c59-4d1e-9a76-2f6f1f0c9a11") is True
        assert rules.uuid()("1234") == "Must be a valid UUID"

    def test_alphanumeric(self) -> None:
        assert rules.alphanumeric()("abc123") is True
        assert rules.alphanumeric()("abc-123") == "Must contain only letters and numbers"

    def test_matches(self) -> None:
        assert rules.matches(r"^\d+$")("123") is True
        assert rules.matches(r"^\d+$", "digits only")("12a") == "digits only"


class TestValidateSchema:
    SCHEMA = {"name": FieldSpec("string", required=True), "age": FieldSpec("number")}

    def test_collects_every_error(self) -> None:
        result = validate_schema({"age": "old"}, self.SCHEMA)
        assert result.is_valid is False
        assert result.errors == ["name is required", "age must be of type number"]

    def test_unknown_fields(self) -> None:
        result = validate_schema({"name": "a", "extra": 1}, self.SCHEMA)
        assert result.errors == ["Unknown field: extra"]

    def test_allow_additional_keeps_unknown(self) -> None:
        result = validate_schema({"name": "a", "extra": 1}, self.SCHEMA, allow_additional=True)
        assert result.is_valid
        assert result.value == {"name": "a", "extra": 1}

    def test_strip_unknown_drops_them(self) -> None:
        result = validate_schema({"name": "a", "extra": 1}, self.SCHEMA, strip_unknown=True)
        assert result.is_valid
        assert result.value == {"name": "a"}


class TestValidateRequest:
    BODY = {"fileName": FieldSpec("string", required=True, max=255)}

    async def test_valid_body_reaches_handler_in_state(self, make_ctx: Any) -> None:
        handler = ValidateRequest(body=self.BODY)(echo_handler)

        response = await handler(make_ctx("POST", "/x", body=json.dumps({"fileName": "a.txt"})))

        assert response.status_code == 200
        assert response.json()["data"]["body"] == {"fileName": "a.txt"}

    async def test_invalid_json(self, make_ctx: Any, ok_handler: AsyncMock) -> None:
        handler = ValidateRequest(body=self.BODY)(ok_handler)

        response = await handler(make_ctx("POST", "/x", body="{not json"))

        assert response.status_code == 400
        assert response.json() == {"error": "VALIDATION_ERROR", "message": "Body: Invalid JSON"}
        ok_handler.assert_not_awaited()

    async def test_non_object_body(self, make_ctx: Any, ok_handler: AsyncMock) -> None:
        handler = ValidateRequest(body=self.BODY)(ok_handler)
        response = await handler(make_ctx("POST", "/x", body="[1, 2]"))
        assert response.json()["message"] == "Body: must be of type object"

    async def test_errors_are_prefixed_and_joined(
        self, make_ctx: Any, ok_handler: AsyncMock
    ) -> None:
        handler = ValidateRequest(
            body=self.BODY,
            query={"limit": FieldSpec("string", pattern=r"^\d+$")},
            headers={"x-api-key": FieldSpec("string", required=True)},
        )(ok_handler)

        response = await handler(
            make_ctx("POST", "/x", body="{}", query_params={"limit": "ten"})
        )

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Body: fileName is required; "
            "Query: limit does not match required pattern; "
            "Headers: x-api-key is required"
        )

    async def test_header_names_match_lowercase(
        self, make_ctx: Any, ok_handler: AsyncMock
    ) -> None:
        handler = ValidateRequest(headers={"x-api-key": FieldSpec("string", required=True)})(
            ok_handler
        )
        response = await handler(make_ctx(headers={"X-Api-Key": "k"}))
        assert response.status_code == 200

    async def test_empty_body_and_query_are_not_checked(
        self, make_ctx: Any, ok_handler: AsyncMock
    ) -> None:
        handler = ValidateRequest(body=self.BODY, query={"q": FieldSpec("string", required=True)})(
            ok_handler
        )
        response = await handler(make_ctx("GET", "/x"))
        assert response.status_code == 200
