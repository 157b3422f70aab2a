"""Shared pytest fixtures for file-api tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
from fakes import FakeClock, FakeObjectStore, InMemoryFileRepository, fake_verify, make_record

from file_api.config import Settings
from file_api.context import RequestContext
from file_api.response import success_response


@pytest.fixture
def make_ctx() -> Any:
    """Factory for RequestContext values."""
    return RequestContext.build


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ok_handler() -> AsyncMock:
    """Inner handler returning a 200 success envelope."""
    return AsyncMock(return_value=success_response({"ok": True}))


@pytest.fixture
def verifier() -> AsyncMock:
    """Mock token verifier backed by ``fake_verify``."""
    return AsyncMock(side_effect=fake_verify)


@pytest.fixture
def repository() -> InMemoryFileRepository:
    return InMemoryFileRepository([make_record()])


@pytest.fixture
def storage() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        LOG_CONFIG_PATH="",
        S3_BUCKET_NAME="test-bucket",
        COGNITO_USER_POOL_ID="us-east-1_test",
    )
