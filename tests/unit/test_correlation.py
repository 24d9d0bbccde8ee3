"""
Unit tests for correlation module.

Tests correlation ID generation, context management, and async context variable operations.
"""

from __future__ import annotations

import asyncio
import contextvars
import uuid
from collections.abc import Generator

import pytest

from zk_attendance.correlation import (
    correlation_context,
    ensure_correlation_id,
    generate_correlation_id,
    get_correlation_id,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def no_correlation_id() -> Generator[None]:
    with correlation_context(auto_generate=False):
        yield


class TestGenerateCorrelationId:
    """Tests for generate_correlation_id function"""

    def test_generates_unique_ids(self):
        ids = [generate_correlation_id() for _ in range(10)]

        assert len(set(ids)) == len(ids)

    def test_generates_uuid7(self):
        corr_id = generate_correlation_id()

        assert uuid.UUID(corr_id).version == 7

    def test_ids_sort_by_creation(self):
        first = generate_correlation_id()
        second = generate_correlation_id()

        assert first[:8] <= second[:8]


class TestGetCorrelationId:
    """Tests for get_correlation_id function"""

    def test_get_returns_none_initially(self):
        assert get_correlation_id() is None

    def test_get_inside_context(self):
        with correlation_context("attendance-sync"):
            assert get_correlation_id() == "attendance-sync"


class TestCorrelationContext:
    """Tests for correlation_context context manager"""

    def test_auto_generates_id(self):
        with correlation_context() as corr_id:
            assert corr_id is not None
            assert get_correlation_id() == corr_id

    def test_uses_provided_id(self):
        with correlation_context("fixed-id") as corr_id:
            assert corr_id == "fixed-id"

    def test_restores_previous_id(self):
        with correlation_context("outer"):
            with correlation_context("inner"):
                assert get_correlation_id() == "inner"

            assert get_correlation_id() == "outer"

    def test_restores_after_exception(self):
        with correlation_context("outer"):
            with pytest.raises(RuntimeError), correlation_context("inner"):
                raise RuntimeError("boom")

            assert get_correlation_id() == "outer"

    def test_no_auto_generate(self):
        with correlation_context(auto_generate=False) as corr_id:
            assert corr_id is None
            assert get_correlation_id() is None

    def test_reusing_current_id_keeps_it(self):
        with correlation_context("cli-run"), correlation_context(get_correlation_id()) as corr_id:
            assert corr_id == "cli-run"


class TestEnsureCorrelationId:
    """Tests for ensure_correlation_id function"""

    def test_creates_when_missing(self):
        context = contextvars.copy_context()

        corr_id = context.run(ensure_correlation_id)

        assert uuid.UUID(corr_id).version == 7
        assert context.run(get_correlation_id) == corr_id
        assert get_correlation_id() is None

    def test_keeps_existing(self):
        with correlation_context("existing"):
            assert ensure_correlation_id() == "existing"


class TestAsyncIsolation:
    """Correlation ids do not leak between tasks"""

    @pytest.mark.asyncio
    async def test_tasks_have_separate_ids(self):
        async def worker(name: str) -> str | None:
            with correlation_context(name):
                await asyncio.sleep(0.01)
                return get_correlation_id()

        results = await asyncio.gather(worker("first"), worker("second"))

        assert results == ["first", "second"]
        assert get_correlation_id() is None
