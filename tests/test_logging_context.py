"""
Tests for the per-request trace id context.

Concurrent requests must never see each other's trace id in their logs.
"""

import asyncio
import logging

import pytest

from picture_api.core.logging_config import (
    BelowWarningFilter,
    add_app_context,
    clear_trace_id,
    get_logging_config,
    get_trace_id,
    set_trace_id,
)


@pytest.mark.unit
def test_trace_id_set_and_clear():
    set_trace_id("trace-123")
    assert get_trace_id() == "trace-123"

    clear_trace_id()
    assert get_trace_id() is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_trace_id_isolated_between_tasks():
    async def handle(trace_id: str, delay: float) -> str:
        set_trace_id(trace_id)
        await asyncio.sleep(delay)
        return get_trace_id()

    results = await asyncio.gather(
        handle("trace-1", 0.02),
        handle("trace-2", 0.01),
        handle("trace-3", 0.02),
    )

    assert results == ["trace-1", "trace-2", "trace-3"]


@pytest.mark.unit
def test_app_context_processor_adds_trace_id():
    set_trace_id("trace-xyz")
    try:
        event = add_app_context(None, "info", {"event": "picture_created"})
    finally:
        clear_trace_id()

    assert event["trace_id"] == "trace-xyz"
    assert event["service"] == "picture-api"

    assert "trace_id" not in add_app_context(None, "info", {"event": "startup"})


@pytest.mark.unit
def test_warnings_routed_to_stderr():
    config = get_logging_config(json_logs=True)
    below_warning = BelowWarningFilter()

    def record(level):
        return logging.LogRecord("picture_api", level, __file__, 1, "msg", None, None)

    assert config["handlers"]["stderr"]["level"] == "WARNING"
    assert below_warning.filter(record(logging.INFO))
    assert not below_warning.filter(record(logging.WARNING))
