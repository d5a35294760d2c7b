"""
Shared pytest fixtures for backend tests.
Each test gets a fresh in-memory store and a fixed clock.
"""
import asyncio
import pytest
import sys
import os
from datetime import datetime, timezone

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from assistant import Assistant, CapabilityUnavailable
from dispatcher import Dispatcher
from store import TaskStore


NOW = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)


class StubAssistant(Assistant):
    """Records calls and replies with canned values instead of calling a model."""

    def __init__(self, suggestion=None, reply="Stub reply", error=None, delay=0.0):
        self.suggestion = suggestion
        self.reply = reply
        self.error = error
        self.delay = delay
        self.enhance_calls = []
        self.respond_calls = []

    async def _maybe_fail(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error

    async def enhance(self, raw_message, current, today):
        self.enhance_calls.append((raw_message, current, today))
        await self._maybe_fail()
        return self.suggestion

    async def respond(self, message, context, today):
        self.respond_calls.append((message, context, today))
        await self._maybe_fail()
        return self.reply


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return TaskStore()


@pytest.fixture
def make_dispatcher(store):
    """Build a dispatcher over the test store with an optional stub assistant."""
    def _make(assistant=None, timeout=1.0):
        return Dispatcher(store, assistant, timeout=timeout)
    return _make


@pytest.fixture
def unavailable():
    return CapabilityUnavailable("model offline")


@pytest.fixture
def app_client(store, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Swaps the module-level store and dispatcher for fresh ones.
    """
    from fastapi.testclient import TestClient
    import main

    monkeypatch.setattr(main, "store", store)
    monkeypatch.setattr(main, "dispatcher", Dispatcher(store, None))

    with TestClient(main.app) as client:
        yield client
