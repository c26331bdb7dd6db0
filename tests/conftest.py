"""Shared fixtures."""

from __future__ import annotations

import pytest

from tests.fakes import MemoryKeyValueStore, MockEngine


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def engine():
    return MockEngine()
