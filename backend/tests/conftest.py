"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths for the backend package and the
    in-memory fakes, plus fixtures for a seeded store and a scripted provider.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_TESTS_DIR = _THIS_FILE.parent
_BACKEND_DIR = _THIS_FILE.parents[1]

for candidate in (str(_BACKEND_DIR), str(_TESTS_DIR)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

from _fakes import FakeProvider, MemoryDocumentStore  # noqa: E402


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
