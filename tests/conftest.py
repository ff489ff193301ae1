"""
Pytest configuration for the agenty test suite.

Async tests are marked with ``@pytest.mark.anyio`` and run on asyncio only.
"""

import os

import pytest


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep developer ``AGENTY_*`` variables and ``.env`` files out of tests."""
    for key in list(os.environ):
        if key.startswith("AGENTY_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
