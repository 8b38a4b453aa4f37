"""
tests/conftest.py

Pytest configuration and shared fixtures for the airdrop-store test suite.

Unit tests run against ``tests.helpers.FakeStore``, an in-memory stand-in that
enforces the same transaction and upsert semantics the loader relies on.
Tests marked ``integration`` need a real Postgres reachable through
``AIRDROP_TEST_DATABASE_URL`` and are skipped otherwise.
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest

from airdrop_store.settings import reset_settings
from tests.helpers import FakeConnection, FakeStore


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: marks tests as requiring a live Postgres (AIRDROP_TEST_DATABASE_URL)",
    )


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Generator[None, None, None]:
    """Keep settings from leaking between tests or picking up a local .env."""
    for key in (
        "DATABASE_URL",
        "LOG_LEVEL",
        "AIRDROP_STATEMENT_TIMEOUT_MS",
        "AIRDROP_CONNECT_TIMEOUT",
        "AIRDROP_APPLICATION_NAME",
        "AIRDROP_VERIFY_PROOFS",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def conn(store: FakeStore) -> FakeConnection:
    return FakeConnection(store)


@pytest.fixture
def pg_conn() -> Generator[psycopg.Connection, None, None]:
    url = os.environ.get("AIRDROP_TEST_DATABASE_URL")
    if not url:
        pytest.skip("AIRDROP_TEST_DATABASE_URL not configured")

    conn = psycopg.connect(url, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()
