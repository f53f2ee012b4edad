"""Shared test fixtures for the xmr-pos test suite."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from xmr_pos.config.settings import DatabaseEngine

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

JWT_SECRET = "test-jwt-secret-that-is-at-least-32-bytes"
LWS_TOKEN = "test-lws-token"


@pytest.fixture
def app_config(tmp_path):
    """Provide a test AppConfig with safe defaults (file-backed SQLite, no cron)."""
    from xmr_pos.config.settings import (
        AppConfig,
        CallbackConfig,
        DatabaseConfig,
        MoneroPayConfig,
        TaskConfig,
    )

    return AppConfig(
        debug=True,
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn=f"sqlite+aiosqlite:///{tmp_path / 'xmr_pos_test.db'}",
        ),
        moneropay=MoneroPayConfig(url="http://moneropay.test", timeout=1.0),
        callback=CallbackConfig(jwt_secret=JWT_SECRET, lws_token=LWS_TOKEN),
        task=TaskConfig(enabled=False),
    )


@pytest.fixture
async def datastore(app_config) -> AsyncIterator:
    """Open a datastore with all tables created."""
    from xmr_pos.datastore.client import Datastore

    ds = Datastore(app_config.db)
    await ds.open()
    yield ds
    await ds.close()


@pytest.fixture
def repository(datastore):
    """Transaction store backed by the test datastore."""
    from xmr_pos.engine.repository.transactions import TransactionRepository

    return TransactionRepository(datastore)


@pytest.fixture
def make_transaction(repository):
    """Factory persisting a pending transaction."""
    from xmr_pos.engine.models.transaction import Transaction

    async def _make(
        amount: int = 1_000_000,
        *,
        required_confirmations: int = 0,
        sub_address: str | None = "8BxPendingSubaddress",
        created_at: datetime | None = None,
        **values,
    ):
        tx = Transaction(
            amount=amount,
            required_confirmations=required_confirmations,
            sub_address=sub_address,
            created_at=created_at or datetime.now(tz=UTC),
            **values,
        )
        return await repository.create_transaction(tx)

    return _make


@pytest.fixture
def test_client(app_config):
    """Provide a FastAPI TestClient with the app wired to test config."""
    from fastapi.testclient import TestClient

    from xmr_pos.api.app import create_app

    app = create_app(config=app_config)
    return TestClient(app, raise_server_exceptions=False)
