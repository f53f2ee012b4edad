"""Tests for the callback routes and the POS live feed."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from xmr_pos.api.app import create_app
from xmr_pos.chain.moneropay.models import ObservedTransfer, ReceiveStatus
from xmr_pos.engine.callback.auth import sign_callback_token
from xmr_pos.engine.models.transaction import Transaction

HASH = "e" * 64

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def client(app_config):
    with TestClient(create_app(config=app_config), raise_server_exceptions=False) as c:
        yield c


def _create_tx(client: TestClient, amount: int = 1_000_000, **values) -> Transaction:
    engine = client.app.state.engine
    tx = Transaction(
        amount=amount,
        required_confirmations=values.pop("required_confirmations", 0),
        sub_address=values.pop("sub_address", "8ApiSubaddress"),
        created_at=datetime.now(tz=UTC),
        **values,
    )
    return client.portal.call(engine.repository.create_transaction, tx)


def _token(client: TestClient, tx_id: int) -> str:
    return sign_callback_token(client.app.state.config.callback.jwt_secret, tx_id)


def _lws_token(client: TestClient) -> str:
    return client.app.state.config.callback.lws_token


def _find_tx(client: TestClient, tx_id: int) -> Transaction | None:
    return client.portal.call(client.app.state.engine.repository.find_by_id, tx_id)


def _callback_body(amount: int = 1_000_000, confirmations: int = 0) -> dict:
    return {
        "amount": {"expected": amount, "covered": {"total": amount, "unlocked": 0}},
        "complete": False,
        "description": "espresso",
        "created_at": datetime.now(tz=UTC).isoformat(),
        "transaction": {
            "amount": amount,
            "confirmations": confirmations,
            "double_spend_seen": False,
            "fee": 9_000,
            "height": 0,
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "tx_hash": HASH,
            "unlock_time": 0,
            "locked": True,
        },
    }


# ---------------------------------------------------------------------------
# MoneroPay callback
# ---------------------------------------------------------------------------


class TestReceiveCallback:
    def test_success(self, client) -> None:
        tx = _create_tx(client)
        token = _token(client, tx.id)

        response = client.post(f"/callback/receive/{token}", json=_callback_body())

        assert response.status_code == 200
        assert response.json() == {}
        stored = _find_tx(client, tx.id)
        assert stored.accepted is True
        assert [st.tx_hash for st in stored.sub_transactions] == [HASH]

    def test_bad_token(self, client) -> None:
        response = client.post("/callback/receive/not-a-token", json=_callback_body())
        assert response.status_code == 401
        assert response.json() == {"code": "unauthenticated", "message": "invalid or missing token"}

    def test_unknown_transaction(self, client) -> None:
        token = _token(client, 4242)
        response = client.post(f"/callback/receive/{token}", json=_callback_body())
        assert response.status_code == 404
        assert response.json()["code"] == "transaction-not-found"

    def test_malformed_body(self, client) -> None:
        token = _token(client, 1)
        response = client.post(f"/callback/receive/{token}", json={"amount": "lots"})
        assert response.status_code == 422

    def test_deadline_exceeded(self, app_config) -> None:
        app_config.callback.request_timeout = 0.05

        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        with TestClient(create_app(config=app_config), raise_server_exceptions=False) as client:
            engine = client.app.state.engine
            engine._callbacks = MagicMock()
            engine._callbacks.handle_callback = AsyncMock(side_effect=slow)

            response = client.post("/callback/receive/anything", json=_callback_body())

        assert response.status_code == 504
        assert response.json()["code"] == "request-timeout"


# ---------------------------------------------------------------------------
# LWS hook
# ---------------------------------------------------------------------------


class TestLwsHook:
    def test_flat_payload(self, client) -> None:
        tx = _create_tx(client, 1_234_567)
        body = {
            "event": "tx-confirmation",
            "amount": 1_234_567,
            "tx_hash": HASH,
            "confirmations": 0,
            "timestamp": datetime.now(tz=UTC).isoformat(),
        }

        response = client.post(f"/callback/lws/{_lws_token(client)}", json=body)

        assert response.status_code == 200
        assert response.json() == {}
        assert _find_tx(client, tx.id).accepted is True

    def test_nested_payload(self, client) -> None:
        tx = _create_tx(client, 2_000_000)
        body = {
            "event": "tx-confirmation",
            "confirmations": 1,
            "tx_info": {
                "id": {"high": 0, "low": 77},
                "block": 3_100_000,
                "amount": 2_000_000,
                "timestamp": int(datetime.now(tz=UTC).timestamp()),
                "tx_hash": HASH,
                "unlock_time": 0,
                "coinbase": False,
            },
        }

        response = client.post(f"/callback/lws/{_lws_token(client)}", json=body)

        assert response.status_code == 200
        stored = _find_tx(client, tx.id)
        assert stored.sub_transactions[0].height == 3_100_000

    def test_wrong_token(self, client) -> None:
        response = client.post("/callback/lws/wrong", json={"amount": 1, "tx_hash": HASH})
        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"

    def test_missing_fields(self, client) -> None:
        response = client.post(f"/callback/lws/{_lws_token(client)}", json={"event": "tx-confirmation"})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid-payload"

    @pytest.mark.parametrize(
        "body",
        [
            {"amount": "lots", "tx_hash": HASH},
            {"amount": 1, "tx_hash": HASH, "tx_info": "nested"},
            ["not", "an", "object"],
        ],
    )
    def test_wrong_types_are_invalid_payload(self, client, body) -> None:
        response = client.post(f"/callback/lws/{_lws_token(client)}", json=body)
        assert response.status_code == 400
        assert response.json()["code"] == "invalid-payload"

    def test_wrong_types_with_wrong_token_are_unauthenticated(self, client) -> None:
        response = client.post("/callback/lws/wrong", json={"amount": "lots"})
        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"

    def test_non_json_body(self, client) -> None:
        response = client.post(
            f"/callback/lws/{_lws_token(client)}",
            content=b"amount=1",
            headers={"content-type": "text/plain"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid-payload"

    def test_stale(self, client) -> None:
        _create_tx(client, 1_000_000)
        body = {
            "amount": 1_000_000,
            "tx_hash": HASH,
            "timestamp": (datetime.now(tz=UTC) - timedelta(minutes=2)).isoformat(),
        }
        response = client.post(f"/callback/lws/{_lws_token(client)}", json=body)
        assert response.status_code == 401
        assert response.json()["code"] == "stale-payload"

    def test_ambiguous(self, client) -> None:
        _create_tx(client, 1_000_000)
        _create_tx(client, 1_000_000)
        body = {"amount": 1_000_000, "tx_hash": HASH}
        response = client.post(f"/callback/lws/{_lws_token(client)}", json=body)
        assert response.status_code == 401
        assert response.json()["code"] == "unresolvable-transaction"


# ---------------------------------------------------------------------------
# POS live feed
# ---------------------------------------------------------------------------


class TestPosFeed:
    def test_snapshot_then_update(self, client) -> None:
        tx = _create_tx(client)
        other = _create_tx(client, 5)
        token = _token(client, tx.id)

        with client.websocket_connect(f"/pos/transactions/{tx.id}/ws") as ws:
            snapshot = ws.receive_json()
            assert snapshot["type"] == "transaction"
            assert snapshot["transaction_id"] == tx.id
            assert snapshot["accepted"] is False

            other_token = _token(client, other.id)
            client.post(f"/callback/receive/{other_token}", json=_callback_body(amount=5))
            client.post(f"/callback/receive/{token}", json=_callback_body())

            update = ws.receive_json()
            assert update["transaction_id"] == tx.id
            assert update["accepted"] is True
            assert update["content"]["sub_transactions"][0]["tx_hash"] == HASH

    def test_unknown_transaction_rejected(self, client) -> None:
        with pytest.raises(WebSocketDisconnect), client.websocket_connect("/pos/transactions/999/ws") as ws:
            ws.receive_json()
        assert client.portal.call(_settled_subscriber_count, client) == 0

    def test_update_merged_while_snapshot_loads(self, client, monkeypatch) -> None:
        tx = _create_tx(client)
        engine = client.app.state.engine
        repository = engine.repository
        load = repository.find_by_id
        raced: list[int] = []

        async def load_while_merging(tx_id: int):
            if raced:
                return await load(tx_id)
            raced.append(tx_id)
            stale = await load(tx_id)
            paid = ReceiveStatus(
                expected=tx.amount,
                covered_total=tx.amount,
                transfers=[ObservedTransfer(tx_hash=HASH, amount=tx.amount, confirmations=12)],
            )
            await engine.reconciler.process_transaction(tx_id, paid)
            return stale

        monkeypatch.setattr(repository, "find_by_id", load_while_merging)

        with client.websocket_connect(f"/pos/transactions/{tx.id}/ws") as ws:
            snapshot = ws.receive_json()
            assert snapshot["accepted"] is False
            update = ws.receive_json()

        assert raced == [tx.id]
        assert update["transaction_id"] == tx.id
        assert update["accepted"] is True


async def _settled_subscriber_count(client: TestClient) -> int:
    # The route unsubscribes in its finally block, just after the close frame.
    await asyncio.sleep(0.05)
    return client.app.state.engine.notification_service.subscriber_count
