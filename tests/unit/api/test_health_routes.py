"""Tests for health endpoints, lifespan wiring and request logging."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from tests.fakes import BrokenStateStore, MemoryStateStore
from tfstate.api.app import create_app, lifespan
from tfstate.core.config import AppSettings, SQLConfig, StoreConfig
from tfstate.persistence.dynamodb_backend import DynamoDBStateStore
from tfstate.persistence.sql_backend import SQLStateStore


def test_health():
    with TestClient(create_app(store=MemoryStateStore())) as client:
        assert client.get("/health").json() == {"status": "healthy"}


def test_ready_when_store_answers():
    with TestClient(create_app(store=MemoryStateStore())) as client:
        resp = client.get("/ready")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ready"}


def test_not_ready_when_store_fails():
    with TestClient(create_app(store=BrokenStateStore())) as client:
        assert client.get("/ready").status_code == 503


def test_lifespan_builds_and_closes_store_from_settings(tmp_path):
    settings = AppSettings(
        store=StoreConfig(backend="sql"),
        sql=SQLConfig(url=f"sqlite:///{tmp_path / 'app.db'}"),
    )
    app = create_app(settings)
    with TestClient(app) as client:
        assert isinstance(app.state.store, SQLStateStore)
        assert client.post("/state/prod-network", content="{}").status_code == 200
        assert client.get("/state/prod-network").text == "{}"
    assert app.state.store is None


def test_injected_store_survives_shutdown():
    store = MemoryStateStore()
    app = create_app(store=store)
    with TestClient(app):
        pass
    assert app.state.store is store


def test_correlation_id_is_echoed():
    with TestClient(create_app(store=MemoryStateStore())) as client:
        resp = client.get("/health", headers={"X-Correlation-ID": "req-123"})
        assert resp.headers["X-Correlation-ID"] == "req-123"
        assert client.get("/health").headers["X-Correlation-ID"]


def test_not_ready_when_dynamodb_unreachable(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "test")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "test")
    store = DynamoDBStateStore(
        endpoint_url="http://127.0.0.1:9", max_attempts=1, connect_timeout=1.0,
    )
    with TestClient(create_app(store=store)) as client:
        resp = client.get("/ready")
        assert resp.status_code == 503
        assert resp.json() == {"status": "unavailable"}
        assert client.get("/state/prod-network").status_code == 500


def test_owned_store_closed_when_app_fails(monkeypatch):
    store = MemoryStateStore()
    closed = []
    monkeypatch.setattr(store, "close", lambda: closed.append(True))
    monkeypatch.setattr("tfstate.api.app.create_state_store", lambda settings: store)
    app = create_app(AppSettings(store=StoreConfig(backend="memory")))

    async def _serve_then_crash():
        async with lifespan(app):
            raise RuntimeError("worker crashed")

    with pytest.raises(RuntimeError):
        asyncio.run(_serve_then_crash())
    assert closed == [True]
    assert app.state.store is None
