"""Focused unit tests for global exception handling behaviors.

These tests exercise the public contract via a FastAPI test app using the
installed exception handler and ExceptionNormalizationMiddleware.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from unittest.mock import patch

import pytest
from fastapi import FastAPI, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from core.error_handler import (
    ExceptionNormalizationMiddleware,
    _build_error_response,
    global_exception_handler,
)
from core.exceptions import (
    DomainError,
    DuplicateKnowledgeSourceError,
    ToolNotFoundError,
)
from core.middleware import CorrelationIdMiddleware


class Item(BaseModel):
    name: str = Field(min_length=3)
    qty: int = Field(ge=1)


def _build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(ExceptionNormalizationMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_exception_handler(HTTPException, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)
    app.add_exception_handler(DomainError, global_exception_handler)

    @app.post("/items")
    async def create_item(item: Item):  # pragma: no cover - executed via client
        return {"ok": True, "item": item.model_dump()}

    @app.get("/domain-duplicate")
    async def domain_dup():
        raise DuplicateKnowledgeSourceError("Knowledge source 'cats' already exists")

    @app.get("/domain-missing")
    async def domain_missing():
        raise ToolNotFoundError("Unknown tool: teach")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("Exploded with secret=should_not_leak")

    @app.get("/unauthorized")
    async def unauthorized():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.get("/forbidden")
    async def forbidden():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Access denied"
        )

    return app


@pytest.fixture(params=["production", "development"])
def client(request: pytest.FixtureRequest) -> Iterator[tuple[TestClient, str]]:
    env = request.param
    with patch("core.config.get_settings") as mocked:
        mocked.return_value.ENVIRONMENT = env
        yield TestClient(_build_app()), env


def test_validation_error(client):
    test_client, env = client
    resp = test_client.post("/items", json={"name": "ab", "qty": 0})

    assert resp.status_code == 422
    data = resp.json()
    assert data["error"]["type"] == "validation_error"
    assert ("validation_errors" in data["error"]) is (env == "development")


def test_domain_errors_map_to_status(client):
    test_client, env = client

    duplicate = test_client.get("/domain-duplicate")
    missing = test_client.get("/domain-missing")

    assert duplicate.status_code == 409
    assert missing.status_code == 404
    assert missing.json()["message"] == "The requested tool was not found"
    assert missing.json()["error"]["type"] == "domain_error"
    assert ("details" in missing.json()["error"]) is (env == "development")


def test_generic_exception_is_sanitized(client):
    test_client, env = client
    resp = test_client.get("/boom")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["type"] == "internal_server_error"
    assert body["message"] == "An internal error occurred"
    if env == "production":
        assert "traceback" not in body["error"]
        assert "secret=should_not_leak" not in json.dumps(body)
    else:
        assert "traceback" in body["error"]


def test_unauthorized_error_canonical_type(client):
    test_client, env = client
    resp = test_client.get("/unauthorized")

    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"
    body = resp.json()
    assert body["error"]["type"] == "unauthorized"
    assert body["error"]["correlation_id"] == resp.headers["X-Correlation-ID"]
    assert body["success"] is False
    assert ("details" in body["error"]) is (env == "development")


def test_forbidden_error_canonical_type(client):
    test_client, _env = client
    resp = test_client.get("/forbidden")

    assert resp.status_code == 403
    assert resp.json()["error"]["type"] == "forbidden"
    assert resp.json()["message"] == "Access denied"


def test_build_error_response_production_hides_optional_fields():
    resp = _build_error_response(
        correlation_id="cid",
        error_type="internal_server_error",
        message="An internal error occurred",
        environment="production",
        details={"debug": True},
        traceback_str="trace",
        exception_type="ValueError",
        validation_errors={"x": 1},
        status_code=500,
    )
    body = json.loads(resp.body)

    assert resp.status_code == 500
    assert body["error"] == {"correlation_id": "cid", "type": "internal_server_error"}
