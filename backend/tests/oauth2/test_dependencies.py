"""Tests for the bearer token dependency."""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from apis.shared.errors import AuthenticationError, DecodingError, TransportError
from apis.shared.oauth2.dependencies import require_active_token
from apis.shared.oauth2.provider import Provider


@pytest.fixture
def provider():
    provider = Mock(spec=Provider)
    provider.name = "kratos"
    provider.validate = AsyncMock()
    return provider


@pytest.fixture
def client(provider):
    app = FastAPI()
    app.state.oauth_provider = provider

    @app.get("/session")
    async def session(token: str = Depends(require_active_token)):
        return {"token": token}

    return TestClient(app)


def test_active_token_is_admitted(client, provider):
    response = client.get("/session", headers={"Authorization": "Bearer opaque-token"})

    assert response.status_code == 200
    assert response.json() == {"token": "opaque-token"}
    provider.validate.assert_awaited_once_with("opaque-token")


def test_missing_token(client, provider):
    response = client.get("/session")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["detail"]["error"]["code"] == "unauthorized"
    provider.validate.assert_not_awaited()


def test_inactive_token(client, provider):
    provider.validate.side_effect = AuthenticationError("error: invalid_token, reason: expired")

    response = client.get("/session", headers={"Authorization": "Bearer stale"})

    assert response.status_code == 401
    error = response.json()["detail"]["error"]
    assert error["code"] == "unauthorized"
    assert error["detail"] == "error: invalid_token, reason: expired"


@pytest.mark.parametrize(
    "error,status_code,code",
    [
        (TransportError(), 503, "service_unavailable"),
        (DecodingError(), 502, "bad_gateway"),
    ],
)
def test_provider_failure_is_mapped(client, provider, error, status_code, code):
    provider.validate.side_effect = error

    response = client.get("/session", headers={"Authorization": "Bearer opaque-token"})

    assert response.status_code == status_code
    assert response.json()["detail"]["error"]["code"] == code
