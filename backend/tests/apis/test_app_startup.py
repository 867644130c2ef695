"""Tests for the users service startup."""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from apis.app_api.main import create_app
from apis.shared.oauth2.kratos import KratosProvider
from apis.shared.oauth2.provider import ProviderConfig
from apis.shared.rbac.authorization import AuthorizationService
from users.bootstrap import AdminBootstrapError, AdminConfig, CredentialIssuer
from users.models import Account, Credentials
from users.repository import AccountRepository


@pytest.fixture
def provider():
    return KratosProvider(ProviderConfig(client_id="client", client_secret="secret"))


@pytest.fixture
def admin_config():
    return AdminConfig(email="admin@example.com", password="12345678")


@pytest.fixture
def issuer():
    issuer = Mock(spec=CredentialIssuer)
    issuer.issue_token = AsyncMock()
    return issuer


@pytest.fixture
def repository():
    existing = Account(id="admin-id", credentials=Credentials(identity="admin@example.com"))
    repository = Mock(spec=AccountRepository)
    repository.retrieve_by_identity = AsyncMock(return_value=existing)
    repository.save = AsyncMock()
    return repository


def test_startup_runs_bootstrap(provider, admin_config, issuer, repository):
    """The service starts once the administrator is in place"""
    authz = Mock(spec=AuthorizationService)
    authz.authorize = AsyncMock(return_value=True)
    authz.add_policy = AsyncMock()

    app = create_app(repository, issuer, authz, provider=provider, admin_config=admin_config)

    with TestClient(app):
        assert app.state.admin_id == "admin-id"
        assert app.state.oauth_provider is provider

    authz.add_policy.assert_not_awaited()
    repository.save.assert_not_awaited()


def test_startup_aborts_when_bootstrap_fails(provider, admin_config, issuer, repository):
    """A rejected grant stops the service from starting"""
    authz = Mock(spec=AuthorizationService)
    authz.authorize = AsyncMock(return_value=False)
    authz.add_policy = AsyncMock(return_value=False)

    app = create_app(repository, issuer, authz, provider=provider, admin_config=admin_config)

    with pytest.raises(AdminBootstrapError):
        with TestClient(app):
            pass


def test_shutdown_closes_repository(provider, admin_config, issuer, repository):
    repository.aclose = AsyncMock()
    authz = Mock(spec=AuthorizationService)
    authz.authorize = AsyncMock(return_value=True)

    app = create_app(repository, issuer, authz, provider=provider, admin_config=admin_config)

    with TestClient(app):
        pass

    repository.aclose.assert_awaited_once()
