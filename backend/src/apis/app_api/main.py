"""
Users Service

Handles:
1. OAuth2 identity provider wiring
2. Administrator bootstrap before serving traffic
"""

from pathlib import Path
from dotenv import load_dotenv

# Load .env file from backend/src directory (parent of apis/)
env_path = Path(__file__).parent.parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import Optional
import logging

from apis.shared.oauth2.kratos import get_oauth_provider
from apis.shared.oauth2.provider import Provider
from apis.shared.rbac.authorization import AuthorizationService
from users.bootstrap import AdminConfig, CredentialIssuer, ensure_admin
from users.repository import AccountRepository

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(
    repository: AccountRepository,
    issuer: CredentialIssuer,
    authz: AuthorizationService,
    provider: Optional[Provider] = None,
    admin_config: Optional[AdminConfig] = None,
) -> FastAPI:
    """
    Create the users service application.

    The administrator bootstrap runs inside the lifespan, so the app does not
    accept requests until it succeeds; a bootstrap failure aborts startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("=== Users Service Starting ===")

        app.state.oauth_provider = provider or get_oauth_provider()
        logger.info(
            f"OAuth provider '{app.state.oauth_provider.name}' "
            f"{'enabled' if app.state.oauth_provider.is_enabled() else 'disabled'}"
        )

        app.state.admin_id = await ensure_admin(repository, issuer, authz, admin_config)
        logger.info("Administrator bootstrap complete")

        yield  # Application is running

        # Shutdown
        logger.info("=== Users Service Shutting Down ===")
        close = getattr(repository, "aclose", None)
        if close is not None:
            await close()

    return FastAPI(
        title="Users Service",
        version="1.0.0",
        description="Identity provider login and administrator bootstrap",
        lifespan=lifespan
    )
