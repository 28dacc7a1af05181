"""FastAPI application wiring for the identity service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import ConnectionPool

from .api.routes import router as v1_router
from .config import Settings, get_settings
from .domain.contracts import AccountStore
from .domain.service import LoginService, SignUpService
from .domain.validation import CredentialValidator
from .memory_store import InMemoryAccountStore
from .repository import AccountRepository
from .security.passwords import BcryptPasswordHasher
from .security.tokens import TokenAuthority

logger = logging.getLogger(__name__)

settings = get_settings()


def install_services(app: FastAPI, settings: Settings, store: AccountStore) -> None:
    """Build the workflows from ``settings`` and attach them to the application state.

    Pattern compilation and token configuration happen here, so invalid values
    abort startup.
    """
    tokens = TokenAuthority.from_settings(settings)
    app.state.settings = settings
    app.state.token_authority = tokens
    app.state.signup_service = SignUpService(
        store=store,
        validator=CredentialValidator.from_settings(settings),
        hasher=BcryptPasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=tokens,
    )
    app.state.login_service = LoginService(store=store, tokens=tokens)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise shared resources (account store, services) for the app lifecycle."""
    if settings.store_backend == "memory":
        logger.warning("account store using in-memory backend; accounts are lost on restart")
        install_services(app, settings, InMemoryAccountStore())
        yield
        return

    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    app.state.pool = pool
    try:
        repository = AccountRepository(pool)
        repository.create_schema()
        install_services(app, settings, repository)
        logger.info("account store configured for postgres backend")
        yield
    finally:
        pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", tags=["health"])
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
