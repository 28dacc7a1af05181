"""HTTP route definitions for the identity service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from prometheus_client import Counter
from pydantic import BaseModel, Field

from ..config import Settings
from ..domain.account import AccountView, Phone
from ..domain.contracts import SignUpInput
from ..domain.errors import (
    AccountNotFound,
    AlreadyExists,
    IdentityError,
    InactiveAccount,
    InvalidFormat,
    InvalidToken,
    PersistenceFailure,
)
from ..domain.service import LoginService, SignUpService
from ..security.tokens import TokenAuthority

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

SIGNUPS = Counter("identity_signups_total", "Sign-up attempts by outcome.", ["outcome"])
LOGINS = Counter("identity_logins_total", "Token login attempts by outcome.", ["outcome"])

_STATUS_BY_ERROR: dict[type[IdentityError], int] = {
    InvalidFormat: status.HTTP_400_BAD_REQUEST,
    InvalidToken: status.HTTP_401_UNAUTHORIZED,
    AlreadyExists: status.HTTP_409_CONFLICT,
    AccountNotFound: status.HTTP_404_NOT_FOUND,
    InactiveAccount: status.HTTP_409_CONFLICT,
    PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class PhonePayload(BaseModel):
    """Contact number exchanged with API clients."""

    number: int
    city_code: int
    country_code: str

    def to_domain(self) -> Phone:
        return Phone(number=self.number, city_code=self.city_code, country_code=self.country_code)

    @classmethod
    def from_domain(cls, phone: Phone) -> "PhonePayload":
        return cls(number=phone.number, city_code=phone.city_code, country_code=phone.country_code)


class SignUpRequest(BaseModel):
    """Payload accepted when registering an account.

    Email and password formats are checked by the sign-up workflow against the
    configured patterns, not by the schema.
    """

    name: str | None = None
    email: str | None = None
    password: str | None = None
    phones: list[PhonePayload] = Field(default_factory=list)


class AccountResponse(BaseModel):
    """Serialised representation of an account after sign-up or login."""

    id: str
    name: str | None
    email: str
    phones: list[PhonePayload]
    created: datetime
    last_login: datetime
    token: str | None
    token_expires_in: int | None
    is_active: bool
    password: str | None = None

    @classmethod
    def from_view(
        cls, view: AccountView, tokens: TokenAuthority, expose_password_hash: bool
    ) -> "AccountResponse":
        """Build a response model from the workflow's account projection."""
        expires_at = tokens.expires_at(view.token)
        expires_in = None
        if expires_at is not None:
            expires_in = max(0, int((expires_at - datetime.now(timezone.utc)).total_seconds()))
        return cls(
            id=view.account_id,
            name=view.name,
            email=view.email,
            phones=[PhonePayload.from_domain(phone) for phone in view.phones],
            created=view.created_at,
            last_login=view.last_login_at,
            token=view.token,
            token_expires_in=expires_in,
            is_active=view.is_active,
            password=view.password_hash if expose_password_hash else None,
        )


def get_signup_service(request: Request) -> SignUpService:
    """Resolve the `SignUpService` stored on the FastAPI application state."""
    service: SignUpService = request.app.state.signup_service
    return service


def get_login_service(request: Request) -> LoginService:
    """Resolve the `LoginService` stored on the FastAPI application state."""
    service: LoginService = request.app.state.login_service
    return service


def get_token_authority(request: Request) -> TokenAuthority:
    authority: TokenAuthority = request.app.state.token_authority
    return authority


def get_app_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def bearer_token(authorization: str | None) -> str | None:
    """Strip the ``Bearer`` scheme from an Authorization header value."""
    if not authorization:
        return None
    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None


@router.post("/sign-up", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def sign_up(
    payload: SignUpRequest,
    service: SignUpService = Depends(get_signup_service),
    tokens: TokenAuthority = Depends(get_token_authority),
    settings: Settings = Depends(get_app_settings),
) -> AccountResponse:
    """Register an account and return it with its first bearer token."""
    try:
        view = service.sign_up(
            SignUpInput(
                email=payload.email,
                password=payload.password,
                name=payload.name,
                phones=[phone.to_domain() for phone in payload.phones],
            )
        )
    except IdentityError as exc:
        SIGNUPS.labels(outcome=exc.kind).inc()
        raise _http_error_from_identity_error(exc) from exc
    SIGNUPS.labels(outcome="success").inc()
    return AccountResponse.from_view(view, tokens, settings.expose_password_hash)


@router.post("/login", response_model=AccountResponse)
def login(
    authorization: str | None = Header(default=None),
    service: LoginService = Depends(get_login_service),
    tokens: TokenAuthority = Depends(get_token_authority),
    settings: Settings = Depends(get_app_settings),
) -> AccountResponse:
    """Re-authenticate with the current bearer token and rotate it."""
    try:
        view = service.login(bearer_token(authorization))
    except IdentityError as exc:
        LOGINS.labels(outcome=exc.kind).inc()
        raise _http_error_from_identity_error(exc) from exc
    LOGINS.labels(outcome="success").inc()
    return AccountResponse.from_view(view, tokens, settings.expose_password_hash)


def _http_error_from_identity_error(exc: IdentityError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("request failed with %s", exc.kind)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, InvalidToken) else None
    return HTTPException(status_code=status_code, detail=exc.message, headers=headers)
