"""HTTP route definitions exposing the authentication calls."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ..domain.service import AuthenticationService, AuthResult, ResultCode

router = APIRouter(prefix="/v1")


class RegisterRequest(BaseModel):
    """Payload accepted when registering an account."""

    email: str
    password: str


class LoginRequest(BaseModel):
    """Credentials exchanged for an access token."""

    email: str
    password: str


class AuthenticateRequest(BaseModel):
    token: str


class DropoutRequest(BaseModel):
    email: str


class ResultEnvelope(BaseModel):
    """Result returned by every call; ``content`` carries a JSON payload on success."""

    code: ResultCode
    message: str = ""
    content: str = ""

    @classmethod
    def from_domain(cls, result: AuthResult) -> "ResultEnvelope":
        return cls(code=result.code, message=result.message, content=result.content)


def get_service(request: Request) -> AuthenticationService:
    """Resolve the `AuthenticationService` stored on the FastAPI application state."""
    service: AuthenticationService = request.app.state.authentication_service
    return service


@router.post("/register", response_model=ResultEnvelope)
def register(
    payload: RegisterRequest,
    service: AuthenticationService = Depends(get_service),
) -> ResultEnvelope:
    """Register a new account."""
    return ResultEnvelope.from_domain(service.register(payload.email, payload.password))


@router.post("/login", response_model=ResultEnvelope)
def login(
    payload: LoginRequest,
    service: AuthenticationService = Depends(get_service),
) -> ResultEnvelope:
    """Issue an access token when the credentials match an account."""
    return ResultEnvelope.from_domain(service.login(payload.email, payload.password))


@router.post("/authenticate", response_model=ResultEnvelope)
def authenticate(
    payload: AuthenticateRequest,
    service: AuthenticationService = Depends(get_service),
) -> ResultEnvelope:
    """Return the account projection owning an unexpired token."""
    return ResultEnvelope.from_domain(service.authenticate_token(payload.token))


@router.post("/dropout", response_model=ResultEnvelope)
def dropout(
    payload: DropoutRequest,
    service: AuthenticationService = Depends(get_service),
) -> ResultEnvelope:
    return ResultEnvelope.from_domain(service.dropout(payload.email))
