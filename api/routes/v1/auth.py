"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST  /auth/signup          -- create an account; 201 + user
  POST  /auth/login           -- password login; 200 + {tokens, user}
  GET   /auth/profile         -- current user (requires auth)
  POST  /auth/tokens-refresh  -- exchange the current token pair for a new one
  PATCH /auth/password-reset  -- change password (requires auth)
  POST  /auth/logout          -- end the session (requires auth)

Handlers are thin: they map request models to AuthService calls and domain
results to response models. AuthError raised by the service is turned into
the error envelope by the handler registered in api/main.py.

Handlers are plain `def` so FastAPI runs them in its thread pool; bcrypt and
the SQLAlchemy store are blocking.

Security:
  Cache-Control: no-store on every response that carries tokens.
  The user id for password reset and logout comes from the verified access
  token, never from the request body.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetRequest,
    RefreshTokensRequest,
    SignupRequest,
    TokenPairResponse,
    UserResponse,
)
from auth.dependencies import get_auth_service, get_current_claims
from auth.service import AuthService

# Auth policy:
# - POST  /auth/signup:          public
# - POST  /auth/login:           public
# - POST  /auth/tokens-refresh:  public -- the refresh token is the credential
# - GET   /auth/profile:         requires auth (get_current_claims)
# - PATCH /auth/password-reset:  requires auth (get_current_claims)
# - POST  /auth/logout:          requires auth (get_current_claims)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=UserResponse, status_code=201)
def signup(body: SignupRequest, service: AuthService = Depends(get_auth_service)) -> UserResponse:
    """Register a new account. Returns the created user; does not log in."""
    user = service.signup(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        business_name=body.business_name,
        country_code=body.country_code,
    )
    return UserResponse.from_user(user)


@router.post("/auth/login", response_model=LoginResponse)
def login(body: LoginRequest, response: Response, service: AuthService = Depends(get_auth_service)) -> LoginResponse:
    """Authenticate with email and password and open a session.

    Unknown email and wrong password return the same 401 "Invalid credentials".
    """
    result = service.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(tokens=TokenPairResponse.from_pair(result.tokens), user=UserResponse.from_user(result.user))


@router.post("/auth/tokens-refresh", response_model=TokenPairResponse)
def refresh_tokens(
    body: RefreshTokensRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    """Rotate the session's token pair. The submitted pair is invalid afterwards."""
    pair = service.refresh_tokens(body.access_token, body.refresh_token)
    response.headers["Cache-Control"] = "no-store"
    return TokenPairResponse.from_pair(pair)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=UserResponse)
def profile(
    claims: dict = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Return the profile of the currently authenticated user."""
    return UserResponse.from_user(service.profile(claims["sub"]))


@router.patch("/auth/password-reset", response_model=MessageResponse)
def reset_password(
    body: PasswordResetRequest,
    claims: dict = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Change the current user's password after verifying the old one."""
    message = service.reset_password(claims["sub"], body.old_password, body.new_password)
    return MessageResponse(message=message)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(
    claims: dict = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Revoke the current session. Both tokens stop working immediately."""
    return MessageResponse(message=service.logout(claims["sub"]))
