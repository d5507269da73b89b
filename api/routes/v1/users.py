"""
api/routes/v1/users.py -- Profile management for the authenticated user.

Routes:
  PATCH /users/me  -- update first/last name, business name, country code;
                    only the fields present in the body change

Email is not editable here: it is duplicated into the credential record and
doubles as the login identifier.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import ProfileUpdateRequest, UserResponse
from auth.dependencies import get_auth_service, get_current_claims
from auth.service import AuthService

router = APIRouter()


@router.patch("/users/me", response_model=UserResponse)
def update_me(
    body: ProfileUpdateRequest,
    claims: dict = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    user = service.update_profile(claims["sub"], **body.changes())
    return UserResponse.from_user(user)
