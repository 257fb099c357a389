"""Authentication API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth.jwt_auth import get_jwt_manager
from ..auth.rate_limiter import LoginRateLimiter, get_login_rate_limiter
from ..db.database import get_db
from ..db.models import Person
from ..utils.logging_config import get_logger
from .schemas import (
    JWTTokenResponse,
    LoginRequest,
    ProblemDetails,
    TokenRefreshRequest,
    TokenRefreshResponse,
)

logger = get_logger("auth")

router = APIRouter(prefix="/v1/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=JWTTokenResponse,
    status_code=status.HTTP_200_OK,
    responses={
        200: {"description": "Login successful"},
        401: {"model": ProblemDetails, "description": "Invalid email or password"},
        422: {"model": ProblemDetails, "description": "Validation error"},
        429: {"model": ProblemDetails, "description": "Too many login attempts"},
    },
)
def login(
    login_data: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    limiter: LoginRateLimiter = Depends(get_login_rate_limiter),
) -> JWTTokenResponse:
    """
    Authenticate a person with email and password.

    Returns a JWT access/refresh token pair. Rate limited per client IP and email;
    repeated failures block the client temporarily.
    """
    email = login_data.email.strip().lower()
    limiter.check_rate_limit(request, email)

    person = db.query(Person).filter(func.lower(Person.email) == email).first()

    # Same answer for unknown email, inactive person and wrong password
    if (
        person is None
        or not person.is_active
        or not person.verify_password(login_data.password)
    ):
        limiter.record_auth_failure(request, email)
        logger.warning(f"Failed login for {login_data.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token, refresh_token, access_exp, refresh_exp = get_jwt_manager().create_tokens(
        person.id, email=person.email
    )
    limiter.record_auth_success(request, email)
    logger.info(f"Person {person.id} logged in")

    return JWTTokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        access_expires_at=access_exp,
        refresh_expires_at=refresh_exp,
        person_id=person.id,
    )


@router.post(
    "/refresh",
    response_model=TokenRefreshResponse,
    responses={
        200: {"description": "Token refreshed"},
        401: {"model": ProblemDetails, "description": "Invalid or expired refresh token"},
    },
)
def refresh_token(
    refresh_data: TokenRefreshRequest,
    db: Session = Depends(get_db),
) -> TokenRefreshResponse:
    """Exchange a refresh token for a new access token."""
    manager = get_jwt_manager()
    payload = manager.verify_refresh_token(refresh_data.refresh_token)

    try:
        person_id = UUID(payload["sub"])
    except (KeyError, ValueError):
        person_id = None

    person = (
        db.query(Person).filter(Person.id == person_id).first() if person_id else None
    )
    if person is None or not person.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Person no longer active",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token, expires_at = manager.refresh_access_token(refresh_data.refresh_token)
    return TokenRefreshResponse(access_token=access_token, expires_at=expires_at)
