"""JWT access and refresh tokens for persons."""

import jwt
from datetime import datetime, timezone, timedelta
from typing import Any, Dict, Optional, Tuple
from uuid import UUID, uuid4

from fastapi import HTTPException, status

from ..config import get_config


class JWTTokenManager:
    """Manages JWT access and refresh tokens."""

    def __init__(self):
        """Initialize JWT token manager with configuration."""
        config = get_config()
        self.secret_key = config.app.jwt_secret_key
        self.algorithm = "HS256"
        self.access_token_expires_minutes = config.app.jwt_access_token_expires_minutes
        self.refresh_token_expires_days = config.app.jwt_refresh_token_expires_days

    def _encode(
        self,
        person_id: UUID,
        token_type: str,
        expires_at: datetime,
        issued_at: datetime,
        jti: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        payload = {
            "sub": str(person_id),
            "iat": issued_at,
            "exp": expires_at,
            "jti": jti,
            "type": token_type,
        }
        if extra:
            payload.update(extra)
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def create_tokens(
        self,
        person_id: UUID,
        email: Optional[str] = None,
        additional_claims: Optional[Dict[str, Any]] = None,
    ) -> Tuple[str, str, datetime, datetime]:
        """
        Create access and refresh token pair.

        Args:
            person_id: UUID of the person
            email: Optional email to embed in the access token
            additional_claims: Optional additional claims for the access token

        Returns:
            Tuple of (access_token, refresh_token, access_expires_at, refresh_expires_at)
        """
        now = datetime.now(timezone.utc)
        jti = str(uuid4())

        claims = dict(additional_claims or {})
        if email:
            claims["email"] = email

        access_expires_at = now + timedelta(minutes=self.access_token_expires_minutes)
        access_token = self._encode(person_id, "access", access_expires_at, now, jti, claims)

        refresh_expires_at = now + timedelta(days=self.refresh_token_expires_days)
        refresh_token = self._encode(person_id, "refresh", refresh_expires_at, now, jti)

        return access_token, refresh_token, access_expires_at, refresh_expires_at

    def _verify(self, token: str, expected_type: str) -> Dict[str, Any]:
        label = expected_type.capitalize()
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"{label} token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            )
        except jwt.InvalidTokenError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid {expected_type} token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if payload.get("type") != expected_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token type",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return payload

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """
        Verify and decode access token.

        Raises:
            HTTPException: If token is invalid, expired, or wrong type
        """
        return self._verify(token, "access")

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        """
        Verify and decode refresh token.

        Raises:
            HTTPException: If token is invalid, expired, or wrong type
        """
        return self._verify(token, "refresh")

    def refresh_access_token(self, refresh_token: str) -> Tuple[str, datetime]:
        """
        Create new access token from valid refresh token.

        The new token keeps the refresh token's JTI so the pair can be tracked
        as one token family.

        Returns:
            Tuple of (new_access_token, expires_at)
        """
        payload = self.verify_refresh_token(refresh_token)

        now = datetime.now(timezone.utc)
        access_expires_at = now + timedelta(minutes=self.access_token_expires_minutes)
        access_token = self._encode(
            UUID(payload["sub"]), "access", access_expires_at, now, payload["jti"]
        )
        return access_token, access_expires_at

    def extract_person_id(self, token: str) -> UUID:
        """Return the person id from a valid access token."""
        payload = self.verify_access_token(token)
        try:
            return UUID(payload["sub"])
        except (KeyError, ValueError):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or malformed token",
                headers={"WWW-Authenticate": "Bearer"},
            )


_jwt_manager: Optional[JWTTokenManager] = None


def get_jwt_manager() -> JWTTokenManager:
    """Return the process-wide token manager, created on first use."""
    global _jwt_manager
    if _jwt_manager is None:
        _jwt_manager = JWTTokenManager()
    return _jwt_manager
