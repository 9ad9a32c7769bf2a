"""
Authentication service.

Verifies bearer JWTs issued by the identity provider and turns their
claims into a ``CurrentUser``. Tokens are never issued here.
"""

import structlog
from typing import Optional

from jose import JWTError, jwt

from storefront.src.config import get_settings
from storefront.src.models.auth import CurrentUser, TokenPayload

logger = structlog.get_logger(__name__)


class AuthService:
    """Service for token verification."""

    def __init__(self):
        self.settings = get_settings()

    def decode_token(self, token: str) -> Optional[TokenPayload]:
        """
        Decode and validate JWT token.

        Audience and issuer are checked only when configured.

        Args:
            token: JWT token string

        Returns:
            Token payload or None if invalid
        """
        options = {"verify_aud": self.settings.jwt_audience is not None}
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
                options=options
            )
            token_payload = TokenPayload(**payload)
            logger.debug("token_decoded", user_id=token_payload.user_id)
            return token_payload

        except JWTError as e:
            logger.warning("token_decode_failed", error=str(e))
            return None

    def get_current_user(self, token: str) -> Optional[CurrentUser]:
        """
        Get current user from JWT token.

        Args:
            token: JWT token string

        Returns:
            Current user or None if the token is invalid or has no subject
        """
        payload = self.decode_token(token)
        if payload is None:
            return None

        if not payload.user_id:
            logger.warning("get_current_user_failed_missing_subject")
            return None

        return CurrentUser(
            id=payload.user_id,
            email=payload.email,
            username=payload.username,
            roles=payload.all_roles
        )
