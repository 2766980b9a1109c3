# core/security.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class JWTManager:
    """
    Verifies the bearer tokens issued by the identity provider.

    Tokens are HS256 JWTs sharing ``jwt_secret`` with the provider.
    ``create_access_token`` exists for local development and tests.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.secret_key = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.user_token_expire = timedelta(days=settings.jwt_user_expiration)
        self.issuer = settings.jwt_issuer

    def create_access_token(
        self,
        user_id: str,
        email: Optional[str] = None,
        name: Optional[str] = None,
        custom_expiration: Optional[timedelta] = None,
    ) -> str:
        """
        Create JWT access token for a user

        Args:
            user_id: Identity provider user id, stored as ``sub``
            email: Email claim, used to match admin accounts
            name: Display name claim
            custom_expiration: Override default expiration

        Returns:
            JWT access token string
        """
        now = datetime.now(timezone.utc)
        expire = now + (custom_expiration or self.user_token_expire)

        payload = {
            "sub": str(user_id),
            "email": email,
            "name": name,
            "exp": int(expire.timestamp()),
            "iat": int(now.timestamp()),
            "iss": self.issuer,
            "type": "access",
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info(f"Access token created for user: {user_id}")
        return token

    def verify_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Verify and decode JWT token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": True},
            )
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if payload.get("type") != token_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token type. Expected {token_type}",
            )

        if payload.get("iss") != self.issuer:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token issuer",
            )

        if not payload.get("sub"):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing subject",
                headers={"WWW-Authenticate": "Bearer"},
            )

        return payload


jwt_manager = JWTManager()
