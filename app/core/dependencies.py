import logging
from typing import Optional

import httpx
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.core.security import JWTManager
from app.models.admin import Admin
from app.models.user import User
from app.services.notification import EmailService
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_jwt_manager(settings: Settings = Depends(get_settings)) -> JWTManager:
    return JWTManager(settings)


def _sync_user(db: Session, payload: dict) -> User:
    """Create or refresh the local profile from the token claims."""
    user_id = str(payload["sub"])
    user = db.query(User).filter(User.id == user_id).first()

    if not user:
        user = User(
            id=user_id,
            email=(payload.get("email") or None),
            display_name=payload.get("name"),
        )
        db.add(user)
        logger.info(f"Registered profile for user {user_id}")
    else:
        if payload.get("email") and payload["email"] != user.email:
            user.email = payload["email"]
        if payload.get("name") and payload["name"] != user.display_name:
            user.display_name = payload["name"]

    user.last_seen = utcnow()
    db.commit()
    db.refresh(user)
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(security),
    db: Session = Depends(get_db),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
) -> User:
    """
    Dependency that requires a valid Bearer token and returns the user.
    Raises 401 Unauthorized if the token is missing or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = jwt_manager.verify_token(credentials.credentials, "access")
    return _sync_user(db, payload)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
) -> Optional[User]:
    """
    Dependency that returns a user if a valid token is provided, or None otherwise.
    """
    if not credentials:
        return None

    try:
        payload = jwt_manager.verify_token(credentials.credentials, "access")
    except HTTPException:
        # Invalid tokens are treated as an anonymous visitor
        return None

    return _sync_user(db, payload)


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Security(security),
    db: Session = Depends(get_db),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
) -> Admin:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = jwt_manager.verify_token(credentials.credentials, "access")
    email = (payload.get("email") or "").lower()
    if not email:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )

    admin = db.query(Admin).filter(Admin.email == email).first()

    if not admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )
    if not admin.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin account is not verified",
        )

    if admin.user_id is None:
        admin.user_id = str(payload["sub"])
        db.commit()

    return admin


def get_email_transport() -> Optional[httpx.BaseTransport]:
    """HTTP transport for EmailJS; ``None`` means the real network."""
    return None


def get_email_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.BaseTransport] = Depends(get_email_transport),
) -> EmailService:
    return EmailService(db, settings, transport=transport)
