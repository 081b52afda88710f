"""
FastAPI routes – account registration and credential checks.

Demonstrates:
- Dependency injection (database session via Depends)
- Plaintext passwords encrypted by the session hook, never stored or logged
- Credential verification against a digest without decrypting it
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from encrypted_attributes.config import settings
from encrypted_attributes.models.database import get_db
from encrypted_attributes.models.user import User
from encrypted_attributes.schemas.api import (
    CredentialsRequest,
    HealthResponse,
    RegistrationRequest,
    SessionResponse,
    UserResponse,
)
from encrypted_attributes.services.errors import ConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """Basic health endpoint – verifies DB connectivity."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError:
        db_status = "disconnected"
    return HealthResponse(
        status="healthy",
        environment=settings.ENVIRONMENT,
        database=db_status,
    )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@router.post("/users", response_model=UserResponse, status_code=201)
def register_user(request: RegistrationRequest, db: Session = Depends(get_db)):
    """Create an account; the password is digested when the session flushes."""
    if request.password_confirmation is not None and request.password_confirmation != request.password:
        raise HTTPException(status_code=422, detail="Password confirmation does not match")

    if _login_taken(db, request.login):
        raise HTTPException(status_code=409, detail="Login is already taken")

    user = User(
        login=request.login,
        password=request.password,
        password_confirmation=request.password_confirmation,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent registration claimed the login after the check above
        db.rollback()
        logger.info("Login %s was taken concurrently", request.login)
        raise HTTPException(status_code=409, detail="Login is already taken")
    except ConfigurationError:
        db.rollback()
        logger.exception("Password encryption is misconfigured")
        raise HTTPException(status_code=500, detail="Encryption is not configured")

    logger.info("Registered user %s", user.login)
    return UserResponse(id=user.id, login=user.login)


@router.post("/sessions", response_model=SessionResponse)
def authenticate(request: CredentialsRequest, db: Session = Depends(get_db)):
    """Verify a login/password pair against the stored digest."""
    user = db.query(User).filter(User.login == request.login).first()
    stored = user.crypted_password if user else None

    if stored is None or not stored.equals_plaintext(request.password):
        logger.info("Rejected credentials for %s", request.login)
        raise HTTPException(status_code=401, detail="Invalid login or password")

    return SessionResponse(user=UserResponse(id=user.id, login=user.login))


def _login_taken(db: Session, login: str) -> bool:
    return db.query(User.id).filter(User.login == login).first() is not None
