import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from .config import SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .models import Profile

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


def verify_access_token(token: str) -> dict:
    """
    Verify an access token issued by the hosted auth platform.
    Tokens are HS256 JWTs signed with the project JWT secret.
    """
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, token length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    try:
        return jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except JWTError as e:
        logger.warning(f"⚠️ JWT verification failed: {e}")
        raise HTTPException(status_code=401, detail="Token verification failed") from e


def get_or_create_profile(claims: dict, db: Session) -> Profile:
    """Find or create the profile row for a verified token subject"""
    user_id = claims.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile:
        return profile

    metadata = claims.get("user_metadata") or {}
    email = claims.get("email")
    logger.info(f"🆕 Creating profile for new subject: {email}")
    profile = Profile(
        id=user_id,
        email=email,
        full_name=metadata.get("full_name") or metadata.get("name"),
        phone=claims.get("phone") or None,
        role=metadata.get("role") or "patient",
    )
    db.add(profile)
    try:
        db.commit()
        db.refresh(profile)
    except Exception:
        db.rollback()
        # Created concurrently by a parallel request
        profile = db.query(Profile).filter(Profile.id == user_id).first()
        if not profile:
            raise
    return profile


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    """Get current user from the Bearer access token"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    claims = verify_access_token(credentials.credentials)
    profile = get_or_create_profile(claims, db)
    logger.debug(f"✅ User authenticated: {profile.id}")
    return profile
