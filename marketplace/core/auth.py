# marketplace/core/auth.py
import uuid
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from marketplace.core.config import get_settings
from marketplace.core.errors import Unauthorized
from marketplace.database import get_session
from marketplace.models.user import User
from marketplace.repositories.user_repo import UserRepository

settings = get_settings()

# auto_error=False => missing Authorization header will NOT raise immediately
# so public routes can share the same dependency chain.
bearer_scheme = HTTPBearer(auto_error=False)

user_repo = UserRepository()


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        Unauthorized: if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise Unauthorized("Invalid or expired token")


def _default_name_from_email(email: str) -> str:
    """
    Derive a default display name from email if the user has not
    completed their profile yet.
    """
    if "@" in email:
        return email.split("@", 1)[0]
    return email


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the current user from a Supabase JWT.

    Flow:
      1. If no Authorization header => guest => return None.
      2. Decode JWT => extract 'sub' (auth user id) and 'email'.
      3. Find user profile; auto-provision a minimal one if missing.

    Raises:
        Unauthorized: if token is malformed or missing required claims.
    """
    if credentials is None:
        return None

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise Unauthorized("Token missing sub/email")

    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise Unauthorized("Invalid sub in token")

    user = user_repo.get_by_id(session, sub_uuid)

    # Default role = "user" (admin must be manually promoted).
    if user is None:
        user = user_repo.create(
            session,
            User(
                id=sub_uuid,
                email=email,
                name=_default_name_from_email(email),
                role="user",
            ),
        )

    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    Raises:
        Unauthorized: if no valid token was presented.
    """
    if user is None:
        raise Unauthorized("Not authorized, no token")
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Enforce admin role.

    Raises:
        Unauthorized: if role is not admin.
    """
    if user.role != "admin":
        raise Unauthorized("Not authorized as an admin")
    return user
