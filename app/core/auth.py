# app/core/auth.py
import uuid
from typing import Any

from fastapi import Depends, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session, select

from app.core.config import get_settings
from app.core.errors import AuthError, ValidationError
from app.database import get_session
from app.models.cart import CartOwner, GuestOwner, UserOwner
from app.models.user import User

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can support "guest" mode (unauthenticated).
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an access token (JWT) issued by the identity provider.

    Verification:
      - signature (JWT_ALG using JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified

    Raises:
        AuthError(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise AuthError("Invalid or expired token", code="INVALID_TOKEN")


def _default_name_from_email(email: str) -> str:
    """
    Derive a default display name from email.
    """
    if "@" in email:
        return email.split("@", 1)[0]
    return email


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the current user from a bearer JWT.

    Flow:
      1. If no Authorization header => guest => return None.
      2. Decode JWT => extract 'sub' and 'email'.
      3. Convert 'sub' to UUID to match User.id type.
      4. Find the local user row; auto-provision it if missing.

    Raises:
        AuthError(401): if token is malformed or missing required claims.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise AuthError("Token missing sub/email", code="INVALID_TOKEN")

    try:
        sub_uuid = uuid.UUID(str(sub))
    except ValueError:
        raise AuthError("Invalid sub in token", code="INVALID_TOKEN")

    user = session.exec(select(User).where(User.id == sub_uuid)).first()

    # Default role = "user" (admin must be promoted in the users table).
    if user is None:
        user = User(
            id=sub_uuid,
            email=email,
            name=_default_name_from_email(email),
            role="user",
        )
        session.add(user)
        session.commit()
        session.refresh(user)

    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication.

    Raises:
        AuthError(401): if user is None.
    """
    if user is None:
        raise AuthError("Authentication required", code="AUTH_REQUIRED")
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Enforce admin role.

    Raises:
        AuthError(403): if role is not admin.
    """
    if not user.is_admin:
        raise AuthError(
            "Admin access required",
            code="ACCESS_DENIED",
            status_code=status.HTTP_403_FORBIDDEN,
        )
    return user


def get_guest_session_key(request: Request) -> str | None:
    """
    Guest session key from the configured header, falling back to the cookie.
    """
    key = request.headers.get(settings.GUEST_SESSION_HEADER)
    if not key:
        key = request.cookies.get(settings.GUEST_SESSION_COOKIE)
    if key:
        key = key.strip()
    return key or None


def get_cart_owner(
    request: Request,
    user: User | None = Depends(get_current_user),
) -> CartOwner:
    """
    Who the cart belongs to for this request.

    - authenticated => UserOwner(user.id)
    - otherwise     => GuestOwner(session key)

    Raises:
        ValidationError(400, MISSING_IDENTIFIER): neither is present.
    """
    if user is not None:
        return UserOwner(user.id)

    key = get_guest_session_key(request)
    if key is None:
        raise ValidationError(
            "User token or session ID required",
            code="MISSING_IDENTIFIER",
        )
    if len(key) > 128:
        raise ValidationError("Session ID too long", code="INVALID_SESSION_ID")
    return GuestOwner(key)
