"""Shared route dependencies: auth, database handles, HTTP client."""

import hmac
import uuid
from dataclasses import dataclass
from typing import Annotated

import httpx
from fastapi import Depends, Header, HTTPException, Request, status
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from grantcue.config import settings
from grantcue.db.database import get_db, get_session_factory
from grantcue.models.organization import OrgMember


@dataclass
class AuthUser:
    """Caller identity taken from a verified bearer token."""
    id: uuid.UUID
    email: str | None = None


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):]


async def get_current_user(authorization: Annotated[str | None, Header()] = None) -> AuthUser:
    """Verify the auth provider's JWT and return the caller."""
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": bool(settings.jwt_audience)},
        )
        user_id = uuid.UUID(claims.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthUser(id=user_id, email=claims.get("email"))


def verify_cron_auth(authorization: Annotated[str | None, Header()] = None) -> None:
    """Require the scheduler's shared secret when one is configured."""
    if not settings.cron_secret:
        return

    expected = f"Bearer {settings.cron_secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def get_store() -> async_sessionmaker[AsyncSession]:
    """Session factory handed to the alert and deadline pipelines."""
    return get_session_factory()


def get_http_client(request: Request) -> httpx.AsyncClient:
    """The process-wide outbound client created in the app lifespan."""
    return request.app.state.http_client


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
Store = Annotated[async_sessionmaker[AsyncSession], Depends(get_store)]
HttpClient = Annotated[httpx.AsyncClient, Depends(get_http_client)]


async def require_member(
    db: AsyncSession,
    org_id: uuid.UUID,
    user: AuthUser,
    admin: bool = False,
) -> OrgMember:
    """Return the caller's membership or raise 403."""
    result = await db.execute(
        select(OrgMember)
        .where(OrgMember.org_id == org_id)
        .where(OrgMember.user_id == user.id)
    )
    membership = result.scalar_one_or_none()

    if not membership:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - User is not a member of this organization",
        )
    if admin and not membership.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")

    return membership
