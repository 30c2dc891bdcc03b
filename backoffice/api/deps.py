"""FastAPI dependencies for authentication and authority guards."""

import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from backoffice.core.database import get_session
from backoffice.core.errors import Forbidden
from backoffice.core.security import decode_jwt
from backoffice.models.base import not_deleted
from backoffice.models.company import Company
from backoffice.models.membership import CompanyScope, MembershipRole
from backoffice.services.membership import find_active_membership
from backoffice.services.notifications import Notifier, get_notifier

bearer_scheme = HTTPBearer()


class AuthContext:
    """Resolved identity carried through a request, straight from the JWT claims."""

    __slots__ = ("user_id", "email", "is_superuser", "must_reset_password")

    def __init__(
        self,
        user_id: uuid.UUID,
        email: str,
        is_superuser: bool = False,
        must_reset_password: bool = False,
    ) -> None:
        self.user_id = user_id
        self.email = email
        self.is_superuser = is_superuser
        self.must_reset_password = must_reset_password


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
) -> AuthContext:
    """Decode the bearer JWT into an AuthContext."""
    try:
        payload = decode_jwt(credentials.credentials)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired JWT",
        ) from exc

    try:
        return AuthContext(
            user_id=uuid.UUID(payload["sub"]),
            email=payload["email"],
            is_superuser=bool(payload.get("su", False)),
            must_reset_password=bool(payload.get("mrp", False)),
        )
    except (KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed JWT payload",
        ) from exc


# Typed shorthand for use in route signatures
Auth = Annotated[AuthContext, Depends(get_auth_context)]
Session = Annotated[AsyncSession, Depends(get_session)]
Notify = Annotated[Notifier, Depends(get_notifier)]


async def require_superuser(auth: Auth) -> AuthContext:
    if not auth.is_superuser:
        raise Forbidden("Restricted to superusers")
    return auth


async def require_company_admin(
    company_id: uuid.UUID, auth: Auth, session: Session
) -> AuthContext:
    """Caller must hold an active admin row in an active company.

    Superusers get no implicit pass here.
    """
    membership = await find_active_membership(
        session, auth.user_id, CompanyScope(company_id), role=MembershipRole.ADMIN
    )
    stmt = select(Company.id).where(
        Company.id == company_id,
        Company.is_active.is_(True),  # type: ignore[attr-defined]
        not_deleted(Company),
    )
    company = (await session.execute(stmt)).scalars().first()
    if membership is None or company is None:
        raise Forbidden("Restricted to administrators of this company")
    return auth


SuperUser = Annotated[AuthContext, Depends(require_superuser)]
CompanyAdmin = Annotated[AuthContext, Depends(require_company_admin)]
