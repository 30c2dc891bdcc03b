"""Row builders and auth headers shared by the test modules."""

from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.security import create_jwt, hash_password
from backoffice.models.company import Company
from backoffice.models.membership import CompanyScope, Membership, MembershipRole
from backoffice.models.user import User


class RecordingSender:
    """Stands in for the Resend sender; records instead of sending."""

    def __init__(self) -> None:
        self.sent: list[tuple] = []
        self.fail = False

    async def send(self, kind, recipient, data) -> None:
        if self.fail:
            raise RuntimeError("mail provider unavailable")
        self.sent.append((kind, recipient, data))


def headers_for(user: User) -> dict:
    token = create_jwt(
        subject=str(user.id),
        email=user.email,
        is_superuser=user.is_superuser,
        must_reset_password=user.must_reset_password,
    )
    return {"Authorization": f"Bearer {token}"}


async def make_user(
    session: AsyncSession,
    email: str,
    *,
    password: str = "password123",
    name: str = "",
    is_superuser: bool = False,
    must_reset_password: bool = False,
) -> User:
    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name or email.split("@")[0],
        is_superuser=is_superuser,
        must_reset_password=must_reset_password,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def make_company(
    session: AsyncSession,
    admin: User,
    *,
    tax_id: str = "11222333000181",
    legal_name: str = "Acme Ltda",
) -> Company:
    """A company with ``admin`` as its only admin."""
    company = Company(legal_name=legal_name, tax_id=tax_id, created_by_id=admin.id)
    session.add(company)
    await session.flush()
    session.add(Membership.for_scope(admin.id, CompanyScope(company.id), MembershipRole.ADMIN))
    await session.commit()
    await session.refresh(company)
    return company


async def add_membership(
    session: AsyncSession, user: User, scope, role: MembershipRole
) -> Membership:
    membership = Membership.for_scope(user.id, scope, role)
    session.add(membership)
    await session.commit()
    await session.refresh(membership)
    return membership
