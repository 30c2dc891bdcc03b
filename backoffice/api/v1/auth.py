"""Authentication endpoints: login, password flows, first access."""

from fastapi import APIRouter
from pydantic import BaseModel, EmailStr, Field

from backoffice.api.deps import Auth, Notify, Session
from backoffice.models.credential_token import TokenKind
from backoffice.models.user import UserRead
from backoffice.services import credentials
from backoffice.services.credentials import LoginResult
from backoffice.services.users import get_user_or_404

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Schemas ──────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class PasswordChange(BaseModel):
    new_password: str = Field(min_length=6, max_length=128)
    confirm_password: str


class OwnPasswordChange(PasswordChange):
    name: str | None = Field(default=None, max_length=255)


class FirstAccessRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=8, max_length=128)
    confirm_password: str = Field(min_length=1)


class FirstAccessInfo(BaseModel):
    email: str
    name: str


class MessageResponse(BaseModel):
    message: str = "ok"


# ── Routes ───────────────────────────────────────────────────

@router.post("/login", response_model=LoginResult)
async def login(body: LoginRequest, session: Session) -> LoginResult:
    """Authenticate with email + password, receive a JWT."""
    user = await credentials.authenticate(session, body.email, body.password)
    return credentials.login(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(auth: Auth) -> MessageResponse:
    """Stateless: the client drops its token."""
    return MessageResponse()


@router.get("/me", response_model=UserRead)
async def me(auth: Auth, session: Session) -> UserRead:
    user = await get_user_or_404(session, auth.user_id)
    return UserRead.model_validate(user)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_own_password(
    body: OwnPasswordChange, auth: Auth, session: Session
) -> MessageResponse:
    await credentials.reset_own_password(
        session, auth.user_id, body.new_password, body.confirm_password, name=body.name
    )
    return MessageResponse()


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest, session: Session, notifier: Notify
) -> MessageResponse:
    """Always succeeds so account existence never leaks."""
    await credentials.request_password_reset(session, notifier, body.email)
    return MessageResponse()


@router.post("/reset-password/{token}", response_model=MessageResponse)
async def confirm_password_reset(
    token: str, body: PasswordChange, session: Session
) -> MessageResponse:
    await credentials.confirm_password_reset(
        session, token, body.new_password, body.confirm_password
    )
    return MessageResponse()


@router.get("/first-access/{token}", response_model=FirstAccessInfo)
async def validate_first_access(token: str, session: Session) -> FirstAccessInfo:
    """Check a first-access link before showing the form."""
    user = await credentials.peek(session, token, TokenKind.FIRST_ACCESS)
    return FirstAccessInfo(email=user.email, name=user.name)


@router.post("/first-access/{token}", response_model=LoginResult)
async def consume_first_access(
    token: str, body: FirstAccessRequest, session: Session
) -> LoginResult:
    return await credentials.consume_first_access(
        session, token, body.name, body.new_password, body.confirm_password
    )
