"""Endpoints about the calling user."""

from fastapi import APIRouter

from backoffice.api.deps import Auth, Session
from backoffice.models.company import MyCompany
from backoffice.services.aggregation import my_companies

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/companies", response_model=list[MyCompany])
async def list_my_companies(auth: Auth, session: Session) -> list[MyCompany]:
    """Companies the caller administers; drives the company picker."""
    return await my_companies(session, auth.user_id)
