"""Signed-in account endpoints."""

from fastapi import APIRouter

from trustlens.api.v1.dependencies import CurrentAccountDep, SessionDep
from trustlens.schemas.account import AccountResponse
from trustlens.services.balance import BalanceService

router = APIRouter(prefix="/account", tags=["account"])


@router.get("", response_model=AccountResponse)
async def get_account(account_id: CurrentAccountDep, db: SessionDep) -> AccountResponse:
    """Return the caller's credit balance, creating an empty profile on first use."""
    profile = BalanceService(db).ensure_profile(account_id)
    return AccountResponse(account_id=profile.id, credits=profile.credits)
