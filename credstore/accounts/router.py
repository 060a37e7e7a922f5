from __future__ import annotations

from fastapi import APIRouter, Query

from credstore.accounts.schemas import AccountPage, AccountSummary
from credstore.accounts.service import get_account, list_accounts


router = APIRouter(tags=["accounts"])


@router.get("/accounts/by-email", response_model=AccountSummary)
def get_account_by_email(email: str = Query(min_length=3, max_length=320)) -> AccountSummary:
    return AccountSummary.model_validate(get_account(email))


@router.get("/accounts", response_model=AccountPage)
def get_accounts(
    page: int = Query(default=0, ge=0),
    page_size: int | None = Query(default=None, ge=1),
) -> AccountPage:
    return list_accounts(page, page_size)
