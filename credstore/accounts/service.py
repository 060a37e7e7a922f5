from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from credstore.accounts import repository
from credstore.accounts.errors import AccountNotFoundError
from credstore.accounts.schemas import Account, AccountCreate, AccountPage, AccountSummary
from credstore.core.settings import get_settings
from credstore.db.errors import translate_integrity_error
from credstore.db.session import run_with_db_retry


def find_account(email: str) -> Account | None:
    return run_with_db_retry(
        lambda session: repository.get_account_by_email(session, email),
        operation_name="account_lookup_email",
    )


def get_account(email: str) -> Account:
    account = find_account(email)
    if account is None:
        raise AccountNotFoundError()
    return account


def list_accounts(page: int = 0, page_size: int | None = None) -> AccountPage:
    settings = get_settings()
    if page < 0:
        raise ValueError("page must not be negative")
    size = settings.accounts_default_page_size if page_size is None else page_size
    if size < 1:
        raise ValueError("page_size must be positive")
    size = min(size, settings.accounts_max_page_size)
    items = run_with_db_retry(
        lambda session: repository.list_accounts(session, page, size),
        operation_name="account_list",
    )
    return AccountPage(
        page=page,
        page_size=size,
        items=[AccountSummary.model_validate(account) for account in items],
    )


def create_account(account: AccountCreate) -> int:
    try:
        return run_with_db_retry(
            lambda session: repository.create_account(session, account),
            commit=True,
            operation_name="account_create",
        )
    except IntegrityError as exc:
        error = translate_integrity_error(exc, conflict_message="User already exists")
        if error is None:
            raise
        raise error from exc
