from __future__ import annotations

from credstore.accounts.schemas import Account, AccountCreate
from credstore.queries.catalog import QueryCatalog, get_query_catalog
from credstore.queries.executor import Executor, fetch_all, fetch_one, fetch_optional


def get_account_by_email(
    session: Executor, email: str, catalog: QueryCatalog | None = None
) -> Account | None:
    catalog = catalog if catalog is not None else get_query_catalog()
    row = fetch_optional(session, catalog.get("get-user-by-mail"), email)
    if row is None:
        return None
    return Account.model_validate(dict(row))


def list_accounts(
    session: Executor, page: int, page_size: int, catalog: QueryCatalog | None = None
) -> list[Account]:
    catalog = catalog if catalog is not None else get_query_catalog()
    rows = fetch_all(session, catalog.get("get-user-credentials"), page_size, page * page_size)
    return [Account.model_validate(dict(row)) for row in rows]


def create_account(
    session: Executor, account: AccountCreate, catalog: QueryCatalog | None = None
) -> int:
    catalog = catalog if catalog is not None else get_query_catalog()
    row = fetch_one(
        session,
        catalog.get("create-user"),
        account.name,
        account.email,
        account.password_plain,
        account.password_hashed,
        account.password_salted,
        account.password_peppered,
        account.password_salted_and_peppered,
    )
    return int(row["id"])
