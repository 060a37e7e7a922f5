from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from credstore.passkeys.schemas import (
    PasskeyUser,
    UserCredential,
    credential_document_adapter,
)
from credstore.queries.catalog import QueryCatalog, get_query_catalog
from credstore.queries.executor import Executor, fetch_all, fetch_one, fetch_optional


logger = logging.getLogger(__name__)


def _as_uuid(value: Any) -> uuid.UUID:
    # PostgreSQL hands back UUID objects, SQLite the text we stored.
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _as_document(value: Any) -> Any:
    # JSONB arrives decoded; a JSON text column arrives as a string.
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _user_from_row(row) -> PasskeyUser:
    return PasskeyUser(id=_as_uuid(row["id"]), mail=row["mail"], name=row["name"])


def get_user_by_mail(
    session: Executor, mail: str, catalog: QueryCatalog | None = None
) -> PasskeyUser | None:
    catalog = catalog if catalog is not None else get_query_catalog()
    row = fetch_optional(session, catalog.get("passkey/get-user-by-mail"), mail)
    return None if row is None else _user_from_row(row)


def get_user_by_id(
    session: Executor, user_id: uuid.UUID, catalog: QueryCatalog | None = None
) -> PasskeyUser | None:
    catalog = catalog if catalog is not None else get_query_catalog()
    row = fetch_optional(session, catalog.get("passkey/get-user-by-id"), str(user_id))
    return None if row is None else _user_from_row(row)


def create_user(
    session: Executor, user: PasskeyUser, catalog: QueryCatalog | None = None
) -> uuid.UUID:
    catalog = catalog if catalog is not None else get_query_catalog()
    row = fetch_one(
        session,
        catalog.get("passkey/create-user"),
        str(user.id),
        user.mail,
        user.name,
    )
    return _as_uuid(row["id"])


def get_user_credential_ids(
    session: Executor, user_id: uuid.UUID, catalog: QueryCatalog | None = None
) -> list[bytes]:
    catalog = catalog if catalog is not None else get_query_catalog()
    rows = fetch_all(
        session, catalog.get("passkey/get-user-credential-ids-by-user-id"), str(user_id)
    )
    return [bytes(row["credential_id"]) for row in rows]


def get_user_credentials(
    session: Executor, user_id: uuid.UUID, catalog: QueryCatalog | None = None
) -> list[UserCredential]:
    catalog = catalog if catalog is not None else get_query_catalog()
    rows = fetch_all(session, catalog.get("passkey/get-user-credentials"), str(user_id))
    credentials: list[UserCredential] = []
    for row in rows:
        try:
            document = credential_document_adapter.validate_python(
                _as_document(row["credential"])
            )
        except ValueError as exc:
            logger.warning(
                "passkey_credential_unreadable",
                extra={"user_id": str(user_id), "detail": str(exc)},
            )
            continue
        credentials.append(
            UserCredential(
                credential_id=bytes(row["credential_id"]),
                user_id=_as_uuid(row["user_id"]),
                credential=document,
            )
        )
    return credentials


def create_user_credential(
    session: Executor, credential: UserCredential, catalog: QueryCatalog | None = None
) -> bytes:
    catalog = catalog if catalog is not None else get_query_catalog()
    document = credential_document_adapter.dump_python(credential.credential, mode="json")
    row = fetch_one(
        session,
        catalog.get("passkey/create-user-credentials"),
        credential.credential_id,
        str(credential.user_id),
        json.dumps(document),
    )
    return bytes(row["credential_id"])
