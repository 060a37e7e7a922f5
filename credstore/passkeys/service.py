from __future__ import annotations

import uuid

from sqlalchemy.exc import IntegrityError

from credstore.db.errors import translate_integrity_error
from credstore.db.session import run_with_db_retry
from credstore.passkeys import repository
from credstore.passkeys.errors import PasskeyUserNotFoundError
from credstore.passkeys.schemas import PasskeyUser, UserCredential


def find_user_by_mail(mail: str) -> PasskeyUser | None:
    return run_with_db_retry(
        lambda session: repository.get_user_by_mail(session, mail),
        operation_name="passkey_user_lookup_mail",
    )


def get_user_by_mail(mail: str) -> PasskeyUser:
    user = find_user_by_mail(mail)
    if user is None:
        raise PasskeyUserNotFoundError()
    return user


def get_user(user_id: uuid.UUID) -> PasskeyUser:
    user = run_with_db_retry(
        lambda session: repository.get_user_by_id(session, user_id),
        operation_name="passkey_user_lookup_id",
    )
    if user is None:
        raise PasskeyUserNotFoundError()
    return user


def create_user(user: PasskeyUser) -> uuid.UUID:
    try:
        return run_with_db_retry(
            lambda session: repository.create_user(session, user),
            commit=True,
            operation_name="passkey_user_create",
        )
    except IntegrityError as exc:
        error = translate_integrity_error(exc, conflict_message="User already exists")
        if error is None:
            raise
        raise error from exc


def list_credential_ids(user_id: uuid.UUID) -> list[bytes]:
    return run_with_db_retry(
        lambda session: repository.get_user_credential_ids(session, user_id),
        operation_name="passkey_credential_ids",
    )


def list_credentials(user_id: uuid.UUID) -> list[UserCredential]:
    get_user(user_id)
    return run_with_db_retry(
        lambda session: repository.get_user_credentials(session, user_id),
        operation_name="passkey_credentials",
    )


def add_credential(credential: UserCredential) -> bytes:
    try:
        return run_with_db_retry(
            lambda session: repository.create_user_credential(session, credential),
            commit=True,
            operation_name="passkey_credential_create",
        )
    except IntegrityError as exc:
        error = translate_integrity_error(
            exc,
            conflict_message="Credential id already exists",
            missing_reference_message="Passkey user does not exist",
        )
        if error is None:
            raise
        raise error from exc
