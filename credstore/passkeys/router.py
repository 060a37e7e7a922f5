from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from credstore.passkeys.schemas import PasskeyUser, UserCredentialResponse
from credstore.passkeys.service import get_user_by_mail, list_credentials


router = APIRouter(tags=["passkeys"])


@router.get("/passkey-users/by-email", response_model=PasskeyUser)
def get_passkey_user(mail: str = Query(min_length=3, max_length=320)) -> PasskeyUser:
    return get_user_by_mail(mail)


@router.get(
    "/passkey-users/{user_id}/credentials",
    response_model=list[UserCredentialResponse],
)
def get_passkey_credentials(user_id: uuid.UUID) -> list[UserCredentialResponse]:
    return [UserCredentialResponse.from_credential(item) for item in list_credentials(user_id)]
