from __future__ import annotations

import base64
import uuid
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from credstore.schemas.common import BaseSchema


class PasskeyUser(BaseSchema):
    id: uuid.UUID
    mail: str = Field(min_length=3, max_length=320)
    name: str = Field(min_length=1)


class _CredentialDocument(BaseSchema):
    # ``payload`` is the authenticator library's own serialisation; it is stored untouched.
    version: int = Field(default=1, ge=1)
    payload: dict[str, Any]


class PasskeyDocument(_CredentialDocument):
    kind: Literal["passkey"] = "passkey"


class SecurityKeyDocument(_CredentialDocument):
    kind: Literal["security_key"] = "security_key"


class AttestedPasskeyDocument(_CredentialDocument):
    kind: Literal["attested_passkey"] = "attested_passkey"


CredentialDocument = Annotated[
    Union[PasskeyDocument, SecurityKeyDocument, AttestedPasskeyDocument],
    Field(discriminator="kind"),
]

credential_document_adapter: TypeAdapter[CredentialDocument] = TypeAdapter(CredentialDocument)


class UserCredential(BaseSchema):
    credential_id: bytes
    user_id: uuid.UUID
    credential: CredentialDocument


class UserCredentialResponse(BaseSchema):
    credential_id: str
    user_id: uuid.UUID
    credential: CredentialDocument

    @classmethod
    def from_credential(cls, credential: UserCredential) -> UserCredentialResponse:
        return cls(
            credential_id=encode_credential_id(credential.credential_id),
            user_id=credential.user_id,
            credential=credential.credential,
        )


def encode_credential_id(credential_id: bytes) -> str:
    """Unpadded base64url, as WebAuthn clients send credential ids."""
    return base64.urlsafe_b64encode(credential_id).rstrip(b"=").decode("ascii")
