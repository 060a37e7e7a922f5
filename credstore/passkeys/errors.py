from __future__ import annotations

from credstore.utils.errors import AppError


class PasskeyUserNotFoundError(AppError):
    def __init__(self, message: str = "User does not exist") -> None:
        super().__init__(
            code="passkey_user_not_found",
            message=message,
            classification="client",
            status_code=404,
        )
