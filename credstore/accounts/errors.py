from __future__ import annotations

from credstore.utils.errors import AppError


class AccountNotFoundError(AppError):
    def __init__(self, message: str = "Account does not exist") -> None:
        super().__init__(
            code="account_not_found",
            message=message,
            classification="client",
            status_code=404,
        )
