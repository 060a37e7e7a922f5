from __future__ import annotations

from pydantic import Field

from credstore.schemas.common import BaseSchema, Page


class AccountCreate(BaseSchema):
    """Row values for ``create-user``; every representation is supplied by the caller."""

    name: str = Field(min_length=1)
    email: str = Field(min_length=3, max_length=320)
    password_plain: str
    password_hashed: str
    password_salted: str
    password_peppered: str
    password_salted_and_peppered: str


class Account(AccountCreate):
    id: int


class AccountSummary(BaseSchema):
    # Password columns never leave the service.
    id: int
    name: str
    email: str


class AccountPage(Page):
    items: list[AccountSummary]
