"""Bank account schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BankAccountCreate(BaseModel):
    group_name: str = Field(min_length=1, max_length=50)
    account_name: str = Field(min_length=1, max_length=255)
    account_number: str = Field(min_length=8, max_length=50, pattern=r"^\d+$")
    bank_name: str = Field(min_length=1, max_length=255)
    bank_code: str = Field(min_length=3, max_length=20)
    branch_code: str | None = Field(default=None, max_length=20)
    swift_code: str | None = Field(default=None, max_length=20)
    is_verified: bool = False
    is_default: bool = False


class BankAccountUpdate(BaseModel):
    account_name: str | None = Field(default=None, min_length=1, max_length=255)
    account_number: str | None = Field(default=None, min_length=8, max_length=50, pattern=r"^\d+$")
    bank_name: str | None = Field(default=None, min_length=1, max_length=255)
    bank_code: str | None = Field(default=None, min_length=3, max_length=20)
    branch_code: str | None = Field(default=None, max_length=20)
    swift_code: str | None = Field(default=None, max_length=20)
    is_verified: bool | None = None
    is_default: bool | None = None
    is_active: bool | None = None


class BankAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    restaurant_id: UUID
    group_name: str
    account_name: str
    account_number: str
    bank_name: str
    bank_code: str
    branch_code: str | None = None
    swift_code: str | None = None
    is_verified: bool
    is_default: bool
    is_active: bool
    created_at: datetime | None = None
