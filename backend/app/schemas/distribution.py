"""Distribution group and tip distribution schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DistributionGroupConfig(BaseModel):
    group_name: str
    percentage: Decimal
    recipient_account: str | None = Field(default=None, max_length=255)


class DistributionGroupsUpdate(BaseModel):
    groups: list[DistributionGroupConfig]


class DistributionGroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    restaurant_id: UUID
    group_name: str
    percentage: Decimal
    recipient_account: str | None = None
    created_at: datetime | None = None


class DistributionValidationResult(BaseModel):
    is_valid: bool
    errors: list[str]
    total_percentage: Decimal


class DistributionRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tip_id: UUID
    group_name: str
    percentage: Decimal
    amount: Decimal


class DistributionShare(BaseModel):
    group_name: str
    percentage: Decimal
    amount: Decimal


class DistributionPreview(BaseModel):
    distributions: list[DistributionShare]
    total_distributed: Decimal


class DistributionSummaryItem(BaseModel):
    group_name: str
    tip_count: int
    total_amount: Decimal
