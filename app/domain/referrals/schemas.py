"""Referral domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class DiscountResult(BaseModel):
    """Priced outcome of a valid code"""

    code_id: int
    code: str
    issuer_type: str
    discount_percent: Decimal
    discount_amount: Decimal
    subsidy_amount: Decimal
    staff_name: Optional[str] = None
    store_name: Optional[str] = None
    message: str


class ValidateReferralRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    bookingAmount: Decimal = Field(ge=0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class ValidateReferralResponse(BaseModel):
    valid: bool
    discountPercent: Decimal = Decimal("0")
    discountAmount: Decimal = Decimal("0")
    subsidyAmount: Decimal = Decimal("0")
    codeRef: Optional[int] = None
    message: str


class RecordUsageRequest(BaseModel):
    codeRef: int
    bookingRef: str = Field(min_length=1, max_length=64)
    discountAmount: Decimal = Field(ge=0)
    subsidyAmount: Decimal = Field(ge=0)


class RecordUsageResponse(BaseModel):
    success: bool


class ParsedCodeResponse(BaseModel):
    valid: bool
    issuerTag: Optional[str] = None
    locationTag: Optional[str] = None
    staffTag: Optional[str] = None
    format: Optional[str] = None
    storeName: Optional[str] = None


class PartnerCodeCreate(BaseModel):
    """Schema for issuing a code to partner retail staff"""

    staffName: str = Field(min_length=1, max_length=255)
    issuerTag: str = Field(min_length=2, max_length=2)
    locationTag: str = Field(min_length=3, max_length=3)
    customCode: Optional[str] = Field(default=None, max_length=64)
    discountPercent: Optional[Decimal] = Field(default=None, gt=0, le=100)

    @field_validator("issuerTag", "locationTag")
    @classmethod
    def upper_tags(cls, v: str) -> str:
        return v.strip().upper()


class CustomerCodeCreate(BaseModel):
    code: str = Field(min_length=3, max_length=64)
    discountPercent: Decimal = Field(gt=0, le=100)


class ReferralCodeResponse(BaseModel):
    id: int
    code: str
    issuerType: str
    discountPercent: Decimal
    totalUsageCount: int
    totalSubsidyAccrued: Decimal
    isActive: bool
    staffName: Optional[str] = None
    storeName: Optional[str] = None
    created_at: Optional[datetime] = None


class ReferralUsageResponse(BaseModel):
    id: int
    bookingRef: str
    discountAmount: Decimal
    subsidyAmount: Decimal
    subsidizedByThirdParty: bool
    status: str
    paidOutAt: Optional[datetime] = None
    recordedAt: Optional[datetime] = None


class SuccessResponse(BaseModel):
    success: bool
