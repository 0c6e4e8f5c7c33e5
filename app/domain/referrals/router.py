"""Referral router - FastAPI endpoints for code validation, usage recording and code administration"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...config import REFERRAL_VALIDATE_RATE_LIMIT, REFERRAL_VALIDATE_RATE_WINDOW
from ...database import get_db
from ...models import ReferralCode
from ...rate_limiter import create_rate_limiter
from ...shared.security import require_admin_key
from .code_parser import parse_referral_code, store_display_name
from .exceptions import InvalidCode, TransientFailure
from .schemas import (
    CustomerCodeCreate,
    ParsedCodeResponse,
    PartnerCodeCreate,
    RecordUsageRequest,
    RecordUsageResponse,
    ReferralCodeResponse,
    ReferralUsageResponse,
    SuccessResponse,
    ValidateReferralRequest,
    ValidateReferralResponse,
)
from .service import ReferralLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/referrals", tags=["Referrals"])

# Per-IP guard against brute-forcing codes
validate_rate_limit = create_rate_limiter(
    limit=REFERRAL_VALIDATE_RATE_LIMIT,
    window_seconds=REFERRAL_VALIDATE_RATE_WINDOW,
    key_prefix="referral_validate",
)

RETRY_MESSAGE = "Referral service temporarily unavailable, please try again"


def get_referral_ledger(db: Session = Depends(get_db)) -> ReferralLedger:
    """Dependency injection for ReferralLedger"""
    return ReferralLedger(db)


@router.post("/validate", response_model=ValidateReferralResponse)
async def validate_referral_code(
    data: ValidateReferralRequest,
    _: None = Depends(validate_rate_limit),
    ledger: ReferralLedger = Depends(get_referral_ledger),
):
    """Check a code and price its discount for the given booking amount"""
    try:
        result = ledger.validate_and_price(data.code, data.bookingAmount)
    except InvalidCode:
        return ValidateReferralResponse(valid=False, message="Invalid or inactive referral code")
    except TransientFailure:
        raise HTTPException(status_code=503, detail=RETRY_MESSAGE)

    return ValidateReferralResponse(
        valid=True,
        discountPercent=result.discount_percent,
        discountAmount=result.discount_amount,
        subsidyAmount=result.subsidy_amount,
        codeRef=result.code_id,
        message=result.message,
    )


@router.post("/usage", response_model=RecordUsageResponse)
async def record_referral_usage(
    data: RecordUsageRequest,
    ledger: ReferralLedger = Depends(get_referral_ledger),
):
    """Record a redemption; repeating the call for the same booking is safe"""
    try:
        success = ledger.record_usage(
            data.codeRef, data.bookingRef, data.discountAmount, data.subsidyAmount
        )
    except TransientFailure:
        raise HTTPException(status_code=503, detail=RETRY_MESSAGE)

    # success=False when the code does not exist
    return RecordUsageResponse(success=success)


@router.get("/parse/{code}", response_model=ParsedCodeResponse)
async def parse_code(code: str):
    parsed = parse_referral_code(code)
    if not parsed.valid:
        return ParsedCodeResponse(valid=False)
    return ParsedCodeResponse(
        valid=True,
        issuerTag=parsed.issuer_tag,
        locationTag=parsed.location_tag,
        staffTag=parsed.staff_tag,
        format=parsed.format,
        storeName=store_display_name(parsed.issuer_tag, parsed.location_tag),
    )


# ============================================================================
# CODE ADMINISTRATION
# ============================================================================


def _code_response(code: ReferralCode) -> ReferralCodeResponse:
    return ReferralCodeResponse(
        id=code.id,
        code=code.code,
        issuerType=code.issuer_type,
        discountPercent=code.discount_percent,
        totalUsageCount=code.total_usage_count,
        totalSubsidyAccrued=code.total_subsidy_accrued,
        isActive=code.is_active,
        staffName=code.staff_name,
        storeName=code.store_name,
        created_at=code.created_at,
    )


@router.post(
    "/partner-codes",
    response_model=ReferralCodeResponse,
    status_code=201,
    dependencies=[Depends(require_admin_key)],
)
async def create_partner_code(
    data: PartnerCodeCreate,
    ledger: ReferralLedger = Depends(get_referral_ledger),
):
    """Issue a code to a member of partner retail staff"""
    code = ledger.create_partner_staff_code(
        data.staffName, data.issuerTag, data.locationTag, data.customCode, data.discountPercent
    )
    return _code_response(code)


@router.get(
    "/partner-codes",
    response_model=list[ReferralCodeResponse],
    dependencies=[Depends(require_admin_key)],
)
async def list_partner_codes(ledger: ReferralLedger = Depends(get_referral_ledger)):
    return [_code_response(c) for c in ledger.list_active_partner_codes()]


@router.post(
    "/customer-codes",
    response_model=ReferralCodeResponse,
    status_code=201,
    dependencies=[Depends(require_admin_key)],
)
async def create_customer_code(
    data: CustomerCodeCreate,
    ledger: ReferralLedger = Depends(get_referral_ledger),
):
    return _code_response(ledger.create_customer_code(data.code, data.discountPercent))


@router.post(
    "/codes/{code_id}/deactivate",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def deactivate_code(code_id: int, ledger: ReferralLedger = Depends(get_referral_ledger)):
    try:
        deactivated = ledger.deactivate_code(code_id)
    except TransientFailure:
        raise HTTPException(status_code=503, detail=RETRY_MESSAGE)
    if not deactivated:
        raise HTTPException(status_code=404, detail="Referral code not found")
    return SuccessResponse(success=True)


@router.get(
    "/codes/{code_id}/usages",
    response_model=list[ReferralUsageResponse],
    dependencies=[Depends(require_admin_key)],
)
async def list_code_usages(code_id: int, ledger: ReferralLedger = Depends(get_referral_ledger)):
    """Redemption history of one code, newest first"""
    return [
        ReferralUsageResponse(
            id=u.id,
            bookingRef=u.booking_ref,
            discountAmount=u.discount_amount,
            subsidyAmount=u.subsidy_amount,
            subsidizedByThirdParty=u.subsidized_by_third_party,
            status=u.status,
            paidOutAt=u.paid_out_at,
            recordedAt=u.recorded_at,
        )
        for u in ledger.list_usages(code_id)
    ]


@router.post(
    "/usages/{usage_id}/paid-out",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin_key)],
)
async def mark_usage_paid_out(usage_id: int, ledger: ReferralLedger = Depends(get_referral_ledger)):
    """Pending usage -> paid_out; anything else is left alone"""
    try:
        updated = ledger.mark_usage_paid_out(usage_id)
    except TransientFailure:
        raise HTTPException(status_code=503, detail=RETRY_MESSAGE)
    return SuccessResponse(success=updated)
