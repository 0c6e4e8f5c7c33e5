"""Referral ledger - code validation, discount pricing and usage accounting"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from ...config import PARTNER_STAFF_DISCOUNT_PERCENT
from ...models import ReferralCode, ReferralUsage
from ..booking.pricing import round2
from .code_parser import generate_referral_code, known_store, parse_referral_code, store_display_name
from .exceptions import InvalidCode, TransientFailure
from .repository import ReferralRepository
from .schemas import DiscountResult

logger = logging.getLogger(__name__)

PARTNER_STAFF = "partner_staff"
CUSTOMER = "customer"


def _percent_label(percent: Decimal) -> str:
    return f"{Decimal(percent).normalize():f}%"


class ReferralLedger:
    """Service layer for referral codes and their usage records"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReferralRepository()

    @contextmanager
    def _storage(self, action: str):
        """Roll back and surface storage outages as TransientFailure"""
        try:
            yield
        except (OperationalError, PoolTimeoutError) as e:
            self.db.rollback()
            logger.error(f"❌ Referral storage failure during {action}: {e}")
            raise TransientFailure(f"Referral storage unavailable during {action}") from e

    # ========================================================================
    # VALIDATION
    # ========================================================================

    def validate_and_price(self, code: str, booking_amount: Decimal) -> DiscountResult:
        """Look up a code and price its discount against the booking amount"""
        normalized = code.strip().upper()

        with self._storage("validation"):
            record = self.repo.get_code(self.db, normalized)

        if record is None:
            logger.info(f"🔍 Referral code not found: {normalized}")
            raise InvalidCode(normalized, "not_found")
        if not record.is_active:
            logger.info(f"🔍 Referral code inactive: {normalized}")
            raise InvalidCode(normalized, "inactive")

        percent = Decimal(record.discount_percent)
        discount_amount = round2(Decimal(booking_amount) * percent / 100)
        # Partner staff codes: the partner absorbs the whole discount
        is_partner = record.issuer_type == PARTNER_STAFF
        subsidy_amount = discount_amount if is_partner else round2(Decimal("0"))

        store_name = record.store_name
        if is_partner and not store_name:
            parsed = parse_referral_code(record.code)
            if parsed.valid:
                store_name = store_display_name(parsed.issuer_tag, parsed.location_tag)

        message = f"{_percent_label(percent)} discount applied"
        if is_partner:
            message += " (subsidized by partner store)"

        return DiscountResult(
            code_id=record.id,
            code=record.code,
            issuer_type=record.issuer_type,
            discount_percent=percent,
            discount_amount=discount_amount,
            subsidy_amount=subsidy_amount,
            staff_name=record.staff_name,
            store_name=store_name,
            message=message,
        )

    # ========================================================================
    # USAGE RECORDING
    # ========================================================================

    def record_usage(
        self,
        code_ref: int,
        booking_ref: str,
        discount_amount: Decimal,
        subsidy_amount: Decimal,
        booking_id: Optional[int] = None,
    ) -> bool:
        """
        Record one redemption and bump the code's counters in one transaction.

        Repeating the call for a booking that already has a usage row changes
        nothing and still reports success. Returns False when the code does
        not exist.
        """
        discount_amount = round2(discount_amount)
        subsidy_amount = round2(subsidy_amount)

        with self._storage("usage recording"):
            if self.repo.get_usage_by_booking_ref(self.db, booking_ref) is not None:
                logger.info(f"♻️ Usage already recorded for booking {booking_ref}")
                return True

            code = self.repo.get_code_by_id(self.db, code_ref)
            if code is None:
                logger.warning(f"⚠️ Cannot record usage, referral code {code_ref} missing")
                return False
            code_label = code.code

            try:
                self.repo.add_usage(
                    self.db,
                    referral_code_id=code_ref,
                    booking_ref=booking_ref,
                    booking_id=booking_id,
                    discount_amount=discount_amount,
                    subsidy_amount=subsidy_amount,
                    subsidized_by_third_party=code.issuer_type == PARTNER_STAFF,
                    status="pending",
                )
                self.repo.increment_code_counters(self.db, code_ref, subsidy_amount)
                self.db.commit()
            except IntegrityError:
                # A concurrent retry for the same booking won the insert
                self.db.rollback()
                logger.info(f"♻️ Usage for booking {booking_ref} recorded by a concurrent request")
                return True

        logger.info(
            f"💸 Recorded referral usage: code={code_label} booking={booking_ref} "
            f"discount={discount_amount} subsidy={subsidy_amount}"
        )
        return True

    # ========================================================================
    # CODE MANAGEMENT
    # ========================================================================

    def create_partner_staff_code(
        self,
        staff_name: str,
        issuer_tag: str,
        location_tag: str,
        custom_code: Optional[str] = None,
        discount_percent: Optional[Decimal] = None,
    ) -> ReferralCode:
        """Issue a code to a member of partner retail staff"""
        if not known_store(issuer_tag, location_tag):
            raise HTTPException(status_code=400, detail="Unknown retailer or store")

        try:
            code = (custom_code or generate_referral_code(issuer_tag, location_tag, staff_name)).strip().upper()
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        if self.repo.get_code(self.db, code) is not None:
            raise HTTPException(status_code=409, detail="Referral code already exists")

        percent = discount_percent if discount_percent is not None else Decimal(PARTNER_STAFF_DISCOUNT_PERCENT)
        logger.info(f"🏷️ Creating partner staff code {code} for {staff_name} ({issuer_tag}/{location_tag})")
        return self.repo.create_code(
            self.db,
            code=code,
            issuer_type=PARTNER_STAFF,
            discount_percent=percent,
            staff_name=staff_name,
            store_name=store_display_name(issuer_tag, location_tag),
            is_active=True,
        )

    def create_customer_code(self, code: str, discount_percent: Decimal) -> ReferralCode:
        code = code.strip().upper()
        if self.repo.get_code(self.db, code) is not None:
            raise HTTPException(status_code=409, detail="Referral code already exists")
        return self.repo.create_code(
            self.db, code=code, issuer_type=CUSTOMER, discount_percent=discount_percent, is_active=True
        )

    def deactivate_code(self, code_id: int) -> bool:
        with self._storage("deactivation"):
            updated = self.repo.set_code_active(self.db, code_id, False)
        if updated:
            logger.info(f"🚫 Deactivated referral code {code_id}")
        return bool(updated)

    def list_active_partner_codes(self) -> list[ReferralCode]:
        return self.repo.get_active_partner_codes(self.db)

    def list_usages(self, code_id: int) -> list[ReferralUsage]:
        """Usage history of one code, newest first"""
        if self.repo.get_code_by_id(self.db, code_id) is None:
            raise HTTPException(status_code=404, detail="Referral code not found")
        return self.repo.get_usages_for_code(self.db, code_id)

    def mark_usage_paid_out(self, usage_id: int) -> bool:
        with self._storage("payout update"):
            return bool(self.repo.mark_usage_paid_out(self.db, usage_id))

    @staticmethod
    def installer_lead_fee_with_subsidy(base_fee: Decimal, subsidy_amount: Decimal) -> Decimal:
        """Lead fee charged to the installer, including the subsidy they absorb"""
        return round2(Decimal(base_fee) + Decimal(subsidy_amount))
