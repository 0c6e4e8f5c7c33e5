"""Referral repository - Database operations for codes and usage records"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ...models import ReferralCode, ReferralUsage


class ReferralRepository:
    """Repository for referral database operations"""

    @staticmethod
    def get_code(db: Session, code: str) -> Optional[ReferralCode]:
        """Get a code record by its code string"""
        return db.query(ReferralCode).filter(ReferralCode.code == code).first()

    @staticmethod
    def get_code_by_id(db: Session, code_id: int) -> Optional[ReferralCode]:
        return db.query(ReferralCode).filter(ReferralCode.id == code_id).first()

    @staticmethod
    def get_active_partner_codes(db: Session) -> list[ReferralCode]:
        return (
            db.query(ReferralCode)
            .filter(ReferralCode.issuer_type == "partner_staff", ReferralCode.is_active.is_(True))
            .order_by(ReferralCode.created_at.desc())
            .all()
        )

    @staticmethod
    def create_code(db: Session, **code_data) -> ReferralCode:
        code = ReferralCode(**code_data)
        db.add(code)
        db.commit()
        db.refresh(code)
        return code

    @staticmethod
    def set_code_active(db: Session, code_id: int, is_active: bool) -> int:
        updated = (
            db.query(ReferralCode)
            .filter(ReferralCode.id == code_id)
            .update({ReferralCode.is_active: is_active}, synchronize_session=False)
        )
        db.commit()
        return updated

    @staticmethod
    def get_usage_by_booking_ref(db: Session, booking_ref: str) -> Optional[ReferralUsage]:
        return db.query(ReferralUsage).filter(ReferralUsage.booking_ref == booking_ref).first()

    @staticmethod
    def get_usages_for_code(db: Session, code_id: int) -> list[ReferralUsage]:
        return (
            db.query(ReferralUsage)
            .filter(ReferralUsage.referral_code_id == code_id)
            .order_by(ReferralUsage.recorded_at.desc())
            .all()
        )

    @staticmethod
    def add_usage(db: Session, **usage_data) -> ReferralUsage:
        """Stage a usage row in the current transaction (caller commits)"""
        usage = ReferralUsage(**usage_data)
        db.add(usage)
        db.flush()
        return usage

    @staticmethod
    def increment_code_counters(db: Session, code_id: int, subsidy_amount: Decimal) -> int:
        """
        Bump usage count and accrued subsidy in a single UPDATE.

        The arithmetic runs in the database, so concurrent redemptions of the
        same code never overwrite each other. Returns the matched row count.
        """
        return (
            db.query(ReferralCode)
            .filter(ReferralCode.id == code_id)
            .update(
                {
                    ReferralCode.total_usage_count: ReferralCode.total_usage_count + 1,
                    ReferralCode.total_subsidy_accrued: ReferralCode.total_subsidy_accrued
                    + subsidy_amount,
                },
                synchronize_session=False,
            )
        )

    @staticmethod
    def mark_usage_paid_out(db: Session, usage_id: int) -> int:
        """Status-only transition; monetary columns are never touched"""
        updated = (
            db.query(ReferralUsage)
            .filter(ReferralUsage.id == usage_id, ReferralUsage.status == "pending")
            .update(
                {
                    ReferralUsage.status: "paid_out",
                    ReferralUsage.paid_out_at: datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        )
        db.commit()
        return updated
