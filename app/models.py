import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Booking(Base):
    """Installation booking created when a configuration session is submitted"""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, index=True, default=generate_public_id)
    status = Column(String(50), default="open", nullable=False)  # open, assigned, completed, cancelled

    # Selections
    item_count = Column(Integer, default=1, nullable=False)
    items = Column(JSON, default=list, nullable=False)  # Snapshot of configured installation items
    notes = Column(Text, nullable=True)
    preferred_date = Column(String(20), nullable=True)
    preferred_time = Column(String(20), nullable=True)
    # Direct bookings bypass open marketplace matching
    direct_provider_id = Column(String(64), nullable=True)

    # Contact
    contact_name = Column(String(255), nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)

    # Pricing - estimated_total is the aggregate's computed total before discount
    estimated_total = Column(Numeric(12, 2), nullable=False, default=0)
    referral_code = Column(String(64), nullable=True)
    referral_discount = Column(Numeric(12, 2), nullable=False, default=0)
    final_total = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    referral_usage = relationship("ReferralUsage", back_populates="booking", uselist=False)


class ReferralCode(Base):
    """Promotional code issued to a customer or to partner retail staff"""

    __tablename__ = "referral_codes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), unique=True, nullable=False, index=True)
    issuer_type = Column(String(20), nullable=False, default="customer")  # customer, partner_staff
    discount_percent = Column(Numeric(5, 2), nullable=False, default=10)
    # Cumulative counters - only ever changed by atomic UPDATE increments
    total_usage_count = Column(Integer, nullable=False, default=0)
    total_subsidy_accrued = Column(Numeric(12, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    # Partner staff codes have no customer account behind them
    staff_name = Column(String(255), nullable=True)
    store_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    usages = relationship("ReferralUsage", back_populates="referral_code")


class ReferralUsage(Base):
    """Append-only audit row, one per code redemption per booking"""

    __tablename__ = "referral_usage"

    id = Column(Integer, primary_key=True, index=True)
    referral_code_id = Column(Integer, ForeignKey("referral_codes.id"), nullable=False, index=True)
    # Unique: a booking redeems at most one code, at most once
    booking_ref = Column(String(64), unique=True, nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)

    # Monetary amounts are immutable once recorded
    discount_amount = Column(Numeric(12, 2), nullable=False)
    subsidy_amount = Column(Numeric(12, 2), nullable=False, default=0)
    subsidized_by_third_party = Column(Boolean, nullable=False, default=False)

    # Payout tracking
    status = Column(String(20), nullable=False, default="pending")  # pending, paid_out
    paid_out_at = Column(DateTime, nullable=True)

    recorded_at = Column(DateTime, server_default=func.now())

    referral_code = relationship("ReferralCode", back_populates="usages")
    booking = relationship("Booking", back_populates="referral_usage")
