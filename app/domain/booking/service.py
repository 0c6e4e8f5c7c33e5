"""Booking session service - Loads, mutates, persists and submits sessions"""

import logging
from decimal import Decimal
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from ...models import generate_public_id
from ..referrals.exceptions import InvalidCode, TransientFailure
from ..referrals.service import ReferralLedger
from .aggregate import BookingAggregate, booking_shape, is_item_complete, shape_items
from .pricing import ZERO, round2
from .repository import BookingRepository
from .schemas import BookingSessionResponse, SubmitResponse
from .store import BookingSessionStore

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "Booking service temporarily unavailable, please try again"


class BookingSessionService:
    """Service layer for booking configuration sessions"""

    def __init__(self, store: BookingSessionStore, db: Session):
        self.store = store
        self.db = db
        self.repo = BookingRepository()

    def load(self, session_id: str) -> BookingAggregate:
        """Aggregate for the session; unreadable or missing state starts fresh"""
        return BookingAggregate(self.store.load(session_id))

    def apply(
        self, session_id: str, operation: Callable[[BookingAggregate], bool]
    ) -> tuple[BookingAggregate, bool]:
        """Run one aggregate operation and persist the result if it changed anything"""
        aggregate = self.load(session_id)
        changed = operation(aggregate)
        if changed and not self.store.save(session_id, aggregate.state):
            logger.warning(f"⚠️ Booking session {session_id} not persisted, continuing in memory")
        return aggregate, changed

    def reset(self, session_id: str) -> BookingAggregate:
        aggregate = BookingAggregate()
        self.store.clear(session_id)
        logger.info(f"🔄 Booking session {session_id} reset")
        return aggregate

    @staticmethod
    def to_response(session_id: str, aggregate: BookingAggregate) -> BookingSessionResponse:
        return BookingSessionResponse(
            sessionId=session_id,
            state=aggregate.state,
            pricing=aggregate.price_breakdown(),
            multiItem=aggregate.is_multi_item,
        )

    # ========================================================================
    # SUBMISSION
    # ========================================================================

    def _check_ready(self, aggregate: BookingAggregate) -> None:
        contact = aggregate.state.contact
        missing = [field for field in ("name", "email", "phone") if not getattr(contact, field)]
        if missing:
            raise HTTPException(
                status_code=400, detail=f"Missing contact details: {', '.join(missing)}"
            )

        if not aggregate.is_multi_item:
            item = shape_items(booking_shape(aggregate.state))[0]
            if not is_item_complete(item):
                raise HTTPException(status_code=400, detail="Installation details are incomplete")
            return

        incomplete = aggregate.next_incomplete_item_index()
        if incomplete != -1:
            label = aggregate.state.items[incomplete].label
            raise HTTPException(status_code=400, detail=f"{label} is not fully configured")

    def submit(self, session_id: str, referral_code: Optional[str] = None) -> SubmitResponse:
        """
        Turn the session into a booking record.

        The booking row and the referral usage row are committed together.
        The session is cleared only after the commit succeeds.
        """
        aggregate = self.load(session_id)
        self._check_ready(aggregate)

        total = aggregate.compute_total()
        ledger = ReferralLedger(self.db)

        code = referral_code or (aggregate.state.referral.code if aggregate.state.referral else None)
        discount = None
        if code:
            try:
                discount = ledger.validate_and_price(code, total)
            except InvalidCode:
                raise HTTPException(status_code=400, detail="Invalid or inactive referral code")
            except TransientFailure:
                raise HTTPException(status_code=503, detail=RETRY_MESSAGE)
            aggregate.apply_referral(discount.code, discount.discount_percent, discount.code_id)

        discount_amount = discount.discount_amount if discount else ZERO
        final_total = max(ZERO, round2(total - discount_amount))
        snapshot = aggregate.checkout_snapshot(discount_amount if discount else None)
        state = aggregate.state
        public_id = generate_public_id()

        try:
            booking = self.repo.create_booking(
                self.db,
                public_id=public_id,
                status="open",
                item_count=state.item_count,
                items=[item.model_dump(mode="json") for item in snapshot.items],
                notes=state.notes,
                preferred_date=state.preferred_date,
                preferred_time=state.preferred_time,
                direct_provider_id=state.direct_booking.target_provider_id if state.direct_booking else None,
                contact_name=state.contact.name,
                contact_email=state.contact.email,
                contact_phone=state.contact.phone,
                address=state.contact.address,
                estimated_total=total,
                referral_code=discount.code if discount else None,
                referral_discount=discount_amount,
                final_total=final_total,
            )

            if discount:
                # Commits the booking together with the usage row
                recorded = ledger.record_usage(
                    discount.code_id,
                    public_id,
                    discount.discount_amount,
                    discount.subsidy_amount,
                    booking_id=booking.id,
                )
                if not recorded:
                    self.db.rollback()
                    raise HTTPException(status_code=400, detail="Invalid or inactive referral code")
            else:
                self.db.commit()
        except (OperationalError, PoolTimeoutError) as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store booking for session {session_id}: {e}")
            raise HTTPException(status_code=503, detail=RETRY_MESSAGE)
        except TransientFailure:
            raise HTTPException(status_code=503, detail=RETRY_MESSAGE)

        self.store.clear(session_id)
        logger.info(
            f"✅ Booking {public_id} submitted: items={state.item_count} "
            f"total={total} final={final_total}"
        )
        return SubmitResponse(
            bookingId=booking.id,
            publicId=public_id,
            checkout=snapshot,
            finalTotal=Decimal(final_total),
        )
