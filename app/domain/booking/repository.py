"""Booking repository - Database operations for submitted bookings"""

from sqlalchemy.orm import Session

from ...models import Booking


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        """Stage a booking in the current transaction (caller commits)"""
        booking = Booking(**booking_data)
        db.add(booking)
        db.flush()
        return booking
