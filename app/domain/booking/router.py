"""Booking session router - FastAPI endpoints for the booking wizard"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from ...database import get_db
from ...shared.validators import validate_uuid
from .schemas import (
    AddonToggleRequest,
    BookingSessionResponse,
    ContactUpdate,
    CurrentItemRequest,
    DirectProviderRequest,
    InitializeItemsRequest,
    ItemUpdatesRequest,
    NotesRequest,
    ScheduleRequest,
    StepCompletedRequest,
    SubmitRequest,
    SubmitResponse,
)
from .service import BookingSessionService
from .store import BookingSessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/booking-sessions", tags=["Booking Sessions"])

_session_store = BookingSessionStore()


def get_session_store() -> BookingSessionStore:
    return _session_store


def get_booking_service(
    store: BookingSessionStore = Depends(get_session_store),
    db: Session = Depends(get_db),
) -> BookingSessionService:
    """Dependency injection for BookingSessionService"""
    return BookingSessionService(store, db)


def valid_session_id(session_id: str = Path(...)) -> str:
    if not validate_uuid(session_id):
        raise HTTPException(status_code=400, detail="Invalid session id")
    return session_id


def _require_index(changed: bool, index: int) -> None:
    if not changed:
        raise HTTPException(status_code=404, detail=f"No item at index {index}")


# ============================================================================
# SESSION
# ============================================================================


@router.get("/{session_id}", response_model=BookingSessionResponse)
async def get_booking_session(
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    """Current selections and computed totals"""
    return service.to_response(session_id, service.load(session_id))


@router.delete("/{session_id}", response_model=BookingSessionResponse)
async def reset_booking_session(
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    return service.to_response(session_id, service.reset(session_id))


# ============================================================================
# ITEMS
# ============================================================================


@router.post("/{session_id}/items/initialize", response_model=BookingSessionResponse)
async def initialize_items(
    data: InitializeItemsRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    """Start over with `count` empty items (the client confirms with the customer first)"""
    aggregate, _ = service.apply(session_id, lambda a: a.initialize_multi_item(data.count))
    return service.to_response(session_id, aggregate)


@router.post("/{session_id}/items", response_model=BookingSessionResponse)
async def add_item(
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    aggregate, _ = service.apply(session_id, lambda a: a.add_item())
    return service.to_response(session_id, aggregate)


@router.patch("/{session_id}/items/current", response_model=BookingSessionResponse)
async def update_current_item(
    data: ItemUpdatesRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    aggregate, changed = service.apply(session_id, lambda a: a.update_current_item(*data.updates))
    if not changed:
        raise HTTPException(status_code=404, detail="No current item")
    return service.to_response(session_id, aggregate)


@router.put("/{session_id}/items/current-index", response_model=BookingSessionResponse)
async def set_current_item(
    data: CurrentItemRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    aggregate, changed = service.apply(session_id, lambda a: a.set_current_item(data.index))
    _require_index(changed, data.index)
    return service.to_response(session_id, aggregate)


@router.delete("/{session_id}/items/{index}", response_model=BookingSessionResponse)
async def remove_item(
    index: int,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    """Out-of-range indexes leave the session untouched"""
    aggregate, _ = service.apply(session_id, lambda a: a.remove_item(index))
    return service.to_response(session_id, aggregate)


@router.patch("/{session_id}/items/{index}", response_model=BookingSessionResponse)
async def update_item(
    index: int,
    data: ItemUpdatesRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    aggregate, changed = service.apply(session_id, lambda a: a.update_item(index, *data.updates))
    _require_index(changed, index)
    return service.to_response(session_id, aggregate)


@router.post("/{session_id}/items/{index}/addons/toggle", response_model=BookingSessionResponse)
async def toggle_addon(
    index: int,
    data: AddonToggleRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    aggregate, changed = service.apply(
        session_id, lambda a: a.toggle_addon(index, data.addon, data.selected)
    )
    _require_index(changed, index)
    return service.to_response(session_id, aggregate)


# ============================================================================
# STEPS & DETAILS
# ============================================================================


@router.post("/{session_id}/steps", response_model=BookingSessionResponse)
async def mark_step_completed(
    data: StepCompletedRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    aggregate, changed = service.apply(
        session_id, lambda a: a.mark_step_completed(data.step, data.itemIndex)
    )
    if not changed:
        raise HTTPException(status_code=404, detail=f"No item at index {data.itemIndex}")
    return service.to_response(session_id, aggregate)


@router.put("/{session_id}/contact", response_model=BookingSessionResponse)
async def update_contact(
    data: ContactUpdate,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    aggregate, _ = service.apply(session_id, lambda a: a.update_contact(data))
    return service.to_response(session_id, aggregate)


@router.put("/{session_id}/notes", response_model=BookingSessionResponse)
async def set_notes(
    data: NotesRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    aggregate, _ = service.apply(session_id, lambda a: a.set_notes(data.notes))
    return service.to_response(session_id, aggregate)


@router.put("/{session_id}/schedule", response_model=BookingSessionResponse)
async def set_schedule(
    data: ScheduleRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    aggregate, _ = service.apply(
        session_id, lambda a: a.set_schedule(data.preferredDate, data.preferredTime)
    )
    return service.to_response(session_id, aggregate)


@router.put("/{session_id}/direct-provider", response_model=BookingSessionResponse)
async def set_direct_provider(
    data: DirectProviderRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    """Deep-link entry: the booking goes straight to one provider"""
    aggregate, _ = service.apply(
        session_id, lambda a: a.set_direct_provider(data.providerId, data.providerSummary)
    )
    return service.to_response(session_id, aggregate)


# ============================================================================
# SUBMISSION
# ============================================================================


@router.post("/{session_id}/submit", response_model=SubmitResponse)
async def submit_booking(
    data: SubmitRequest,
    session_id: str = Depends(valid_session_id),
    service: BookingSessionService = Depends(get_booking_service),
):
    return service.submit(session_id, data.referralCode)
