"""
Booking configuration aggregate

Holds the selections of one booking session. A session runs in one of two
modes, decided only by ``item_count > 1``:

- single-item: legacy scalar fields or a single item, steps tracked globally
- multi-item: one InstallationItem per TV, steps tracked per item index

Index-based operations never raise on bad input. They return False and leave
the state untouched, since they are driven straight from UI events.
"""

import logging
from decimal import Decimal
from typing import Literal, Optional, Union

from pydantic import BaseModel, TypeAdapter

from .pricing import aggregate_prices, legacy_prices
from .schemas import (
    NO_ADDONS_KEY,
    Addon,
    AddonsUpdate,
    BookingConfiguration,
    CheckoutSnapshot,
    ContactUpdate,
    DirectBooking,
    InstallationItem,
    ItemUpdate,
    LegacySingleItem,
    PriceBreakdown,
    ReferralSelection,
    ReferralSummary,
    StepId,
)

logger = logging.getLogger(__name__)

_item_update_adapter = TypeAdapter(ItemUpdate)


# ============================================================================
# LEGACY / MULTI-ITEM SHAPES
# ============================================================================


class LegacySingleItemBooking(BaseModel):
    """Session that only carries the pre multi-item scalar fields"""

    kind: Literal["legacy"] = "legacy"
    legacy: LegacySingleItem


class MultiItemBooking(BaseModel):
    """Session whose selections live in the items list"""

    kind: Literal["items"] = "items"
    items: list[InstallationItem]


BookingShape = Union[LegacySingleItemBooking, MultiItemBooking]


def booking_shape(state: BookingConfiguration) -> BookingShape:
    if state.items:
        return MultiItemBooking(items=state.items)
    return LegacySingleItemBooking(legacy=state.legacy)


def legacy_to_item(legacy: LegacySingleItem) -> InstallationItem:
    base_price = legacy.base_price
    if base_price is None and not legacy.addons and legacy.legacy_total is not None:
        base_price = legacy.legacy_total
    return InstallationItem(
        id="item-0",
        label="Item 1",
        size=legacy.size,
        service_type=legacy.service_type,
        wall_type=legacy.wall_type,
        mount_type=legacy.mount_type,
        location=legacy.location,
        needs_wall_mount_hardware=legacy.needs_wall_mount_hardware,
        wall_mount_option=legacy.wall_mount_option if legacy.needs_wall_mount_hardware else None,
        addons=normalize_addons(legacy.addons),
        base_price=base_price,
    )


def shape_items(shape: BookingShape) -> list[InstallationItem]:
    """The one conversion from either shape to a list of items"""
    if isinstance(shape, MultiItemBooking):
        return list(shape.items)
    return [legacy_to_item(shape.legacy)]


def shape_prices(shape: BookingShape) -> PriceBreakdown:
    if isinstance(shape, MultiItemBooking):
        return aggregate_prices(shape.items)
    return legacy_prices(shape.legacy)


# ============================================================================
# NORMALIZATION
# ============================================================================


def normalize_addons(addons: list[Addon], previous: Optional[list[Addon]] = None) -> list[Addon]:
    """
    Drop duplicate keys and keep "no-addons" exclusive.

    When the sentinel appears together with real addons, whichever side was
    selected last wins: a sentinel that was already selected gives way to the
    new addons, a newly selected sentinel clears them.
    """
    seen = set()
    unique = []
    for addon in addons:
        if addon.key in seen:
            continue
        seen.add(addon.key)
        unique.append(addon)

    if NO_ADDONS_KEY not in seen or len(unique) == 1:
        return unique

    previous_keys = {addon.key for addon in previous or []}
    if NO_ADDONS_KEY in previous_keys:
        return [addon for addon in unique if addon.key != NO_ADDONS_KEY]
    return [addon for addon in unique if addon.key == NO_ADDONS_KEY]


def normalize_item(item: InstallationItem, previous: Optional[InstallationItem] = None) -> InstallationItem:
    if not item.needs_wall_mount_hardware:
        item.wall_mount_option = None
    item.addons = normalize_addons(item.addons, previous.addons if previous else None)
    return item


def is_item_complete(item: InstallationItem) -> bool:
    if not (item.size and item.service_type and item.wall_type and item.mount_type and item.location):
        return False
    return not item.needs_wall_mount_hardware or bool(item.wall_mount_option)


# ============================================================================
# AGGREGATE
# ============================================================================


class BookingAggregate:
    """Mutation and query operations over one BookingConfiguration"""

    def __init__(self, state: Optional[BookingConfiguration] = None):
        self.state = state if state is not None else BookingConfiguration()

    @property
    def is_multi_item(self) -> bool:
        return self.state.item_count > 1

    def _in_range(self, index: int) -> bool:
        return 0 <= index < len(self.state.items)

    def _next_item_id(self) -> str:
        numbers = []
        for item in self.state.items:
            suffix = item.id.rsplit("-", 1)[-1]
            if suffix.isdigit():
                numbers.append(int(suffix))
        return f"item-{max(numbers) + 1 if numbers else len(self.state.items)}"

    def _clamp_current_index(self) -> None:
        last = max(0, len(self.state.items) - 1)
        self.state.current_item_index = min(max(0, self.state.current_item_index), last)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def initialize_multi_item(self, count: int) -> bool:
        """Replace all items with `count` fresh ones. Callers confirm first."""
        if count < 1:
            raise ValueError("count must be at least 1")

        state = self.state
        state.items = [InstallationItem(id=f"item-{n}", label=f"Item {n + 1}") for n in range(count)]
        state.item_count = count
        state.current_item_index = 0
        state.completed_steps_per_item = {}
        if count > 1:
            state.completed_steps_global = set()
        logger.debug(f"Initialized booking with {count} item(s)")
        return True

    def add_item(self) -> bool:
        state = self.state
        was_multi = self.is_multi_item

        if not state.items:
            # Keep the legacy selections as the first item
            state.items = [legacy_to_item(state.legacy)]

        number = len(state.items) + 1
        state.items.append(InstallationItem(id=self._next_item_id(), label=f"Item {number}"))
        state.item_count = len(state.items)

        if not was_multi and self.is_multi_item:
            state.completed_steps_per_item = {0: set(state.completed_steps_global)}
            state.completed_steps_global = set()
        return True

    def remove_item(self, index: int) -> bool:
        if not self._in_range(index):
            logger.debug(f"Ignoring remove_item({index}) on {len(self.state.items)} item(s)")
            return False

        state = self.state
        was_multi = self.is_multi_item

        del state.items[index]
        state.completed_steps_per_item = {
            (i if i < index else i - 1): steps
            for i, steps in state.completed_steps_per_item.items()
            if i != index
        }
        state.item_count = max(1, len(state.items))
        if state.current_item_index > index:
            state.current_item_index -= 1
        self._clamp_current_index()

        if was_multi and not self.is_multi_item:
            # Surviving item's progress becomes the global progress
            state.completed_steps_global = set(state.completed_steps_per_item.get(0, set()))
            state.completed_steps_per_item = {}
        return True

    def update_item(self, index: int, *updates: Union[ItemUpdate, dict]) -> bool:
        """
        Apply tagged updates to one item.

        Plain dicts are validated as tagged updates first, so an unknown kind
        or field raises pydantic's ValidationError instead of being merged.
        """
        parsed = [
            _item_update_adapter.validate_python(update) if isinstance(update, dict) else update
            for update in updates
        ]
        if not self._in_range(index):
            logger.debug(f"Ignoring update_item({index}) on {len(self.state.items)} item(s)")
            return False

        previous = self.state.items[index]
        payload = previous.model_dump()
        for update in parsed:
            payload.update(update.changes())

        self.state.items[index] = normalize_item(InstallationItem.model_validate(payload), previous)
        return True

    def update_current_item(self, *updates: Union[ItemUpdate, dict]) -> bool:
        return self.update_item(self.state.current_item_index, *updates)

    def toggle_addon(self, index: int, addon: Addon, selected: bool) -> bool:
        if not self._in_range(index):
            return False

        current = self.state.items[index].addons
        if not selected:
            addons = [a for a in current if a.key != addon.key]
        elif addon.key == NO_ADDONS_KEY:
            addons = [addon]
        else:
            addons = [a for a in current if a.key not in (NO_ADDONS_KEY, addon.key)] + [addon]
        return self.update_item(index, AddonsUpdate(addons=addons))

    def set_current_item(self, index: int) -> bool:
        if not self._in_range(index):
            return False
        self.state.current_item_index = index
        return True

    def is_item_complete(self, index: int) -> bool:
        if not self._in_range(index):
            return False
        return is_item_complete(self.state.items[index])

    def next_incomplete_item_index(self) -> int:
        """Index of the first unfinished item in multi-item mode, else -1"""
        if not self.is_multi_item:
            return -1
        for index, item in enumerate(self.state.items):
            if not is_item_complete(item):
                return index
        return -1

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def mark_step_completed(self, step: StepId, item_index: Optional[int] = None) -> bool:
        state = self.state
        if not self.is_multi_item:
            state.completed_steps_global.add(step)
            return True

        index = state.current_item_index if item_index is None else item_index
        if not self._in_range(index):
            return False
        state.completed_steps_per_item.setdefault(index, set()).add(step)
        return True

    def is_step_completed(self, step: StepId, item_index: Optional[int] = None) -> bool:
        state = self.state
        if not self.is_multi_item:
            return step in state.completed_steps_global

        index = state.current_item_index if item_index is None else item_index
        return step in state.completed_steps_per_item.get(index, set())

    # ------------------------------------------------------------------
    # Session details
    # ------------------------------------------------------------------

    def set_direct_provider(self, provider_id: str, summary: Optional[dict] = None) -> bool:
        self.state.direct_booking = DirectBooking(
            target_provider_id=provider_id, provider_summary=summary or {}
        )
        return True

    def update_contact(self, update: ContactUpdate) -> bool:
        contact = self.state.contact
        for field, value in update.model_dump(exclude_none=True).items():
            setattr(contact, field, value)
        return True

    def set_notes(self, notes: Optional[str]) -> bool:
        self.state.notes = notes or None
        return True

    def set_schedule(self, preferred_date: Optional[str], preferred_time: Optional[str]) -> bool:
        self.state.preferred_date = preferred_date
        self.state.preferred_time = preferred_time
        return True

    def apply_referral(
        self, code: str, discount_percent: Decimal, ledger_record_id: Optional[int] = None
    ) -> bool:
        self.state.referral = ReferralSelection(
            code=code, discount_percent=discount_percent, ledger_record_id=ledger_record_id
        )
        return True

    def clear_referral(self) -> bool:
        self.state.referral = None
        return True

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def price_breakdown(self) -> PriceBreakdown:
        return shape_prices(booking_shape(self.state))

    def compute_total(self) -> Decimal:
        return self.price_breakdown().total

    def checkout_snapshot(self, discount_amount: Optional[Decimal] = None) -> CheckoutSnapshot:
        referral = None
        if self.state.referral is not None and discount_amount is not None:
            referral = ReferralSummary(code=self.state.referral.code, discountAmount=discount_amount)
        return CheckoutSnapshot(
            items=shape_items(booking_shape(self.state)),
            computedTotal=self.compute_total(),
            referral=referral,
            contact=self.state.contact.model_copy(),
        )

    def reset(self) -> None:
        self.state = BookingConfiguration()
