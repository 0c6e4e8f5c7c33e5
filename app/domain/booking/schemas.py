"""Booking domain schemas - Pydantic models for session state and requests"""

from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...shared.validators import validate_email, validate_ie_phone

NO_ADDONS_KEY = "no-addons"

StepId = Literal[
    "photo",
    "quantity",
    "size",
    "service",
    "wall_type",
    "mount_type",
    "addons",
    "schedule",
    "contact",
]


# ============================================================================
# SESSION STATE
# ============================================================================


class Addon(BaseModel):
    key: str
    name: str
    price: Decimal = Field(default=Decimal("0"), ge=0)


class InstallationItem(BaseModel):
    """One TV being configured within a booking session"""

    id: str
    label: str
    size: str = ""
    service_type: str = ""
    wall_type: str = ""
    mount_type: str = ""
    location: str = ""
    needs_wall_mount_hardware: bool = False
    wall_mount_option: Optional[str] = None  # Only meaningful with hardware
    addons: list[Addon] = Field(default_factory=list)
    base_price: Optional[Decimal] = Field(default=None, ge=0)


class Contact(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class DirectBooking(BaseModel):
    """Session entered through a provider deep link"""

    target_provider_id: str
    provider_summary: dict = Field(default_factory=dict)


class ReferralSelection(BaseModel):
    code: str
    discount_percent: Decimal
    ledger_record_id: Optional[int] = None


class LegacySingleItem(BaseModel):
    """Scalar fields kept for sessions saved before multi-item support"""

    size: str = ""
    service_type: str = ""
    wall_type: str = ""
    mount_type: str = ""
    location: str = ""
    needs_wall_mount_hardware: bool = False
    wall_mount_option: Optional[str] = None
    addons: list[Addon] = Field(default_factory=list)
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    # Stored totals from old sessions that never recorded a base price
    legacy_total: Optional[Decimal] = Field(default=None, ge=0)
    legacy_addon_total: Optional[Decimal] = Field(default=None, ge=0)


class BookingConfiguration(BaseModel):
    """Complete state of one booking session"""

    item_count: int = Field(default=1, ge=1)
    items: list[InstallationItem] = Field(default_factory=list)
    current_item_index: int = Field(default=0, ge=0)
    completed_steps_global: set[StepId] = Field(default_factory=set)
    completed_steps_per_item: dict[int, set[StepId]] = Field(default_factory=dict)
    direct_booking: Optional[DirectBooking] = None
    contact: Contact = Field(default_factory=Contact)
    referral: Optional[ReferralSelection] = None
    notes: Optional[str] = None
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    legacy: LegacySingleItem = Field(default_factory=LegacySingleItem)


class PriceBreakdown(BaseModel):
    subtotal: Decimal
    addon_total: Decimal
    total: Decimal


# ============================================================================
# TAGGED ITEM UPDATES
# ============================================================================


class _ItemUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict:
        """Field values this update writes onto an item"""
        return self.model_dump(exclude={"kind"})


class SizeUpdate(_ItemUpdate):
    kind: Literal["size"] = "size"
    size: str


class ServiceUpdate(_ItemUpdate):
    kind: Literal["service"] = "service"
    service_type: str
    base_price: Optional[Decimal] = Field(default=None, ge=0)

    def changes(self) -> dict:
        data = {"service_type": self.service_type}
        if self.base_price is not None:
            data["base_price"] = self.base_price
        return data


class WallTypeUpdate(_ItemUpdate):
    kind: Literal["wall_type"] = "wall_type"
    wall_type: str


class MountTypeUpdate(_ItemUpdate):
    kind: Literal["mount_type"] = "mount_type"
    mount_type: str


class WallMountUpdate(_ItemUpdate):
    kind: Literal["wall_mount"] = "wall_mount"
    needs_wall_mount_hardware: bool
    wall_mount_option: Optional[str] = None


class AddonsUpdate(_ItemUpdate):
    kind: Literal["addons"] = "addons"
    addons: list[Addon]

    def changes(self) -> dict:
        return {"addons": [addon.model_copy() for addon in self.addons]}


class LabelUpdate(_ItemUpdate):
    kind: Literal["label"] = "label"
    label: str


class LocationUpdate(_ItemUpdate):
    kind: Literal["location"] = "location"
    location: str


class BasePriceUpdate(_ItemUpdate):
    kind: Literal["base_price"] = "base_price"
    base_price: Optional[Decimal] = Field(default=None, ge=0)


ItemUpdate = Annotated[
    Union[
        SizeUpdate,
        ServiceUpdate,
        WallTypeUpdate,
        MountTypeUpdate,
        WallMountUpdate,
        AddonsUpdate,
        LabelUpdate,
        LocationUpdate,
        BasePriceUpdate,
    ],
    Field(discriminator="kind"),
]


# ============================================================================
# REQUESTS / RESPONSES
# ============================================================================


class InitializeItemsRequest(BaseModel):
    count: int = Field(ge=1, le=20)


class ItemUpdatesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    updates: list[ItemUpdate] = Field(min_length=1)


class AddonToggleRequest(BaseModel):
    addon: Addon
    selected: bool


class CurrentItemRequest(BaseModel):
    index: int


class StepCompletedRequest(BaseModel):
    step: StepId
    itemIndex: Optional[int] = None


class ContactUpdate(BaseModel):
    """Partial contact details - unset fields are left unchanged"""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        if v:
            return validate_email(v)
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return validate_ie_phone(v)
        return v


class NotesRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)


class ScheduleRequest(BaseModel):
    preferredDate: Optional[str] = None
    preferredTime: Optional[str] = None


class DirectProviderRequest(BaseModel):
    providerId: str
    providerSummary: dict = Field(default_factory=dict)


class SubmitRequest(BaseModel):
    referralCode: Optional[str] = None


class BookingSessionResponse(BaseModel):
    sessionId: str
    state: BookingConfiguration
    pricing: PriceBreakdown
    multiItem: bool


class ReferralSummary(BaseModel):
    code: str
    discountAmount: Decimal


class CheckoutSnapshot(BaseModel):
    """Finalized hand-off to the payment component"""

    items: list[InstallationItem]
    computedTotal: Decimal
    referral: Optional[ReferralSummary] = None
    contact: Contact


class SubmitResponse(BaseModel):
    bookingId: int
    publicId: str
    checkout: CheckoutSnapshot
    finalTotal: Decimal
