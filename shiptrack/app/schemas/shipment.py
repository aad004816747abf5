"""
Shipment Pydantic schemas.

Request models for booking shipments and posting tracking events, and the
response projections served at each visibility tier.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional, List, Dict, Union
from shiptrack.app.domain.tracking.tracking_numbers import TRACKING_NUMBER_PATTERN
from shiptrack.app.models.shipment_enums import (
    ShipmentStatus, PackageCategory, ServiceType, ServicePriority,
    PaymentStatus, PaymentMethod
)

PHONE_PATTERN = r"^[0-9]{10}$"
PINCODE_PATTERN = r"^[0-9]{6}$"


# --- Requests ---

class Address(BaseModel):
    """Postal address."""
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., pattern=PINCODE_PATTERN, description="6-digit pincode")
    country: str = Field(default="India", max_length=100)


class SenderIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN, description="10-digit phone number")
    address: Address

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class RecipientIn(SenderIn):
    email: Optional[EmailStr] = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value


class Dimensions(BaseModel):
    """Package dimensions in centimeters."""
    length: float = Field(..., ge=1)
    width: float = Field(..., ge=1)
    height: float = Field(..., ge=1)


class PackageIn(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    weight: float = Field(..., ge=0.1, description="Weight in kilograms")
    dimensions: Dimensions
    value: float = Field(..., ge=1, description="Declared value in rupees")
    category: PackageCategory = PackageCategory.OTHER
    is_fragile: bool = False
    requires_signature: bool = False


class Insurance(BaseModel):
    is_insured: bool = False
    coverage: float = Field(default=0, ge=0)
    premium: float = Field(default=0, ge=0)


class ServiceIn(BaseModel):
    type: ServiceType
    priority: ServicePriority = ServicePriority.NORMAL
    cost: float = Field(..., ge=0)
    insurance: Insurance = Field(default_factory=Insurance)


class ShipmentCreate(BaseModel):
    """Schema for booking a new shipment."""
    tracking_number: Optional[str] = Field(
        None, description="Client-supplied tracking number; generated when omitted"
    )
    sender: SenderIn
    recipient: RecipientIn
    package: PackageIn
    service: ServiceIn
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    special_instructions: Optional[str] = Field(None, max_length=1000)

    @field_validator("tracking_number")
    @classmethod
    def normalize_tracking_number(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip().upper()
        if not TRACKING_NUMBER_PATTERN.match(value):
            raise ValueError("Tracking number must be 3 letters followed by 9 digits, e.g. IND123456789")
        return value


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class TrackingEventCreate(BaseModel):
    """Schema for posting a tracking event (agents and admins)."""
    status: ShipmentStatus
    location: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=500)
    timestamp: Optional[datetime] = Field(None, description="Defaults to submission time")
    coordinates: Optional[Coordinates] = None


class AgentIdentity(BaseModel):
    name: Optional[str] = None
    id: Optional[str] = None
    contact: Optional[str] = None


class AssignAgentRequest(BaseModel):
    agent_id: int = Field(..., ge=1)


# --- Responses ---

class PublicTrackingEvent(BaseModel):
    """Tracking event without agent identity or coordinates."""
    status: ShipmentStatus
    location: str
    description: str
    timestamp: datetime


class TrackingEventResponse(PublicTrackingEvent):
    coordinates: Optional[Coordinates] = None
    agent: Optional[AgentIdentity] = None


class AddressOut(BaseModel):
    street: str
    city: str
    state: str
    pincode: str
    country: str


class PartyOut(BaseModel):
    name: str
    email: Optional[str] = None
    phone: str
    address: AddressOut


class DimensionsOut(BaseModel):
    length: float
    width: float
    height: float


class PackageOut(BaseModel):
    description: str
    weight: float
    dimensions: DimensionsOut
    volume: float = Field(..., description="Cubic meters")
    value: float
    category: PackageCategory
    is_fragile: bool
    requires_signature: bool


class ServiceOut(BaseModel):
    type: ServiceType
    priority: ServicePriority
    cost: float
    estimated_delivery: datetime
    insurance: Insurance


class DeliveryWindow(BaseModel):
    start: datetime
    end: datetime


class AccountRef(BaseModel):
    """Resolved weak reference to an account."""
    id: int
    full_name: str
    email: str
    phone: str


class PaymentOut(BaseModel):
    status: PaymentStatus
    method: PaymentMethod


class PublicShipmentView(BaseModel):
    """What anyone holding the tracking number may see."""
    tracking_number: str
    current_status: ShipmentStatus
    progress: int
    tracking: List[PublicTrackingEvent]
    estimated_delivery: datetime
    is_delayed: bool
    service_type: ServiceType


class ShipmentDetailView(BaseModel):
    """Full record for the shipment's owner and for staff."""
    tracking_number: str
    current_status: ShipmentStatus
    progress: int
    sender: PartyOut
    recipient: PartyOut
    package: PackageOut
    service: ServiceOut
    tracking: List[TrackingEventResponse]
    estimated_delivery: datetime
    is_delayed: bool
    delivery_window: Optional[DeliveryWindow] = None
    delivery_attempts: int
    payment: PaymentOut
    special_instructions: Optional[str] = None
    created_by: Optional[AccountRef] = None
    assigned_agent: Optional[AccountRef] = None
    delivered_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StaffShipmentView(ShipmentDetailView):
    """Detail view plus fields reserved for agents and admins."""
    internal_notes: Optional[str] = None
    is_active: bool


class ShipmentCreatedResponse(BaseModel):
    message: str = "Shipment created successfully"
    tracking_number: str
    current_status: ShipmentStatus
    progress: int
    estimated_delivery: datetime
    service: ServiceOut
    created_at: datetime


class Pagination(BaseModel):
    current: int
    pages: int
    total: int
    limit: int


class ShipmentListResponse(BaseModel):
    """Paginated list of the caller's shipments."""
    shipments: List[Union[StaffShipmentView, ShipmentDetailView]]
    pagination: Pagination


class TrackingEventRecordedResponse(BaseModel):
    message: str = "Tracking event added successfully"
    tracking_number: str
    current_status: ShipmentStatus
    progress: int
    latest_event: TrackingEventResponse


class DeliveryAttemptResponse(BaseModel):
    tracking_number: str
    delivery_attempts: int
    current_status: ShipmentStatus
    progress: int
    exception_raised: bool


class DashboardStats(BaseModel):
    """Point-in-time shipment counters for the operations dashboard."""
    total_shipments: int
    today_shipments: int
    active_shipments: int
    delivered_shipments: int
    delayed_shipments: int
    status_breakdown: Dict[str, int]
    generated_at: datetime


class DashboardResponse(BaseModel):
    statistics: DashboardStats
