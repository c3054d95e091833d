from datetime import datetime
from sqlmodel import SQLModel, Field
from typing import List, Optional, Any, Union

class Duration(SQLModel):
    hours: int
    minutes: int
    total_hours: float
    formatted: str
    is_active: bool

class Charge(SQLModel):
    total_amount: float
    is_overtime: bool
    overtime_hours: float
    regular_hours: float
    actual_hours: float
    regular_amount: float
    overtime_amount: float
    base_rate: float
    overtime_rate: float
    duration: Duration

class ActiveCharge(SQLModel):
    active_time_hours: float
    calculated_amount: float
    is_overtime: bool
    overtime_hours: float
    current_check_out_time: datetime

class ReservationCreate(SQLModel):
    customer_name: str = Field(min_length=1)
    phone_number: Optional[str] = None
    vehicle_number: str = Field(min_length=1)
    vehicle_type: str = "Car"
    slot_id: Union[str, int]
    requested_duration_hours: float = Field(default=1, gt=0)
    notes: str = ""

class ReservationResponse(SQLModel):
    id: Optional[int]
    customer_name: str
    phone_number: Optional[str] = None
    vehicle_number: str
    vehicle_type: str
    slot_id: str
    status: str
    requested_duration_hours: float
    amount: float
    notes: str = ""
    check_in_time: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    duration_since_approval: Optional[Duration] = None
    duration_status: Optional[str] = None

class ActiveBookingResponse(SQLModel):
    reservation: ReservationResponse
    estimate: ActiveCharge

class SlotResponse(SQLModel):
    id: str
    status: str
    price: float
    reservation_id: Optional[int] = None
    customer_name: Optional[str] = None
    vehicle_number: Optional[str] = None
    check_in_time: Optional[datetime] = None

class SlotPriceUpdate(SQLModel):
    price: float = Field(gt=0)

class PaymentResponse(SQLModel):
    id: Optional[int]
    reservation_id: int
    customer_name: str
    vehicle_number: str
    slot_id: str
    check_in_time: Optional[datetime] = None
    check_out_time: datetime
    actual_hours: float
    requested_duration_hours: float
    regular_amount: float
    overtime_amount: float
    total_amount: float
    is_overtime: bool
    overtime_hours: float
    billing_policy: str
    payment_method: str

class PaymentRequest(SQLModel):
    payment_method: str = "Cash"

class DetectionEvent(SQLModel):
    plate_text: str
    timestamp: Optional[datetime] = None

class PendingConfirmationResponse(SQLModel):
    plate_number: str
    reservation_id: int
    customer_name: str
    slot_id: str
    detected_at: datetime

class DetectionSessionResponse(SQLModel):
    session_id: str
    state: str
    pending: Optional[PendingConfirmationResponse] = None
    notification: Optional[Any] = None

class PlateReading(SQLModel):
    number: str
    confidence: float = 0
    bbox: Optional[List[float]] = None
    region: Optional[Any] = None

class PlateDetectionResult(SQLModel):
    success: bool
    detected: bool
    plates: List[PlateReading] = []
    primary_plate: Optional[PlateReading] = None
    annotated_image_url: Optional[str] = None

class GenericResponse(SQLModel):
    message: Optional[str] = None
    data: Optional[Any] = None
