from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


def _utc_now():
    return datetime.now(timezone.utc)


class ParkingSlot(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    slot_id: str = Field(index=True, unique=True)
    price: float = Field(default=5.00, gt=0)


class Reservation(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    customer_name: str
    phone_number: Optional[str] = None
    vehicle_number: str = Field(index=True)
    vehicle_type: str = "Car"
    slot_id: str = Field(index=True)
    # pending | approved | active | completed | cancelled
    status: str = Field(default="pending", index=True)
    requested_duration_hours: float = Field(default=1, gt=0)
    amount: float = 0
    notes: str = ""
    check_in_time: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: Optional[datetime] = None


class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    reservation_id: int = Field(foreign_key="reservation.id", index=True)
    customer_name: str
    vehicle_number: str
    slot_id: str
    check_in_time: Optional[datetime] = None
    check_out_time: datetime
    actual_hours: float = 0
    requested_duration_hours: float = 1
    regular_amount: float = 0
    overtime_amount: float = 0
    total_amount: float = 0
    is_overtime: bool = False
    overtime_hours: float = 0
    billing_policy: str
    payment_method: str = "Cash"
    created_at: datetime = Field(default_factory=_utc_now)
