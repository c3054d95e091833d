from fastapi import APIRouter, Depends
from parking_admin.controllers.reservation_controller import ReservationController, PaymentController, to_reservation_response
from parking_admin.controllers.slot_controller import SlotController
from parking_admin.schemas.parking_schemas import (
    ActiveBookingResponse,
    GenericResponse,
    PaymentRequest,
    PaymentResponse,
    ReservationCreate,
    ReservationResponse,
    SlotPriceUpdate,
    SlotResponse,
)
from typing import List, Optional
from sqlmodel import Session
from parking_admin.database import get_db
from parking_admin.dependencies import get_clock



router = APIRouter()

@router.get("/")
def hello():
    return {"message": "Parking Admin"}


# SLOTS

@router.get("/slots", response_model=List[SlotResponse])
def read_slots(status: Optional[str] = None, db: Session = Depends(get_db)):
    return SlotController.read_slots(db, status)

@router.put("/slots/{slot_id}/price", response_model=SlotResponse)
def set_slot_price(slot_id: str, request: SlotPriceUpdate, db: Session = Depends(get_db)):
    slot = SlotController.set_slot_price(slot_id, request.price, db)
    return SlotController.read_slot(slot.slot_id, db)


# RESERVATIONS

@router.post("/reservations", response_model=ReservationResponse)
def create_reservation(reservation: ReservationCreate, db: Session = Depends(get_db), clock=Depends(get_clock)):
    now = clock()
    created = ReservationController.create_reservation(reservation, db, now)
    return to_reservation_response(created, now)

@router.get("/reservations", response_model=List[ReservationResponse])
def read_reservations(status: Optional[str] = None, db: Session = Depends(get_db), clock=Depends(get_clock)):
    return ReservationController.read_reservations(db, clock(), status)

@router.get("/reservations/active", response_model=List[ActiveBookingResponse])
def read_active_bookings(db: Session = Depends(get_db), clock=Depends(get_clock)):
    return ReservationController.read_active_bookings(db, clock())

@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
def read_reservation(reservation_id: int, db: Session = Depends(get_db), clock=Depends(get_clock)):
    return ReservationController.read_reservation(reservation_id, db, clock())

@router.post("/reservations/{reservation_id}/approve", response_model=ReservationResponse)
def approve_reservation(reservation_id: int, db: Session = Depends(get_db), clock=Depends(get_clock)):
    now = clock()
    return to_reservation_response(ReservationController.approve_reservation(reservation_id, db, now), now)

@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(reservation_id: int, db: Session = Depends(get_db), clock=Depends(get_clock)):
    now = clock()
    return to_reservation_response(ReservationController.cancel_reservation(reservation_id, db, now), now)


# PAYMENTS

@router.post("/reservations/{reservation_id}/pay", response_model=GenericResponse)
def settle_reservation(reservation_id: int, request: Optional[PaymentRequest] = None, db: Session = Depends(get_db), clock=Depends(get_clock)):
    payment_method = request.payment_method if request else "Cash"
    return PaymentController.settle_reservation(reservation_id, db, clock(), payment_method)

@router.get("/payments", response_model=List[PaymentResponse])
def read_payments(db: Session = Depends(get_db)):
    return PaymentController.read_payments(db)
