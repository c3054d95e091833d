import re
import logging
from datetime import datetime
from typing import Optional
from sqlmodel import Session, select
from fastapi import HTTPException
from sqlalchemy import text
from parking_admin.config import Config, BillingPolicy
from parking_admin.models.parking_models import Reservation, Payment
from parking_admin.schemas.parking_schemas import (
    ActiveBookingResponse,
    ReservationCreate,
    ReservationResponse,
    GenericResponse,
    PaymentResponse,
)
from parking_admin.utils.calculation import (
    calculate_active_charges,
    calculate_charges,
    calculate_duration,
    calculate_flat_amount,
    duration_status,
    format_local_time,
)

logger = logging.getLogger(__name__)

HOLDING_STATUSES = ("pending", "approved", "active")
PAYABLE_STATUSES = ("approved", "active")
SLOT_PATTERN = re.compile(r"^[Ss]?(\d+)$")


def normalize_slot_id(slot_id) -> str:
    match = SLOT_PATTERN.match(str(slot_id).strip())
    if not match:
        raise HTTPException(status_code=400, detail=f"Slot '{slot_id}' is not a valid slot id. Use the form S1..S{Config.SLOT_COUNT}.")

    slot_number = int(match.group(1))
    if slot_number < 1 or slot_number > Config.SLOT_COUNT:
        raise HTTPException(status_code=400, detail=f"Slot number must be between 1 and {Config.SLOT_COUNT}.")
    return f"S{slot_number}"


def get_slot_price(slot_id: str, db: Session) -> float:
    query = text("SELECT price FROM parkingslot WHERE slot_id = :slot_id")
    row = db.execute(query, {"slot_id": slot_id}).fetchone()
    return row.price if row else Config.DEFAULT_SLOT_PRICE


def to_reservation_response(reservation: Reservation, now: datetime) -> ReservationResponse:
    duration = None
    if reservation.approved_at:
        duration = calculate_duration(reservation.approved_at, now, reservation.check_out_time)

    return ReservationResponse(
        **reservation.model_dump(),
        check_in=format_local_time(reservation.check_in_time),
        check_out=format_local_time(reservation.check_out_time),
        duration_since_approval=duration,
        duration_status=duration_status(duration, reservation.requested_duration_hours) if duration else None,
    )


class ReservationController:
    @staticmethod
    def _get_or_404(reservation_id: int, db: Session) -> Reservation:
        reservation = db.get(Reservation, reservation_id)
        if not reservation:
            raise HTTPException(status_code=404, detail=f"Reservation '{reservation_id}' was not found.")
        return reservation

    @staticmethod
    def create_reservation(reservation_data: ReservationCreate, db: Session, now: datetime) -> Reservation:
        try:
            slot_id = normalize_slot_id(reservation_data.slot_id)

            query = text("SELECT id FROM reservation WHERE slot_id = :slot_id AND status IN ('pending', 'approved', 'active')")
            existing = db.execute(query, {"slot_id": slot_id}).fetchone()
            if existing:
                raise HTTPException(status_code=409, detail=f"Slot {slot_id} is already reserved.")

            slot_price = get_slot_price(slot_id, db)

            reservation = Reservation(
                customer_name=reservation_data.customer_name,
                phone_number=reservation_data.phone_number,
                vehicle_number=reservation_data.vehicle_number,
                vehicle_type=reservation_data.vehicle_type,
                slot_id=slot_id,
                status="pending",
                requested_duration_hours=reservation_data.requested_duration_hours,
                amount=calculate_flat_amount(slot_price, reservation_data.requested_duration_hours),
                notes=reservation_data.notes,
                check_in_time=now,
                created_at=now,
                updated_at=now,
            )
            db.add(reservation)
            db.commit()
            db.refresh(reservation)
            logger.info(f"Reservation {reservation.id} created for {reservation.vehicle_number} in slot {slot_id}")
            return reservation

        except HTTPException as http_exc:
            raise http_exc

        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Internal server error while creating reservation: {e}")

    @staticmethod
    def read_reservations(db: Session, now: datetime, status: Optional[str] = None):
        try:
            statement = select(Reservation)
            if status:
                statement = statement.where(Reservation.status == status.lower())
            statement = statement.order_by(Reservation.created_at.desc(), Reservation.id.desc())
            reservations = db.exec(statement).all()
            return [to_reservation_response(reservation, now) for reservation in reservations]
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"An error occured in read_reservations: {e}")

    @staticmethod
    def read_reservation(reservation_id: int, db: Session, now: datetime) -> ReservationResponse:
        reservation = ReservationController._get_or_404(reservation_id, db)
        return to_reservation_response(reservation, now)

    @staticmethod
    def list_pending_reservations(db: Session):
        statement = select(Reservation).where(Reservation.status == "pending").order_by(Reservation.created_at, Reservation.id)
        return db.exec(statement).all()

    @staticmethod
    def approve_reservation(reservation_id: int, db: Session, now: datetime) -> Reservation:
        try:
            reservation = ReservationController._get_or_404(reservation_id, db)

            if reservation.status != "pending":
                raise HTTPException(status_code=409, detail=f"Reservation {reservation_id} is {reservation.status} and cannot be approved.")

            reservation.status = "approved"
            reservation.approved_at = now
            reservation.updated_at = now
            db.add(reservation)
            db.commit()
            db.refresh(reservation)
            logger.info(f"Reservation {reservation_id} approved")
            return reservation

        except HTTPException as http_exc:
            raise http_exc

        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Internal server error while approving reservation: {e}")

    @staticmethod
    def cancel_reservation(reservation_id: int, db: Session, now: datetime) -> Reservation:
        try:
            reservation = ReservationController._get_or_404(reservation_id, db)

            if reservation.status in ("completed", "cancelled"):
                raise HTTPException(status_code=409, detail=f"Reservation {reservation_id} is already {reservation.status}.")

            reservation.status = "cancelled"
            reservation.check_out_time = now
            reservation.updated_at = now
            db.add(reservation)
            db.commit()
            db.refresh(reservation)
            logger.info(f"Reservation {reservation_id} cancelled")
            return reservation

        except HTTPException as http_exc:
            raise http_exc

        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Internal server error while cancelling reservation: {e}")

    @staticmethod
    def read_active_bookings(db: Session, now: datetime):
        try:
            statement = select(Reservation).where(Reservation.status.in_(PAYABLE_STATUSES)).order_by(Reservation.check_in_time)
            bookings = []
            for reservation in db.exec(statement).all():
                estimate = calculate_active_charges(
                    reservation.check_in_time,
                    now,
                    reservation.requested_duration_hours,
                    Config.BASE_RATE,
                    Config.OVERTIME_RATE,
                )
                bookings.append(ActiveBookingResponse(reservation=to_reservation_response(reservation, now), estimate=estimate))
            return bookings
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"An error occured in read_active_bookings: {e}")


class PaymentController:
    @staticmethod
    def settle_reservation(reservation_id: int, db: Session, now: datetime, payment_method: str = "Cash") -> GenericResponse:
        try:
            reservation = ReservationController._get_or_404(reservation_id, db)

            if reservation.status not in PAYABLE_STATUSES:
                raise HTTPException(status_code=409, detail=f"Reservation {reservation_id} is {reservation.status} and cannot be paid.")

            policy = Config.get_billing_policy()
            charge = calculate_charges(
                reservation.approved_at,
                now,
                reservation.requested_duration_hours,
                Config.BASE_RATE,
                Config.OVERTIME_RATE,
                check_out_time=now,
            )

            if policy == BillingPolicy.PER_SLOT_FLAT:
                flat_amount = calculate_flat_amount(get_slot_price(reservation.slot_id, db), reservation.requested_duration_hours)
                regular_amount, overtime_amount, total_amount = flat_amount, 0, flat_amount
                is_overtime, overtime_hours = False, 0
            else:
                regular_amount, overtime_amount, total_amount = charge.regular_amount, charge.overtime_amount, charge.total_amount
                is_overtime, overtime_hours = charge.is_overtime, charge.overtime_hours

            payment = Payment(
                reservation_id=reservation.id,
                customer_name=reservation.customer_name,
                vehicle_number=reservation.vehicle_number,
                slot_id=reservation.slot_id,
                check_in_time=reservation.check_in_time,
                check_out_time=now,
                actual_hours=charge.actual_hours,
                requested_duration_hours=reservation.requested_duration_hours,
                regular_amount=regular_amount,
                overtime_amount=overtime_amount,
                total_amount=total_amount,
                is_overtime=is_overtime,
                overtime_hours=overtime_hours,
                billing_policy=policy.value,
                payment_method=payment_method,
                created_at=now,
            )

            reservation.status = "completed"
            reservation.check_out_time = now
            reservation.updated_at = now

            db.add(payment)
            db.add(reservation)
            db.commit()
            db.refresh(payment)

            logger.info(f"Reservation {reservation_id} settled for Rs.{total_amount} under {policy.value}")
            return GenericResponse(
                message=f"Vehicle '{reservation.vehicle_number}' has been checked out from slot {reservation.slot_id}. The parking fee is Rs.{total_amount:.2f}.",
                data=PaymentResponse(**payment.model_dump()),
            )

        except HTTPException as http_exc:
            raise http_exc

        except Exception as e:
            raise HTTPException(status_code=500, detail=f"An error occured while settling reservation: {e}")

    @staticmethod
    def read_payments(db: Session):
        try:
            statement = select(Payment).order_by(Payment.created_at.desc(), Payment.id.desc())
            return db.exec(statement).all()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"An error occured in read_payments: {e}")


class SQLReservationStore:
    """Reservation store backed by the request's database session."""

    def __init__(self, db: Session, clock):
        self.db = db
        self.clock = clock

    def list_pending_reservations(self):
        return ReservationController.list_pending_reservations(self.db)

    def approve_reservation(self, reservation_id: int) -> None:
        ReservationController.approve_reservation(reservation_id, self.db, self.clock())

    def get_reservation(self, reservation_id: int) -> Reservation:
        return ReservationController._get_or_404(reservation_id, self.db)
