import logging
from sqlmodel import Session, select
from fastapi import HTTPException
from sqlalchemy import text
from parking_admin.config import Config
from parking_admin.controllers.reservation_controller import HOLDING_STATUSES, normalize_slot_id
from parking_admin.models.parking_models import ParkingSlot, Reservation
from parking_admin.schemas.parking_schemas import SlotResponse

logger = logging.getLogger(__name__)


def slot_status_for(reservation_status: str) -> str:
    if reservation_status in ("approved", "active"):
        return "occupied"
    if reservation_status == "pending":
        return "reserved"
    return "available"


class SlotController:
    @staticmethod
    def read_slots(db: Session, status: str = None):
        try:
            prices = {row.slot_id: row.price for row in db.execute(text("SELECT slot_id, price FROM parkingslot")).fetchall()}

            # Latest reservation per slot wins, so walk oldest to newest
            statement = select(Reservation).order_by(Reservation.created_at, Reservation.id)
            latest = {}
            for reservation in db.exec(statement).all():
                latest[reservation.slot_id] = reservation

            slots = []
            for number in range(1, Config.SLOT_COUNT + 1):
                slot_id = f"S{number}"
                slot = SlotResponse(id=slot_id, status="available", price=prices.get(slot_id, Config.DEFAULT_SLOT_PRICE))

                reservation = latest.get(slot_id)
                if reservation is not None and reservation.status in HOLDING_STATUSES:
                    slot.status = slot_status_for(reservation.status)
                    slot.reservation_id = reservation.id
                    slot.customer_name = reservation.customer_name
                    slot.vehicle_number = reservation.vehicle_number
                    slot.check_in_time = reservation.check_in_time

                if status is None or slot.status == status:
                    slots.append(slot)
            return slots
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"An error occured in read_slots: {e}")

    @staticmethod
    def read_slot(slot_id, db: Session) -> SlotResponse:
        slot_id = normalize_slot_id(slot_id)
        for slot in SlotController.read_slots(db):
            if slot.id == slot_id:
                return slot

    @staticmethod
    def set_slot_price(slot_id, price: float, db: Session) -> ParkingSlot:
        try:
            slot_id = normalize_slot_id(slot_id)
            if price <= 0:
                raise HTTPException(status_code=400, detail="Slot price must be greater than zero.")

            slot = db.exec(select(ParkingSlot).where(ParkingSlot.slot_id == slot_id)).first()
            if slot is None:
                slot = ParkingSlot(slot_id=slot_id, price=price)
            else:
                slot.price = price
            db.add(slot)
            db.commit()
            db.refresh(slot)
            logger.info(f"Price for slot {slot_id} set to Rs.{price}")
            return slot

        except HTTPException as http_exc:
            raise http_exc

        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Internal server error while updating slot price: {e}")
