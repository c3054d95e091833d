import re
import logging
from datetime import datetime, timezone
from parking_admin.utils.calculation import to_utc

logger = logging.getLogger(__name__)

PLATE_SEPARATORS = re.compile(r"[\s\-.]")

# Statuses that mean the reservation is still waiting for an operator
AWAITING_APPROVAL = {"pending", "reserved"}

_LAST = datetime.max.replace(tzinfo=timezone.utc)


def normalize_plate(text) -> str:
    if not text:
        return ""
    return PLATE_SEPARATORS.sub("", str(text)).upper()


def _field(reservation, name):
    if isinstance(reservation, dict):
        return reservation.get(name)
    return getattr(reservation, name, None)


def _sort_key(reservation):
    created_at = to_utc(_field(reservation, "created_at")) or _LAST
    reservation_id = _field(reservation, "id")
    return created_at, str(reservation_id) if reservation_id is not None else ""


def match_detection(detected_plate_text, candidate_reservations):
    """Find the pending reservation whose vehicle number matches a detected plate.

    Candidates are ordered by creation time so that duplicate plates always
    resolve to the oldest reservation. Nothing is approved here.
    """
    detected = normalize_plate(detected_plate_text)
    if not detected:
        return None

    pending = [
        reservation for reservation in candidate_reservations or []
        if str(_field(reservation, "status") or "").lower() in AWAITING_APPROVAL
    ]

    for reservation in sorted(pending, key=_sort_key):
        if normalize_plate(_field(reservation, "vehicle_number")) == detected:
            logger.info(f"Plate {detected} matched reservation {_field(reservation, 'id')}")
            return reservation

    logger.info(f"No pending reservation found for plate {detected}")
    return None
