import math
from datetime import datetime, timezone
from typing import Optional, Union
from parking_admin.config import Config
from parking_admin.schemas.parking_schemas import ActiveCharge, Charge, Duration

Timestamp = Union[datetime, str, None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def round_2(value: float) -> float:
    # Half-up, so 0.125 -> 0.13 rather than banker's rounding
    return math.floor(value * 100 + 0.5) / 100


def to_utc(timestamp: Timestamp) -> Optional[datetime]:
    """Coerce a stored timestamp into an aware UTC datetime.

    Naive datetimes (SQLite drops tzinfo) are taken to be UTC already.
    ISO-8601 strings are accepted, including a trailing ``Z``.
    """
    if not timestamp:
        return None

    if isinstance(timestamp, str):
        text = timestamp.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        timestamp = datetime.fromisoformat(text)

    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / Config.SECONDS_PER_HOUR


def format_local_time(timestamp: Timestamp) -> Optional[str]:
    aware = to_utc(timestamp)
    if aware is None:
        return None
    return aware.astimezone(tz=Config.get_timezone()).strftime("%I:%M %p")


def format_duration(hours: int, minutes: int) -> str:
    formatted = ""
    if hours > 0:
        formatted += f"{hours}h"
    if minutes > 0:
        formatted += f" {minutes}m"
    if formatted == "":
        formatted = "0h 0m"
    return formatted.strip()


def calculate_duration(approved_at: Timestamp, now: datetime, check_out_time: Timestamp = None) -> Duration:
    """Time elapsed since the reservation was approved.

    The interval ends at ``check_out_time`` when the reservation has been
    settled, otherwise at ``now``. A reservation that was never approved has
    the zero, inactive duration.
    """
    approval_time = to_utc(approved_at)
    if approval_time is None:
        return Duration(hours=0, minutes=0, total_hours=0, formatted="0h 0m", is_active=False)

    checked_out = to_utc(check_out_time)
    end_time = checked_out if checked_out is not None else to_utc(now)

    total_hours = hours_between(approval_time, end_time)
    hours = math.floor(total_hours)
    minutes = math.floor((total_hours - hours) * 60)

    return Duration(
        hours=hours,
        minutes=minutes,
        total_hours=round_2(total_hours),
        formatted=format_duration(hours, minutes),
        is_active=checked_out is None,
    )


def calculate_charges(
    approved_at: Timestamp,
    now: datetime,
    requested_duration_hours: float = 1,
    base_rate: float = 200,
    overtime_rate: float = 300,
    check_out_time: Timestamp = None,
) -> Charge:
    """Settled bill for an approved reservation.

    The full requested duration is always charged at ``base_rate``; only time
    past it is billed, at ``overtime_rate``.
    """
    duration = calculate_duration(approved_at, now, check_out_time)

    is_overtime = False
    overtime_hours = 0
    overtime_amount = 0

    regular_amount = requested_duration_hours * base_rate

    if duration.total_hours > requested_duration_hours:
        is_overtime = True
        overtime_hours = duration.total_hours - requested_duration_hours
        overtime_amount = overtime_hours * overtime_rate

    total_amount = regular_amount + overtime_amount

    return Charge(
        total_amount=round_2(total_amount),
        is_overtime=is_overtime,
        overtime_hours=round_2(overtime_hours),
        regular_hours=round_2(requested_duration_hours),
        actual_hours=round_2(duration.total_hours),
        regular_amount=round_2(regular_amount),
        overtime_amount=round_2(overtime_amount),
        base_rate=base_rate,
        overtime_rate=overtime_rate,
        duration=duration,
    )


def calculate_active_charges(
    check_in_time: Timestamp,
    now: datetime,
    requested_duration_hours: float = 1,
    base_rate: float = 200,
    overtime_rate: float = 300,
) -> ActiveCharge:
    """Running estimate for a booking that is still waiting to be paid.

    Measured from check-in, not approval, and prorated while inside the
    requested duration.
    """
    current_time = to_utc(now)
    checked_in = to_utc(check_in_time)
    if checked_in is None:
        return ActiveCharge(
            active_time_hours=0,
            calculated_amount=0,
            is_overtime=False,
            overtime_hours=0,
            current_check_out_time=current_time,
        )

    active_time_hours = hours_between(checked_in, current_time)
    is_overtime = active_time_hours > requested_duration_hours

    if not is_overtime:
        calculated_amount = active_time_hours * base_rate
        overtime_hours = 0
    else:
        overtime_hours = active_time_hours - requested_duration_hours
        calculated_amount = requested_duration_hours * base_rate + overtime_hours * overtime_rate

    return ActiveCharge(
        active_time_hours=round_2(active_time_hours),
        calculated_amount=round_2(calculated_amount),
        is_overtime=is_overtime,
        overtime_hours=round_2(overtime_hours),
        current_check_out_time=current_time,
    )


def calculate_flat_amount(slot_price: float, requested_duration_hours: float) -> float:
    return round_2(slot_price * requested_duration_hours)


def duration_status(duration: Optional[Duration], requested_duration_hours: float = 1) -> str:
    if not duration or not duration.is_active:
        return "Completed"

    if duration.total_hours <= requested_duration_hours * 0.8:
        return "On Time"
    elif duration.total_hours <= requested_duration_hours:
        return "Approaching Limit"
    else:
        return "Overtime"
