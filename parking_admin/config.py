import os
from enum import Enum
from zoneinfo import ZoneInfo
from dotenv import load_dotenv

load_dotenv()


class BillingPolicy(str, Enum):
    FIXED_RATE = "fixed-rate"
    PER_SLOT_FLAT = "per-slot-flat"


class Config:
    SECONDS_PER_HOUR = 3600
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Colombo")

    # Rs. per hour
    BASE_RATE = float(os.getenv("BASE_RATE", "200"))
    OVERTIME_RATE = float(os.getenv("OVERTIME_RATE", "300"))
    DEFAULT_SLOT_PRICE = 5.00
    SLOT_COUNT = 50

    BILLING_POLICY = os.getenv("BILLING_POLICY", BillingPolicy.FIXED_RATE.value)

    NOTIFICATION_TTL_SECONDS = 5
    # Detection sessions untouched for this long are dropped
    SESSION_IDLE_SECONDS = int(os.getenv("SESSION_IDLE_SECONDS", "3600"))
    PLATE_DETECTION_API_URL = os.getenv("PLATE_DETECTION_API_URL", "http://localhost:5001/detect_plate")
    PLATE_DETECTION_TIMEOUT = float(os.getenv("PLATE_DETECTION_TIMEOUT", "10"))

    @staticmethod
    def get_timezone():
        return ZoneInfo(Config.TIMEZONE)

    @staticmethod
    def get_billing_policy() -> BillingPolicy:
        return BillingPolicy(Config.BILLING_POLICY)
