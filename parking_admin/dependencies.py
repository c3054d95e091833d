from parking_admin.database import redis_client
from parking_admin.utils.calculation import utc_now
from parking_admin.utils.plate_detection import PlateDetectionClient
from parking_admin.utils.workflow import DetectionSessionRegistry, RedisNotifier

session_registry = DetectionSessionRegistry()


def get_clock():
    return utc_now

def get_notifier():
    return RedisNotifier(redis_client)

def get_session_registry():
    return session_registry

def get_plate_detector():
    return PlateDetectionClient()
