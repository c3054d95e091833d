import json
import logging
import threading
import uuid
from enum import Enum
from typing import Dict, List, Optional, Protocol
from redis.exceptions import RedisError
from parking_admin.config import Config
from parking_admin.schemas.parking_schemas import DetectionEvent, PendingConfirmationResponse
from parking_admin.utils.calculation import utc_now
from parking_admin.utils.plates import match_detection

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    pass


class ConfirmationState(str, Enum):
    IDLE = "idle"
    DETECTED = "detected"
    MATCH_FOUND = "match_found"
    CONFIRMED = "confirmed"
    APPROVED = "approved"
    DISMISSED = "dismissed"


class ReservationStore(Protocol):
    def list_pending_reservations(self) -> List: ...

    def approve_reservation(self, reservation_id: int) -> None: ...

    def get_reservation(self, reservation_id: int): ...


class Notifier(Protocol):
    def notify(self, session_id: str, payload: dict, ttl_seconds: int) -> None: ...

    def latest(self, session_id: str) -> Optional[dict]: ...


class RedisNotifier:
    """Success notifications kept in Redis only for their display lifetime.

    Notifications are best effort: when Redis is unreachable the error is
    logged and the matching workflow carries on without them.
    """

    KEY_PREFIX = "parking_admin:notification:"

    def __init__(self, redis_client):
        self.redis = redis_client

    def notify(self, session_id: str, payload: dict, ttl_seconds: int) -> None:
        try:
            self.redis.set(f"{self.KEY_PREFIX}{session_id}", json.dumps(payload, default=str), ex=ttl_seconds)
        except RedisError as e:
            logger.error(f"Session {session_id}: could not store notification: {e}")

    def latest(self, session_id: str) -> Optional[dict]:
        try:
            raw = self.redis.get(f"{self.KEY_PREFIX}{session_id}")
        except RedisError as e:
            logger.error(f"Session {session_id}: could not read notification: {e}")
            return None
        if raw is None:
            return None
        return json.loads(raw)

    def clear(self, session_id: str) -> None:
        self.redis.delete(f"{self.KEY_PREFIX}{session_id}")


class DetectionSession:
    """Operator-facing match -> confirm -> commit protocol for camera detections.

    A camera match never approves anything by itself: it parks the matched
    reservation in ``pending`` until the operator confirms or dismisses it.
    Transitions are serialised per session, so two racing confirms approve
    at most once.
    """

    def __init__(self, session_id: Optional[str] = None, clock=utc_now):
        self.session_id = session_id or uuid.uuid4().hex
        self.clock = clock
        self.state = ConfirmationState.IDLE
        self.pending: Optional[PendingConfirmationResponse] = None
        self.last_plate: Optional[str] = None
        self.last_activity = clock()
        self._lock = threading.RLock()

    def touch(self) -> None:
        self.last_activity = self.clock()

    def handle_detection(self, event: DetectionEvent, store: ReservationStore):
        with self._lock:
            self.touch()
            if self.state == ConfirmationState.MATCH_FOUND:
                logger.info(f"Session {self.session_id}: ignoring {event.plate_text}, confirmation already pending")
                return None

            self.state = ConfirmationState.DETECTED
            self.last_plate = event.plate_text

            candidates = list(store.list_pending_reservations())
            reservation = match_detection(event.plate_text, candidates)

            if reservation is None:
                self.state = ConfirmationState.IDLE
                return None

            self.pending = PendingConfirmationResponse(
                plate_number=event.plate_text,
                reservation_id=reservation.id,
                customer_name=reservation.customer_name,
                slot_id=reservation.slot_id,
                detected_at=event.timestamp or self.clock(),
            )
            self.state = ConfirmationState.MATCH_FOUND
            return reservation

    def confirm(self, store: ReservationStore, notifier: Notifier) -> PendingConfirmationResponse:
        with self._lock:
            self.touch()
            if self.state != ConfirmationState.MATCH_FOUND or self.pending is None:
                raise WorkflowError(f"Nothing to confirm, session is {self.state.value}")

            pending = self.pending
            self.state = ConfirmationState.CONFIRMED
            try:
                store.approve_reservation(pending.reservation_id)
            except Exception:
                # The match stays pending so the operator can retry or dismiss
                self.state = ConfirmationState.MATCH_FOUND
                raise
            self.state = ConfirmationState.APPROVED
            logger.info(f"Session {self.session_id}: reservation {pending.reservation_id} approved from plate {pending.plate_number}")

            # The approval is committed, the session goes back to idle whatever the notifier does
            try:
                notifier.notify(
                    self.session_id,
                    {
                        "message": f"Reservation approved for {pending.customer_name} in slot {pending.slot_id}",
                        "plate_number": pending.plate_number,
                        "reservation_id": pending.reservation_id,
                        "customer_name": pending.customer_name,
                        "slot_id": pending.slot_id,
                        "timestamp": self.clock().isoformat(),
                    },
                    Config.NOTIFICATION_TTL_SECONDS,
                )
            finally:
                self.pending = None
                self.state = ConfirmationState.IDLE
            return pending

    def dismiss(self) -> None:
        with self._lock:
            self.touch()
            if self.state != ConfirmationState.MATCH_FOUND:
                raise WorkflowError(f"Nothing to dismiss, session is {self.state.value}")
            logger.info(f"Session {self.session_id}: match for reservation {self.pending.reservation_id} dismissed")
            self.state = ConfirmationState.DISMISSED
            self.pending = None
            self.state = ConfirmationState.IDLE


class DetectionSessionRegistry:
    def __init__(self, idle_seconds: Optional[int] = None):
        self._sessions: Dict[str, DetectionSession] = {}
        self._lock = threading.Lock()
        self.idle_seconds = Config.SESSION_IDLE_SECONDS if idle_seconds is None else idle_seconds

    def _expire_idle(self, clock) -> None:
        now = clock()
        expired = [
            session_id for session_id, session in self._sessions.items()
            if (now - session.last_activity).total_seconds() > self.idle_seconds
        ]
        for session_id in expired:
            del self._sessions[session_id]
            logger.info(f"Detection session {session_id} expired after {self.idle_seconds}s idle")

    def start(self, clock=utc_now) -> DetectionSession:
        session = DetectionSession(clock=clock)
        with self._lock:
            self._expire_idle(clock)
            self._sessions[session.session_id] = session
        logger.info(f"Detection session {session.session_id} started")
        return session

    def get(self, session_id: str, clock=utc_now) -> Optional[DetectionSession]:
        with self._lock:
            self._expire_idle(clock)
            return self._sessions.get(session_id)

    def end(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info(f"Detection session {session_id} ended")
        return session is not None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
