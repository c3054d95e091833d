import logging
from fastapi import HTTPException
from sqlmodel import Session
from fastapi.concurrency import run_in_threadpool
from parking_admin.controllers.reservation_controller import SQLReservationStore
from parking_admin.schemas.parking_schemas import DetectionEvent, DetectionSessionResponse, GenericResponse
from parking_admin.utils.plate_detection import PlateDetectionClient, PlateDetectionError
from parking_admin.utils.workflow import DetectionSession, DetectionSessionRegistry, Notifier, WorkflowError

logger = logging.getLogger(__name__)


class DetectionController:
    @staticmethod
    def session_response(session: DetectionSession, notifier: Notifier) -> DetectionSessionResponse:
        return DetectionSessionResponse(
            session_id=session.session_id,
            state=session.state.value,
            pending=session.pending,
            notification=notifier.latest(session.session_id),
        )

    @staticmethod
    def get_session(session_id: str, registry: DetectionSessionRegistry, clock) -> DetectionSession:
        session = registry.get(session_id, clock=clock)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Detection session '{session_id}' does not exist or has ended.")
        return session

    @staticmethod
    def start_session(registry: DetectionSessionRegistry, clock) -> DetectionSessionResponse:
        session = registry.start(clock=clock)
        return DetectionSessionResponse(session_id=session.session_id, state=session.state.value)

    @staticmethod
    def end_session(session_id: str, registry: DetectionSessionRegistry) -> GenericResponse:
        if not registry.end(session_id):
            raise HTTPException(status_code=404, detail=f"Detection session '{session_id}' does not exist or has ended.")
        return GenericResponse(message=f"Detection session '{session_id}' ended.")

    @staticmethod
    def handle_detection(session_id: str, event: DetectionEvent, registry: DetectionSessionRegistry, notifier: Notifier, db: Session, clock) -> DetectionSessionResponse:
        session = DetectionController.get_session(session_id, registry, clock)
        try:
            session.handle_detection(event, SQLReservationStore(db, clock))
        except Exception as e:
            logger.error(f"Session {session_id}: detection of {event.plate_text} failed: {e}")
            raise HTTPException(status_code=500, detail=f"An error occured while matching plate {event.plate_text}: {e}")
        return DetectionController.session_response(session, notifier)

    @staticmethod
    async def handle_frame(session_id: str, image: bytes, detector: PlateDetectionClient, registry: DetectionSessionRegistry, notifier: Notifier, db: Session, clock) -> DetectionSessionResponse:
        session = DetectionController.get_session(session_id, registry, clock)
        try:
            result = await detector.detect_plate(image)
        except PlateDetectionError as e:
            raise HTTPException(status_code=502, detail=str(e))

        if not result.detected or result.primary_plate is None:
            logger.info(f"Session {session_id}: no plate in frame")
            return await run_in_threadpool(DetectionController.session_response, session, notifier)

        event = DetectionEvent(plate_text=result.primary_plate.number, timestamp=clock())
        # Matching queries the database, keep it off the event loop
        return await run_in_threadpool(DetectionController.handle_detection, session_id, event, registry, notifier, db, clock)

    @staticmethod
    def confirm(session_id: str, registry: DetectionSessionRegistry, notifier: Notifier, db: Session, clock) -> GenericResponse:
        session = DetectionController.get_session(session_id, registry, clock)
        try:
            pending = session.confirm(SQLReservationStore(db, clock), notifier)
        except WorkflowError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return GenericResponse(
            message=f"Reservation {pending.reservation_id} for {pending.customer_name} in slot {pending.slot_id} approved.",
            data=pending,
        )

    @staticmethod
    def dismiss(session_id: str, registry: DetectionSessionRegistry, notifier: Notifier, clock) -> DetectionSessionResponse:
        session = DetectionController.get_session(session_id, registry, clock)
        try:
            session.dismiss()
        except WorkflowError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return DetectionController.session_response(session, notifier)
