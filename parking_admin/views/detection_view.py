from fastapi import APIRouter, Depends, Request
from sqlmodel import Session
from parking_admin.controllers.detection_controller import DetectionController
from parking_admin.database import get_db
from parking_admin.dependencies import get_clock, get_notifier, get_plate_detector, get_session_registry
from parking_admin.schemas.parking_schemas import DetectionEvent, DetectionSessionResponse, GenericResponse


router = APIRouter(prefix="/detection", tags=["detection"])

@router.get("/status")
async def read_detector_status(detector=Depends(get_plate_detector)):
    return await detector.get_api_status()

@router.post("/sessions", response_model=DetectionSessionResponse)
def start_session(registry=Depends(get_session_registry), clock=Depends(get_clock)):
    return DetectionController.start_session(registry, clock)

@router.get("/sessions/{session_id}", response_model=DetectionSessionResponse)
def read_session(session_id: str, registry=Depends(get_session_registry), notifier=Depends(get_notifier), clock=Depends(get_clock)):
    session = DetectionController.get_session(session_id, registry, clock)
    return DetectionController.session_response(session, notifier)

@router.delete("/sessions/{session_id}", response_model=GenericResponse)
def end_session(session_id: str, registry=Depends(get_session_registry)):
    return DetectionController.end_session(session_id, registry)

@router.post("/sessions/{session_id}/detections", response_model=DetectionSessionResponse)
def post_detection(session_id: str, event: DetectionEvent, db: Session = Depends(get_db), registry=Depends(get_session_registry), notifier=Depends(get_notifier), clock=Depends(get_clock)):
    return DetectionController.handle_detection(session_id, event, registry, notifier, db, clock)

@router.post("/sessions/{session_id}/frames", response_model=DetectionSessionResponse)
async def post_frame(session_id: str, request: Request, db: Session = Depends(get_db), detector=Depends(get_plate_detector), registry=Depends(get_session_registry), notifier=Depends(get_notifier), clock=Depends(get_clock)):
    image = await request.body()
    return await DetectionController.handle_frame(session_id, image, detector, registry, notifier, db, clock)

@router.post("/sessions/{session_id}/confirm", response_model=GenericResponse)
def confirm_match(session_id: str, db: Session = Depends(get_db), registry=Depends(get_session_registry), notifier=Depends(get_notifier), clock=Depends(get_clock)):
    return DetectionController.confirm(session_id, registry, notifier, db, clock)

@router.post("/sessions/{session_id}/dismiss", response_model=DetectionSessionResponse)
def dismiss_match(session_id: str, registry=Depends(get_session_registry), notifier=Depends(get_notifier), clock=Depends(get_clock)):
    return DetectionController.dismiss(session_id, registry, notifier, clock)
