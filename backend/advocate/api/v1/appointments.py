import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from advocate.core.config import settings
from advocate.core.dependencies import get_current_user
from advocate.db.session import get_db
from advocate.models.appointment import AppointmentStatus
from advocate.models.user import User
from advocate.realtime.rooms import UserRoom, manager
from advocate.schemas.appointment import (
    AppointmentCreate,
    AppointmentOut,
    ProposeTimeRequest,
    RejectRequest,
)
from advocate.schemas.base import build_pagination
from advocate.services import appointment_service
from advocate.services.appointment_service import AppointmentEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


async def push_appointment_event(user_id: int, event_type: str, appointment: dict) -> None:
    """Best effort: the notification row is already committed."""
    try:
        await manager.emit_to_room(
            UserRoom(user_id),
            "appointment",
            {"type": event_type, "appointment": appointment},
        )
    except Exception:
        logger.exception("Live %s push to user %s failed", event_type, user_id)


def _respond(event: AppointmentEvent, background_tasks: BackgroundTasks, message: str) -> dict:
    appointment = AppointmentOut.model_validate(event.appointment).to_wire()

    background_tasks.add_task(
        push_appointment_event, event.notify_user_id, event.event_type, appointment
    )

    return {
        "success": True,
        "message": message,
        "data": {"appointment": appointment},
    }


# ------------------------------------------------------------------
# Transitions
# ------------------------------------------------------------------

@router.post("", status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = appointment_service.create_appointment(
        db,
        current_user,
        lawyer_id=payload.lawyer_id,
        proposed_date=payload.proposed_date,
        proposed_time=payload.proposed_time,
        reason=payload.reason,
        notes=payload.notes,
    )
    return _respond(event, background_tasks, "Appointment request sent successfully")


@router.patch("/{appointment_id}/propose")
def propose_time(
    appointment_id: int,
    payload: ProposeTimeRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = appointment_service.propose_time(
        db,
        appointment_id,
        current_user,
        proposed_date=payload.proposed_date,
        proposed_time=payload.proposed_time,
    )
    return _respond(event, background_tasks, "New time proposed successfully")


@router.patch("/{appointment_id}/accept")
def accept_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = appointment_service.accept_appointment(db, appointment_id, current_user)
    return _respond(event, background_tasks, "Appointment accepted successfully")


@router.patch("/{appointment_id}/reject")
def reject_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    payload: Optional[RejectRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = appointment_service.reject_appointment(
        db,
        appointment_id,
        current_user,
        rejection_reason=payload.rejection_reason if payload else None,
    )
    return _respond(event, background_tasks, "Appointment rejected")


@router.patch("/{appointment_id}/confirm")
def confirm_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = appointment_service.confirm_appointment(db, appointment_id, current_user)

    if event.appointment.status == AppointmentStatus.CONFIRMED.value:
        message = "Appointment confirmed by both parties"
    else:
        message = "Your confirmation has been recorded"

    return _respond(event, background_tasks, message)


@router.patch("/{appointment_id}/complete")
def complete_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = appointment_service.complete_appointment(db, appointment_id, current_user)
    return _respond(event, background_tasks, "Consultation marked as completed")


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------

@router.get("/mine")
def my_appointments(
    status_filter: Optional[AppointmentStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    appointments, total = appointment_service.list_my_appointments(
        db,
        current_user,
        status=status_filter.value if status_filter else None,
        page=page,
        limit=limit,
    )

    return {
        "success": True,
        "data": {
            "appointments": [AppointmentOut.model_validate(a).to_wire() for a in appointments],
            "pagination": build_pagination(page, limit, total).to_wire(),
        },
    }


@router.get("/history")
def consultation_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.HISTORY_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    appointments, total = appointment_service.consultation_history(
        db, current_user, page=page, limit=limit
    )

    return {
        "success": True,
        "data": {
            "appointments": [AppointmentOut.model_validate(a).to_wire() for a in appointments],
            "pagination": build_pagination(page, limit, total).to_wire(),
        },
    }


@router.get("/{appointment_id}")
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    appointment = appointment_service.get_appointment(db, appointment_id, current_user)

    return {
        "success": True,
        "data": {"appointment": AppointmentOut.model_validate(appointment).to_wire()},
    }
