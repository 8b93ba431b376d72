"""
Appointment lifecycle.

    PENDING  -> PROPOSED | CONFIRMED | CANCELLED
    PROPOSED -> PROPOSED | CONFIRMED | CANCELLED
    CONFIRMED -> COMPLETED | CANCELLED
    CANCELLED, COMPLETED are terminal

Every transition is a single conditional UPDATE guarded on the current
status, so two requests racing on the same appointment can never both
move it out of a state that only one of them was allowed to leave.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from advocate.core.exceptions import (
    ChatLockedException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from advocate.models.appointment import Appointment, AppointmentStatus
from advocate.models.conversation import Conversation
from advocate.models.notification import NotificationType, RelatedType
from advocate.models.user import User, UserRole
from advocate.services.conversation_service import (
    attach_appointment,
    get_or_create_conversation,
)
from advocate.services.notification_service import create_notification

logger = logging.getLogger(__name__)

OPEN_FOR_PROPOSAL = (AppointmentStatus.PENDING.value, AppointmentStatus.PROPOSED.value)
NON_TERMINAL = (
    AppointmentStatus.PENDING.value,
    AppointmentStatus.PROPOSED.value,
    AppointmentStatus.CONFIRMED.value,
)
HISTORY_STATUSES = (AppointmentStatus.COMPLETED.value, AppointmentStatus.CANCELLED.value)


@dataclass
class AppointmentEvent:
    """What a transition did and who should hear about it live."""

    appointment: Appointment
    notify_user_id: int
    event_type: str


# ------------------------------------------------------------------
# Chat gate
# ------------------------------------------------------------------

def ensure_chat_open(conversation: Conversation) -> None:
    """
    A conversation tied to an appointment is open once the appointment is
    CONFIRMED and stays open after COMPLETED. Unattached conversations are
    always open.
    """
    appointment = conversation.appointment
    if appointment is not None and not appointment.allows_chat():
        raise ChatLockedException(appointment.status)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundException("Appointment not found")
    return appointment


def _require_lawyer_of(appointment: Appointment, user: User, action: str, noun: str = "appointments") -> None:
    if user.role != UserRole.LAWYER.value:
        raise ForbiddenException(f"Only lawyers can {action} {noun}")

    if appointment.lawyer_id != user.id:
        raise ForbiddenException(f"You can only {action} your own {noun}")


def _guarded_update(
    db: Session,
    appointment: Appointment,
    allowed: Iterable[str],
    values: dict,
    error_message,
) -> None:
    """
    UPDATE ... WHERE status IN allowed. When another request moved the row
    first, nothing is written and the current status is reported.
    `error_message` is called with the lower-cased status.
    """
    updated = (
        db.query(Appointment)
        .filter(Appointment.id == appointment.id, Appointment.status.in_(tuple(allowed)))
        .update(values, synchronize_session=False)
    )
    if updated == 0:
        db.rollback()
        db.refresh(appointment)
        raise ValidationException(error_message(appointment.status.lower()))


def _commit_and_refresh(db: Session, appointment: Appointment) -> Appointment:
    db.commit()
    db.refresh(appointment)
    return appointment


# ------------------------------------------------------------------
# Transitions
# ------------------------------------------------------------------

def create_appointment(
    db: Session,
    client: User,
    *,
    lawyer_id: int,
    proposed_date: date,
    proposed_time: str,
    reason: str,
    notes: Optional[str] = None,
) -> AppointmentEvent:
    if client.role != UserRole.CLIENT.value:
        raise ForbiddenException("Only clients can create appointment requests")

    lawyer = (
        db.query(User)
        .filter(
            User.id == lawyer_id,
            User.role == UserRole.LAWYER.value,
            User.is_active.is_(True),
        )
        .first()
    )
    if not lawyer:
        raise NotFoundException("Lawyer not found or inactive")

    # commits on its own; must happen before the appointment is staged
    conversation = get_or_create_conversation(db, client.id, lawyer.id)

    appointment = Appointment(
        client_id=client.id,
        lawyer_id=lawyer.id,
        proposed_date=proposed_date,
        proposed_time=proposed_time,
        reason=reason,
        notes=notes or "",
        status=AppointmentStatus.PENDING.value,
        conversation_id=conversation.id,
    )
    db.add(appointment)
    db.flush()

    attach_appointment(db, conversation, appointment.id)

    create_notification(
        db,
        lawyer.id,
        NotificationType.APPOINTMENT_REQUEST,
        "New Appointment Request",
        f"{client.full_name} requested an appointment",
        appointment.id,
        RelatedType.APPOINTMENT,
    )

    _commit_and_refresh(db, appointment)
    logger.info(
        "Appointment %s requested by client %s with lawyer %s",
        appointment.id, client.id, lawyer.id,
    )

    return AppointmentEvent(appointment, lawyer.id, "APPOINTMENT_REQUEST")


def propose_time(
    db: Session,
    appointment_id: int,
    lawyer: User,
    *,
    proposed_date: date,
    proposed_time: str,
) -> AppointmentEvent:
    appointment = _get_appointment(db, appointment_id)
    _require_lawyer_of(appointment, lawyer, "propose times for", "appointments")

    _guarded_update(
        db,
        appointment,
        OPEN_FOR_PROPOSAL,
        {
            "proposed_date": proposed_date,
            "proposed_time": proposed_time,
            "status": AppointmentStatus.PROPOSED.value,
            # a new slot needs fresh agreement from both sides
            "client_confirmation": False,
            "lawyer_confirmation": False,
        },
        lambda status: f"Cannot propose time for {status} appointment",
    )

    create_notification(
        db,
        appointment.client_id,
        NotificationType.APPOINTMENT_PROPOSED,
        "Appointment Time Proposed",
        f"{lawyer.full_name} proposed a new time for your appointment: "
        f"{proposed_date.isoformat()} at {proposed_time}",
        appointment.id,
        RelatedType.APPOINTMENT,
    )

    _commit_and_refresh(db, appointment)
    logger.info("Appointment %s: lawyer proposed %s %s", appointment.id, proposed_date, proposed_time)

    return AppointmentEvent(appointment, appointment.client_id, "APPOINTMENT_PROPOSED")


def confirm_appointment(db: Session, appointment_id: int, user: User) -> AppointmentEvent:
    """
    Records the acting party's agreement to the slot on the table. The
    appointment becomes CONFIRMED once both flags are set.

    Each party only ever writes its own flag, with a single-column UPDATE,
    so two confirmations arriving together both persist; the promotion is
    a second UPDATE that only fires when the row already shows both flags.
    """
    appointment = _get_appointment(db, appointment_id)

    party = appointment.party_role(user.id)
    if party is None:
        raise ForbiddenException("You are not authorized to confirm this appointment")

    flag = "client_confirmation" if party == "client" else "lawyer_confirmation"

    _guarded_update(
        db,
        appointment,
        NON_TERMINAL,
        {flag: True},
        lambda status: f"Cannot confirm {status} appointment",
    )

    (
        db.query(Appointment)
        .filter(
            Appointment.id == appointment.id,
            Appointment.status.in_(NON_TERMINAL),
            Appointment.client_confirmation.is_(True),
            Appointment.lawyer_confirmation.is_(True),
        )
        .update(
            {
                "status": AppointmentStatus.CONFIRMED.value,
                "confirmed_date": Appointment.proposed_date,
                "confirmed_time": Appointment.proposed_time,
            },
            synchronize_session=False,
        )
    )
    db.refresh(appointment)

    confirmed = appointment.status == AppointmentStatus.CONFIRMED.value
    other_party_id = appointment.other_party_id(user.id)

    if confirmed:
        create_notification(
            db,
            other_party_id,
            NotificationType.APPOINTMENT_CONFIRMED,
            "Appointment Confirmed",
            f"Your appointment with {user.full_name} is confirmed",
            appointment.id,
            RelatedType.APPOINTMENT,
        )
    else:
        create_notification(
            db,
            other_party_id,
            NotificationType.APPOINTMENT_UPDATE,
            "Appointment Confirmation Update",
            f"{user.full_name} confirmed the appointment",
            appointment.id,
            RelatedType.APPOINTMENT,
        )

    _commit_and_refresh(db, appointment)
    logger.info(
        "Appointment %s: %s confirmed (status=%s)",
        appointment.id, party, appointment.status,
    )

    return AppointmentEvent(
        appointment,
        other_party_id,
        "APPOINTMENT_CONFIRMED" if confirmed else "APPOINTMENT_UPDATE",
    )


def accept_appointment(db: Session, appointment_id: int, lawyer: User) -> AppointmentEvent:
    """
    Lawyer shortcut straight to CONFIRMED. Only the lawyer flag is set;
    the client flag keeps whatever the client last recorded, so after a
    propose it stays false until the client calls confirm.
    """
    appointment = _get_appointment(db, appointment_id)
    _require_lawyer_of(appointment, lawyer, "accept")

    _guarded_update(
        db,
        appointment,
        OPEN_FOR_PROPOSAL,
        {
            "status": AppointmentStatus.CONFIRMED.value,
            "lawyer_confirmation": True,
            "confirmed_date": Appointment.proposed_date,
            "confirmed_time": Appointment.proposed_time,
        },
        lambda status: f"Cannot accept {status} appointment",
    )

    create_notification(
        db,
        appointment.client_id,
        NotificationType.APPOINTMENT_CONFIRMED,
        "Appointment Accepted",
        f"{lawyer.full_name} accepted your appointment request",
        appointment.id,
        RelatedType.APPOINTMENT,
    )

    _commit_and_refresh(db, appointment)
    logger.info("Appointment %s accepted by lawyer %s", appointment.id, lawyer.id)

    return AppointmentEvent(appointment, appointment.client_id, "APPOINTMENT_CONFIRMED")


def reject_appointment(
    db: Session,
    appointment_id: int,
    lawyer: User,
    rejection_reason: Optional[str] = None,
) -> AppointmentEvent:
    appointment = _get_appointment(db, appointment_id)
    _require_lawyer_of(appointment, lawyer, "reject")

    _guarded_update(
        db,
        appointment,
        NON_TERMINAL,
        {"status": AppointmentStatus.CANCELLED.value},
        lambda status: f"Cannot reject {status} appointment",
    )

    suffix = f": {rejection_reason}" if rejection_reason else ""
    create_notification(
        db,
        appointment.client_id,
        NotificationType.APPOINTMENT_CANCELLED,
        "Appointment Rejected",
        f"{lawyer.full_name} rejected your appointment request{suffix}",
        appointment.id,
        RelatedType.APPOINTMENT,
    )

    _commit_and_refresh(db, appointment)
    logger.info("Appointment %s rejected by lawyer %s", appointment.id, lawyer.id)

    return AppointmentEvent(appointment, appointment.client_id, "APPOINTMENT_REJECTED")


def complete_appointment(db: Session, appointment_id: int, lawyer: User) -> AppointmentEvent:
    appointment = _get_appointment(db, appointment_id)
    _require_lawyer_of(appointment, lawyer, "complete", "consultations")

    _guarded_update(
        db,
        appointment,
        (AppointmentStatus.CONFIRMED.value,),
        {"status": AppointmentStatus.COMPLETED.value},
        lambda status: "Only confirmed appointments can be completed",
    )

    create_notification(
        db,
        appointment.client_id,
        NotificationType.APPOINTMENT_COMPLETED,
        "Consultation Completed",
        f"{lawyer.full_name} marked your consultation as completed",
        appointment.id,
        RelatedType.APPOINTMENT,
    )

    _commit_and_refresh(db, appointment)
    logger.info("Appointment %s completed", appointment.id)

    return AppointmentEvent(appointment, appointment.client_id, "APPOINTMENT_COMPLETED")


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------

def _scope_to_user(query, user: User):
    if user.role == UserRole.CLIENT.value:
        return query.filter(Appointment.client_id == user.id)
    if user.role == UserRole.LAWYER.value:
        return query.filter(Appointment.lawyer_id == user.id)
    # admins see everything
    return query


def list_my_appointments(
    db: Session,
    user: User,
    *,
    status: Optional[str],
    page: int,
    limit: int,
) -> tuple[list[Appointment], int]:
    query = _scope_to_user(db.query(Appointment), user)
    if status:
        query = query.filter(Appointment.status == status)

    total = query.count()
    appointments = (
        query.order_by(Appointment.created_at.desc(), Appointment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return appointments, total


def consultation_history(
    db: Session,
    user: User,
    *,
    page: int,
    limit: int,
) -> tuple[list[Appointment], int]:
    query = _scope_to_user(
        db.query(Appointment).filter(Appointment.status.in_(HISTORY_STATUSES)),
        user,
    )

    total = query.count()
    appointments = (
        query.order_by(Appointment.updated_at.desc(), Appointment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return appointments, total


def get_appointment(db: Session, appointment_id: int, user: User) -> Appointment:
    appointment = _get_appointment(db, appointment_id)

    if appointment.party_role(user.id) is None and user.role != UserRole.ADMIN.value:
        raise ForbiddenException("Access denied")

    return appointment
