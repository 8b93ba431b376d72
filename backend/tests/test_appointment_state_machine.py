from datetime import date

import pytest

from advocate.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from advocate.models import Appointment, AppointmentStatus, Notification, NotificationType, UserRole
from advocate.services import appointment_service
from advocate.services.conversation_service import find_conversation

from conftest import TestingSessionLocal, make_user


def _notifications_for(db, user_id):
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.id.asc())
        .all()
    )


def test_create_opens_pending_appointment_and_conversation(db_session, pending_appointment, client_user, lawyer_user):
    assert pending_appointment.status == AppointmentStatus.PENDING.value
    assert pending_appointment.client_confirmation is False
    assert pending_appointment.lawyer_confirmation is False

    conversation = find_conversation(db_session, client_user.id, lawyer_user.id)
    assert conversation is not None
    assert pending_appointment.conversation_id == conversation.id
    assert conversation.appointment_id == pending_appointment.id

    notifications = _notifications_for(db_session, lawyer_user.id)
    assert [n.type for n in notifications] == [NotificationType.APPOINTMENT_REQUEST.value]


def test_only_clients_can_request(db_session, lawyer_user):
    other_lawyer = make_user(db_session, "lena@example.com", UserRole.LAWYER, "Lena")

    with pytest.raises(ForbiddenException):
        appointment_service.create_appointment(
            db_session,
            lawyer_user,
            lawyer_id=other_lawyer.id,
            proposed_date=date(2024, 6, 1),
            proposed_time="10:00",
            reason="Lawyers cannot book each other",
        )


def test_request_to_inactive_lawyer_is_not_found(db_session, client_user, lawyer_user):
    lawyer_user.is_active = False
    db_session.commit()

    with pytest.raises(NotFoundException):
        appointment_service.create_appointment(
            db_session,
            client_user,
            lawyer_id=lawyer_user.id,
            proposed_date=date(2024, 6, 1),
            proposed_time="10:00",
            reason="Need advice on a rental contract dispute",
        )


def test_second_request_reuses_conversation(db_session, pending_appointment, client_user, lawyer_user):
    event = appointment_service.create_appointment(
        db_session,
        client_user,
        lawyer_id=lawyer_user.id,
        proposed_date=date(2024, 7, 1),
        proposed_time="09:00",
        reason="Follow-up on the rental contract dispute",
    )

    assert event.appointment.conversation_id == pending_appointment.conversation_id

    conversation = find_conversation(db_session, client_user.id, lawyer_user.id)
    db_session.refresh(conversation)
    # latest appointment wins
    assert conversation.appointment_id == event.appointment.id


def test_propose_resets_both_flags(db_session, pending_appointment, client_user, lawyer_user):
    appointment_service.confirm_appointment(db_session, pending_appointment.id, client_user)

    event = appointment_service.propose_time(
        db_session,
        pending_appointment.id,
        lawyer_user,
        proposed_date=date(2024, 6, 2),
        proposed_time="14:00",
    )

    appointment = event.appointment
    assert appointment.status == AppointmentStatus.PROPOSED.value
    assert appointment.client_confirmation is False
    assert appointment.lawyer_confirmation is False
    assert appointment.proposed_time == "14:00"
    assert event.notify_user_id == client_user.id


def test_propose_requires_the_appointments_own_lawyer(db_session, pending_appointment):
    stranger = make_user(db_session, "sam@example.com", UserRole.LAWYER, "Sam")

    with pytest.raises(ForbiddenException) as exc:
        appointment_service.propose_time(
            db_session,
            pending_appointment.id,
            stranger,
            proposed_date=date(2024, 6, 2),
            proposed_time="14:00",
        )

    assert exc.value.message == "You can only propose times for your own appointments"


def test_cannot_propose_on_confirmed(db_session, confirmed_appointment, lawyer_user):
    with pytest.raises(ValidationException) as exc:
        appointment_service.propose_time(
            db_session,
            confirmed_appointment.id,
            lawyer_user,
            proposed_date=date(2024, 6, 2),
            proposed_time="14:00",
        )

    assert exc.value.message == "Cannot propose time for confirmed appointment"


def test_single_confirmation_keeps_status(db_session, pending_appointment, client_user, lawyer_user):
    event = appointment_service.confirm_appointment(db_session, pending_appointment.id, client_user)

    assert event.appointment.status == AppointmentStatus.PENDING.value
    assert event.appointment.client_confirmation is True
    assert event.appointment.lawyer_confirmation is False
    assert event.event_type == "APPOINTMENT_UPDATE"
    assert event.notify_user_id == lawyer_user.id


def test_confirm_twice_is_idempotent(db_session, pending_appointment, client_user):
    first = appointment_service.confirm_appointment(db_session, pending_appointment.id, client_user)
    snapshot = (first.appointment.status, first.appointment.client_confirmation, first.appointment.lawyer_confirmation)

    second = appointment_service.confirm_appointment(db_session, pending_appointment.id, client_user)

    assert (
        second.appointment.status,
        second.appointment.client_confirmation,
        second.appointment.lawyer_confirmation,
    ) == snapshot


def test_confirm_by_outsider_is_forbidden(db_session, pending_appointment, other_user):
    with pytest.raises(ForbiddenException):
        appointment_service.confirm_appointment(db_session, pending_appointment.id, other_user)


def test_both_confirmations_promote_to_confirmed(db_session, pending_appointment, client_user, lawyer_user):
    appointment_service.confirm_appointment(db_session, pending_appointment.id, client_user)
    event = appointment_service.confirm_appointment(db_session, pending_appointment.id, lawyer_user)

    appointment = event.appointment
    assert appointment.status == AppointmentStatus.CONFIRMED.value
    assert appointment.confirmed_date == appointment.proposed_date
    assert appointment.confirmed_time == appointment.proposed_time
    assert event.event_type == "APPOINTMENT_CONFIRMED"

    types = [n.type for n in _notifications_for(db_session, client_user.id)]
    assert NotificationType.APPOINTMENT_CONFIRMED.value in types


def test_accept_confirms_with_lawyer_flag_only(db_session, pending_appointment, client_user, lawyer_user):
    appointment_service.propose_time(
        db_session, pending_appointment.id, lawyer_user, proposed_date=date(2024, 6, 2), proposed_time="14:00"
    )

    event = appointment_service.accept_appointment(db_session, pending_appointment.id, lawyer_user)

    appointment = event.appointment
    assert appointment.status == AppointmentStatus.CONFIRMED.value
    assert appointment.lawyer_confirmation is True
    # the client never saw the new slot, so nothing is recorded on their behalf
    assert appointment.client_confirmation is False
    assert appointment.confirmed_date == date(2024, 6, 2)
    assert appointment.confirmed_time == "14:00"
    assert event.notify_user_id == client_user.id


def test_client_confirm_after_accept_sets_client_flag(db_session, confirmed_appointment, client_user):
    event = appointment_service.confirm_appointment(db_session, confirmed_appointment.id, client_user)

    assert event.appointment.status == AppointmentStatus.CONFIRMED.value
    assert event.appointment.client_confirmation is True
    assert event.appointment.lawyer_confirmation is True


def test_accept_twice_is_rejected(db_session, confirmed_appointment, lawyer_user):
    with pytest.raises(ValidationException) as exc:
        appointment_service.accept_appointment(db_session, confirmed_appointment.id, lawyer_user)

    assert exc.value.message == "Cannot accept confirmed appointment"


def test_client_cannot_accept(db_session, pending_appointment, client_user):
    with pytest.raises(ForbiddenException) as exc:
        appointment_service.accept_appointment(db_session, pending_appointment.id, client_user)

    assert exc.value.message == "Only lawyers can accept appointments"


def test_complete_only_from_confirmed(db_session, pending_appointment, lawyer_user):
    with pytest.raises(ValidationException) as exc:
        appointment_service.complete_appointment(db_session, pending_appointment.id, lawyer_user)

    assert exc.value.message == "Only confirmed appointments can be completed"


def test_terminal_states_absorb(db_session, confirmed_appointment, client_user, lawyer_user):
    appointment_service.complete_appointment(db_session, confirmed_appointment.id, lawyer_user)

    with pytest.raises(ValidationException):
        appointment_service.reject_appointment(db_session, confirmed_appointment.id, lawyer_user)

    with pytest.raises(ValidationException) as exc:
        appointment_service.confirm_appointment(db_session, confirmed_appointment.id, client_user)
    assert exc.value.message == "Cannot confirm completed appointment"

    stored = db_session.get(Appointment, confirmed_appointment.id)
    db_session.refresh(stored)
    assert stored.status == AppointmentStatus.COMPLETED.value


def test_confirm_reached_confirmed_carries_both_flags(db_session, client_user, lawyer_user):
    ids = []

    for reason in ("First matter about a lease", "Second matter about a lease"):
        event = appointment_service.create_appointment(
            db_session,
            client_user,
            lawyer_id=lawyer_user.id,
            proposed_date=date(2024, 6, 1),
            proposed_time="10:00",
            reason=reason,
        )
        ids.append(event.appointment.id)

    appointment_service.confirm_appointment(db_session, ids[0], client_user)
    appointment_service.confirm_appointment(db_session, ids[0], lawyer_user)

    appointment_service.propose_time(
        db_session, ids[1], lawyer_user, proposed_date=date(2024, 6, 3), proposed_time="11:00"
    )
    appointment_service.confirm_appointment(db_session, ids[1], lawyer_user)
    appointment_service.confirm_appointment(db_session, ids[1], client_user)

    db_session.expire_all()
    for appointment_id in ids:
        appointment = db_session.get(Appointment, appointment_id)
        assert appointment.status == AppointmentStatus.CONFIRMED.value
        assert appointment.client_confirmation is True
        assert appointment.lawyer_confirmation is True
        assert appointment.confirmed_date is not None


def test_interleaved_confirmations_both_persist(db_session, pending_appointment, client_user, lawyer_user, monkeypatch):
    real_update = appointment_service._guarded_update
    interleaved = []

    # the lawyer's whole confirm runs between the client's flag write and
    # the client's promotion step
    def racing_update(db, appointment, allowed, values, error_message):
        real_update(db, appointment, allowed, values, error_message)
        if values == {"client_confirmation": True} and not interleaved:
            interleaved.append(True)
            other_db = TestingSessionLocal()
            try:
                appointment_service.confirm_appointment(other_db, appointment.id, lawyer_user)
            finally:
                other_db.close()

    monkeypatch.setattr(appointment_service, "_guarded_update", racing_update)

    event = appointment_service.confirm_appointment(db_session, pending_appointment.id, client_user)

    assert interleaved == [True]
    assert event.appointment.status == AppointmentStatus.CONFIRMED.value

    db_session.expire_all()
    stored = db_session.get(Appointment, pending_appointment.id)
    assert stored.client_confirmation is True
    assert stored.lawyer_confirmation is True
    assert stored.status == AppointmentStatus.CONFIRMED.value
    assert stored.confirmed_time == "10:00"


def test_negotiation_scenario(db_session, pending_appointment, client_user, lawyer_user):
    appointment_id = pending_appointment.id

    proposed = appointment_service.propose_time(
        db_session, appointment_id, lawyer_user, proposed_date=date(2024, 6, 1), proposed_time="14:00"
    ).appointment
    assert proposed.status == AppointmentStatus.PROPOSED.value
    assert (proposed.client_confirmation, proposed.lawyer_confirmation) == (False, False)

    after_client = appointment_service.confirm_appointment(db_session, appointment_id, client_user).appointment
    assert after_client.client_confirmation is True
    assert after_client.status == AppointmentStatus.PROPOSED.value

    after_lawyer = appointment_service.confirm_appointment(db_session, appointment_id, lawyer_user).appointment
    assert after_lawyer.lawyer_confirmation is True
    assert after_lawyer.status == AppointmentStatus.CONFIRMED.value
    assert after_lawyer.confirmed_time == "14:00"

    completed = appointment_service.complete_appointment(db_session, appointment_id, lawyer_user).appointment
    assert completed.status == AppointmentStatus.COMPLETED.value


def test_reject_with_reason_notifies_client(db_session, pending_appointment, client_user, lawyer_user):
    event = appointment_service.reject_appointment(
        db_session, pending_appointment.id, lawyer_user, rejection_reason="schedule conflict"
    )

    assert event.appointment.status == AppointmentStatus.CANCELLED.value
    assert event.event_type == "APPOINTMENT_REJECTED"

    notification = _notifications_for(db_session, client_user.id)[-1]
    assert notification.type == NotificationType.APPOINTMENT_CANCELLED.value
    assert notification.message.endswith(": schedule conflict")


def test_failed_notification_does_not_undo_transition(db_session, pending_appointment, lawyer_user, monkeypatch):
    from sqlalchemy.exc import OperationalError
    from advocate.services import notification_service

    def broken_add(*args, **kwargs):
        raise OperationalError("INSERT INTO notifications", {}, Exception("disk full"))

    real_add = db_session.add

    def add(instance, *args, **kwargs):
        if isinstance(instance, notification_service.Notification):
            broken_add()
        return real_add(instance, *args, **kwargs)

    monkeypatch.setattr(db_session, "add", add)

    event = appointment_service.accept_appointment(db_session, pending_appointment.id, lawyer_user)
    assert event.appointment.status == AppointmentStatus.CONFIRMED.value

    monkeypatch.undo()
    stored = db_session.get(Appointment, pending_appointment.id)
    db_session.refresh(stored)
    assert stored.status == AppointmentStatus.CONFIRMED.value
