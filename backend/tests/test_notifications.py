from advocate.models import Notification, NotificationType
from advocate.services.notification_service import create_notification

BASE = "/api/v1/notifications"


def _seed(db, user, count):
    for i in range(count):
        create_notification(db, user.id, NotificationType.SYSTEM, f"Notice {i}", f"Body {i}")
    db.commit()


def test_inbox_lists_newest_first_with_unread_count(client, db_session, client_user, client_headers):
    _seed(db_session, client_user, 3)

    data = client.get(BASE, headers=client_headers).json()["data"]

    assert [n["title"] for n in data["notifications"]] == ["Notice 2", "Notice 1", "Notice 0"]
    assert data["unreadCount"] == 3
    assert data["pagination"]["total"] == 3


def test_mark_one_read(client, db_session, client_user, client_headers):
    _seed(db_session, client_user, 2)
    notification_id = db_session.query(Notification).first().id

    response = client.patch(f"{BASE}/{notification_id}/read", headers=client_headers)

    assert response.status_code == 200
    assert response.json()["data"]["notification"]["isRead"] is True

    data = client.get(BASE, params={"isRead": "false"}, headers=client_headers).json()["data"]
    assert len(data["notifications"]) == 1
    assert data["unreadCount"] == 1


def test_cannot_read_someone_elses_notification(client, db_session, client_user, other_headers):
    _seed(db_session, client_user, 1)
    notification_id = db_session.query(Notification).first().id

    response = client.patch(f"{BASE}/{notification_id}/read", headers=other_headers)

    assert response.status_code == 403


def test_read_all_and_clear_all(client, db_session, client_user, lawyer_user, client_headers):
    _seed(db_session, client_user, 3)
    _seed(db_session, lawyer_user, 1)

    read_all = client.patch(f"{BASE}/read-all", headers=client_headers)
    assert read_all.json()["data"]["updatedCount"] == 3

    cleared = client.delete(f"{BASE}/clear-all", headers=client_headers)
    assert cleared.json()["data"]["deletedCount"] == 3

    db_session.expire_all()
    remaining = db_session.query(Notification).all()
    assert [n.user_id for n in remaining] == [lawyer_user.id]


def test_appointment_request_lands_in_lawyer_inbox(client, pending_appointment, lawyer_headers):
    data = client.get(BASE, headers=lawyer_headers).json()["data"]

    assert data["notifications"][0]["type"] == "APPOINTMENT_REQUEST"
    assert data["notifications"][0]["relatedId"] == pending_appointment.id
    assert data["notifications"][0]["relatedType"] == "appointment"
