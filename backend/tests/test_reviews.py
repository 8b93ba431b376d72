import pytest

from advocate.core.exceptions import ConflictException, ForbiddenException, ValidationException
from advocate.models import Review, UserRole
from advocate.services import review_service

from conftest import make_user


def test_review_requires_completed_appointment(db_session, confirmed_appointment, client_user):
    with pytest.raises(ValidationException) as exc:
        review_service.create_review(
            db_session, client_user, appointment_id=confirmed_appointment.id, rating=5
        )

    assert exc.value.message == "Only completed appointments can be reviewed"


def test_only_the_appointments_client_may_review(db_session, completed_appointment, lawyer_user, other_user):
    with pytest.raises(ForbiddenException) as exc:
        review_service.create_review(
            db_session, lawyer_user, appointment_id=completed_appointment.id, rating=5
        )
    assert exc.value.message == "Only clients can create reviews"

    with pytest.raises(ForbiddenException) as exc:
        review_service.create_review(
            db_session, other_user, appointment_id=completed_appointment.id, rating=5
        )
    assert exc.value.message == "You can only review your own appointments"


def test_second_review_of_same_appointment_conflicts(db_session, completed_appointment, client_user, lawyer_user):
    review = review_service.create_review(
        db_session, client_user, appointment_id=completed_appointment.id, rating=4, comment="Clear advice"
    )
    assert review.lawyer_id == lawyer_user.id

    with pytest.raises(ConflictException) as exc:
        review_service.create_review(
            db_session, client_user, appointment_id=completed_appointment.id, rating=1
        )

    assert exc.value.status_code == 409
    assert exc.value.message == "You have already reviewed this appointment"
    assert db_session.query(Review).count() == 1


def test_concurrent_duplicate_insert_is_a_conflict(db_session, completed_appointment, client_user, monkeypatch):
    review_service.create_review(
        db_session, client_user, appointment_id=completed_appointment.id, rating=4
    )

    real_query = db_session.query

    # the existence check runs before the other review is visible
    def stale_query(*entities):
        query = real_query(*entities)
        if len(entities) == 1 and entities[0] is Review.id:
            return query.filter(Review.id == -1)
        return query

    monkeypatch.setattr(db_session, "query", stale_query)

    with pytest.raises(ConflictException):
        review_service.create_review(
            db_session, client_user, appointment_id=completed_appointment.id, rating=2
        )

    monkeypatch.undo()
    assert db_session.query(Review).count() == 1


def test_create_review_endpoint(client, completed_appointment, client_user, client_headers):
    response = client.post(
        "/api/v1/reviews",
        json={"appointmentId": completed_appointment.id, "rating": 5, "comment": "Very helpful"},
        headers=client_headers,
    )

    assert response.status_code == 201
    review = response.json()["data"]["review"]
    assert review["rating"] == 5
    assert review["client"]["id"] == client_user.id
    assert "email" not in review["client"]

    duplicate = client.post(
        "/api/v1/reviews",
        json={"appointmentId": completed_appointment.id, "rating": 3},
        headers=client_headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "CONFLICT"


def test_rating_out_of_range_is_rejected(client, completed_appointment, client_headers):
    response = client.post(
        "/api/v1/reviews",
        json={"appointmentId": completed_appointment.id, "rating": 6},
        headers=client_headers,
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "rating"


def test_lawyer_reviews_and_my_reviews(client, db_session, completed_appointment, lawyer_user, client_headers, lawyer_headers):
    client.post(
        "/api/v1/reviews",
        json={"appointmentId": completed_appointment.id, "rating": 4},
        headers=client_headers,
    )

    public = client.get(f"/api/v1/reviews/lawyer/{lawyer_user.id}")
    assert public.status_code == 200
    assert [r["rating"] for r in public.json()["data"]["reviews"]] == [4]
    assert public.json()["data"]["pagination"]["total"] == 1

    mine = client.get("/api/v1/reviews/mine", headers=lawyer_headers)
    assert [r["appointmentId"] for r in mine.json()["data"]["reviews"]] == [completed_appointment.id]


def test_directory_lists_active_lawyers_with_ratings(client, db_session, completed_appointment, lawyer_user, client_user):
    inactive = make_user(db_session, "ivan@example.com", UserRole.LAWYER, "Ivan")
    inactive.is_active = False
    db_session.commit()

    review_service.create_review(
        db_session, client_user, appointment_id=completed_appointment.id, rating=4
    )

    response = client.get("/api/v1/lawyers")

    assert response.status_code == 200
    lawyers = response.json()["data"]["lawyers"]
    assert [entry["id"] for entry in lawyers] == [lawyer_user.id]
    assert lawyers[0]["firstName"] == "Larry"
    assert lawyers[0]["rating"] == 4.0
    assert lawyers[0]["totalReviews"] == 1
    assert "email" not in lawyers[0]


def test_directory_search_and_lookup(client, db_session, lawyer_user):
    make_user(db_session, "lena@example.com", UserRole.LAWYER, "Lena")

    found = client.get("/api/v1/lawyers", params={"search": "len"}).json()["data"]
    assert [entry["firstName"] for entry in found["lawyers"]] == ["Lena"]
    assert found["pagination"]["total"] == 1

    detail = client.get(f"/api/v1/lawyers/{lawyer_user.id}")
    assert detail.json()["data"]["lawyer"]["totalReviews"] == 0

    assert client.get("/api/v1/lawyers/9999").status_code == 404
