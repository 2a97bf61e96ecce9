from datetime import timedelta

import pytest
from django.utils import timezone

from alumni.models import Workshop, WorkshopAttendee
from alumni.serializers import workshop_availability

pytestmark = pytest.mark.django_db


def workshop_payload(**overrides):
    payload = {
        "topic": "System design basics",
        "description": "Load balancers, queues and caches",
        "date": (timezone.now() + timedelta(days=7)).isoformat(),
        "duration": 60,
        "location": {"type": "online", "onlineLink": "https://meet.example.com/abc"},
        "capacity": 1,
        "category": "technical",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def workshop(alumni):
    return Workshop.objects.create(
        topic="Interview prep",
        description="Mock interviews",
        host=alumni,
        date=timezone.now() + timedelta(days=3),
        duration=90,
        online_link="https://meet.example.com/prep",
        capacity=1,
        category="career",
    )


def test_availability_is_derived():
    now = timezone.now()

    open_seats = workshop_availability(3, 1, True, None, now)
    full = workshop_availability(2, 2, True, None, now)
    closed = workshop_availability(5, 0, True, now - timedelta(minutes=1), now)

    assert open_seats == {"attendeeCount": 1, "availableSpots": 2, "isFull": False, "registrationOpen": True}
    assert full["isFull"] and full["availableSpots"] == 0 and not full["registrationOpen"]
    assert closed["registrationOpen"] is False


def test_alumni_creates_workshop(api, alumni):
    response = api(alumni).post("/api/workshops/", workshop_payload())

    assert response.status_code == 201
    body = response.json()["workshop"]
    assert body["location"] == {"type": "online", "address": None, "onlineLink": "https://meet.example.com/abc"}
    assert body["availableSpots"] == 1
    assert body["host"]["_id"] == alumni.pk


def test_students_cannot_create_workshops(api, student):
    response = api(student).post("/api/workshops/", workshop_payload())

    assert response.status_code == 403


def test_duration_bounds(api, alumni):
    response = api(alumni).post("/api/workshops/", workshop_payload(duration=5))

    assert response.status_code == 400
    assert response.json()["message"] == "Duration must be between 15 and 480 minutes"


def test_in_person_needs_address(api, alumni):
    response = api(alumni).post("/api/workshops/", workshop_payload(location={"type": "in-person"}))

    assert response.status_code == 400
    assert response.json()["message"] == "Location address is required for in-person workshops"


def test_capacity_scenario(api, workshop, student, other_student):
    first, second = api(student), api(other_student)
    url = f"/api/workshops/{workshop.pk}/register"

    assert first.post(url).status_code == 201

    full = second.post(url)
    assert full.status_code == 400
    assert full.json()["message"] == "Workshop is full"

    cancelled = first.delete(url)
    assert cancelled.status_code == 200
    assert cancelled.json()["workshop"]["availableSpots"] == 1

    retry = second.post(url)
    assert retry.status_code == 201
    assert retry.json()["workshop"]["isFull"] is True


def test_double_registration(api, workshop, student):
    workshop.capacity = 5
    workshop.save()
    client = api(student)

    client.post(f"/api/workshops/{workshop.pk}/register")
    again = client.post(f"/api/workshops/{workshop.pk}/register")

    assert again.status_code == 400
    assert again.json()["message"] == "You have already registered for this workshop"
    assert WorkshopAttendee.objects.filter(workshop=workshop).count() == 1


def test_registration_closed_after_deadline(api, workshop, student):
    workshop.registration_deadline = timezone.now() - timedelta(hours=1)
    workshop.save()

    response = api(student).post(f"/api/workshops/{workshop.pk}/register")

    assert response.status_code == 400
    assert response.json()["message"] == "Registration deadline has passed"


def test_cancelled_attendees_do_not_count(workshop, student, other_student):
    WorkshopAttendee.objects.create(workshop=workshop, user=student, status="cancelled")

    assert workshop.active_attendees().count() == 0
    assert workshop.attendees.count() == 1


def test_host_updates_attendee_status(api, alumni, workshop, student):
    attendee = WorkshopAttendee.objects.create(workshop=workshop, user=student)

    response = api(alumni).put(f"/api/workshops/{workshop.pk}/attendees/{attendee.pk}", {"status": "attended"})

    assert response.status_code == 200
    assert response.json()["attendee"]["status"] == "attended"


def test_other_alumni_cannot_edit_workshop(api, other_alumni, workshop):
    response = api(other_alumni).put(f"/api/workshops/{workshop.pk}", {"topic": "Hijacked"})

    assert response.status_code == 403
    workshop.refresh_from_db()
    assert workshop.topic == "Interview prep"


def test_host_partial_update_keeps_other_fields(api, alumni, workshop):
    response = api(alumni).put(f"/api/workshops/{workshop.pk}", {"topic": "Mock interviews, round two"})

    assert response.status_code == 200
    body = response.json()["workshop"]
    assert body["topic"] == "Mock interviews, round two"
    assert body["duration"] == 90
    assert body["version"] == workshop.version + 1


def test_my_registrations(api, workshop, student):
    api(student).post(f"/api/workshops/{workshop.pk}/register")

    response = api(student).get("/api/workshops/my-registrations")

    registrations = response.json()["registrations"]
    assert [r["workshop"]["_id"] for r in registrations] == [workshop.pk]
