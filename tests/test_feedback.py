import pytest

from alumni.models import Feedback

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize("rating,priority", [(1, "high"), (2, "high"), (3, "medium"), (4, "low"), (5, "low")])
def test_priority_follows_rating(student, rating, priority):
    feedback = Feedback.objects.create(user=student, event_type="platform", rating=rating, priority="critical")

    assert feedback.priority == priority


def test_priority_recomputed_on_partial_save(student):
    feedback = Feedback.objects.create(user=student, event_type="platform", rating=5)
    feedback.rating = 1
    feedback.save(update_fields=["rating"])

    feedback.refresh_from_db()
    assert feedback.priority == "high"


def test_submit_feedback(api, student):
    response = api(student).post("/api/feedback/", {"eventType": "platform", "rating": 2, "comments": "Slow"})

    assert response.status_code == 201
    body = response.json()["feedback"]
    assert body["priority"] == "high"
    assert body["category"] == "general"
    assert body["status"] == "pending"


def test_rating_out_of_range(api, student):
    response = api(student).post("/api/feedback/", {"eventType": "platform", "rating": 6})

    assert response.status_code == 400
    assert response.json()["message"] == "Rating must be between 1 and 5"


def test_event_reference_must_exist(api, student):
    response = api(student).post("/api/feedback/", {
        "eventType": "workshop", "eventId": 4242, "eventModel": "Workshop", "rating": 4,
    })

    assert response.status_code == 400
    assert response.json()["message"] == "Workshop not found"


def test_public_feedback_hides_anonymous_authors(api, student):
    Feedback.objects.create(user=student, event_type="platform", rating=5, is_public=True, is_anonymous=True)
    Feedback.objects.create(user=student, event_type="platform", rating=4, is_public=False)

    items = api().get("/api/feedback/public").json()["feedback"]

    assert len(items) == 1
    assert items[0]["user"] is None


def test_listing_is_admin_only(api, student, admin_user):
    Feedback.objects.create(user=student, event_type="job", rating=3)

    assert api(student).get("/api/feedback/").status_code == 403
    listing = api(admin_user).get("/api/feedback/", {"eventType": "job"})
    assert listing.json()["pagination"]["total"] == 1


def test_admin_response_marks_addressed(api, student, admin_user):
    feedback = Feedback.objects.create(user=student, event_type="platform", rating=2)

    response = api(admin_user).post(f"/api/feedback/{feedback.pk}/response", {"response": "Fixed, thanks"})

    body = response.json()["feedback"]
    assert body["status"] == "addressed"
    assert body["adminResponse"]["response"] == "Fixed, thanks"
    assert body["adminResponse"]["admin"]["_id"] == admin_user.pk


def test_status_update_validates(api, student, admin_user):
    feedback = Feedback.objects.create(user=student, event_type="platform", rating=4)

    bad = api(admin_user).patch(f"/api/feedback/{feedback.pk}/status", {"status": "lost"})
    good = api(admin_user).patch(f"/api/feedback/{feedback.pk}/status", {"status": "reviewed"})

    assert bad.status_code == 400
    assert bad.json()["message"] == "Invalid status"
    assert good.json()["feedback"]["status"] == "reviewed"


def test_helpful_toggles(api, student, other_student):
    feedback = Feedback.objects.create(user=student, event_type="platform", rating=5, is_public=True)
    client = api(other_student)

    on = client.post(f"/api/feedback/{feedback.pk}/helpful").json()
    off = client.post(f"/api/feedback/{feedback.pk}/helpful").json()

    assert on == {"helpful": True, "helpfulCount": 1}
    assert off == {"helpful": False, "helpfulCount": 0}


def test_owner_and_admin_access_only(api, student, other_student, admin_user):
    feedback = Feedback.objects.create(user=student, event_type="platform", rating=5)

    assert api(other_student).get(f"/api/feedback/{feedback.pk}").status_code == 403
    assert api(student).get(f"/api/feedback/{feedback.pk}").status_code == 200
    assert api(other_student).get(f"/api/feedback/user/{student.pk}").status_code == 403
    assert api(admin_user).delete(f"/api/feedback/{feedback.pk}").status_code == 200


def test_stats(api, student, admin_user):
    for rating in (1, 5, 5):
        Feedback.objects.create(user=student, event_type="platform", rating=rating)

    stats = api(admin_user).get("/api/feedback/stats").json()["stats"]

    assert stats["total"] == 3
    assert stats["averageRating"] == pytest.approx(3.67, abs=0.01)
    assert stats["byPriority"] == {"high": 1, "low": 2}
    assert stats["ratingDistribution"] == {"1": 1, "2": 0, "3": 0, "4": 0, "5": 2}
