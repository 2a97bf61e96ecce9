from datetime import timedelta

import pytest
from django.utils import timezone

from alumni.models import Job, JobApplication

pytestmark = pytest.mark.django_db

JOB = {
    "title": "Backend Engineer",
    "description": "Python and Django services",
    "company": "Acme",
    "location": "Remote",
    "type": "full-time",
    "salary": {"min": 50000, "max": 70000},
    "skills": "python, django",
}


@pytest.fixture
def job(alumni):
    return Job.objects.create(
        title="Data Analyst", description="SQL", company="Initech", location="Pune", type="internship",
        posted_by=alumni,
    )


def test_alumni_posts_job(api, alumni):
    response = api(alumni).post("/api/jobs/", JOB)

    assert response.status_code == 201
    body = response.json()["job"]
    assert body["salary"] == {"min": 50000, "max": 70000, "currency": "USD"}
    assert body["skills"] == ["python", "django"]
    assert body["isActive"] is True
    assert body["applicants"] == []


def test_salary_range_is_checked(api, alumni):
    response = api(alumni).post("/api/jobs/", {**JOB, "salary": {"min": 90000, "max": 10000}})

    assert response.status_code == 400
    assert response.json()["message"] == "Maximum salary must be greater than minimum salary"


def test_students_cannot_post_jobs(api, student):
    assert api(student).post("/api/jobs/", JOB).status_code == 403


def test_anonymous_listing_and_filters(api, job, alumni):
    Job.objects.create(title="Frontend", description="React", company="Acme", location="Remote",
                       type="full-time", posted_by=alumni)
    Job.objects.create(title="Closed", description="x", company="Acme", location="Remote",
                       type="full-time", posted_by=alumni, is_active=False)

    everything = api().get("/api/jobs/").json()
    acme = api().get("/api/jobs/", {"company": "acme"}).json()

    assert everything["pagination"]["total"] == 2
    assert [j["title"] for j in acme["jobs"]] == ["Frontend"]
    assert "applicants" not in acme["jobs"][0]


def test_pagination_shape(api, job):
    response = api().get("/api/jobs/", {"page": 1, "limit": 1})

    assert response.json()["pagination"] == {
        "current_page": 1,
        "total_pages": 1,
        "total": 1,
        "has_next": False,
        "has_prev": False,
    }


def test_bad_pagination_params(api):
    response = api().get("/api/jobs/", {"page": "x"})

    assert response.status_code == 400


def test_apply_once(api, job, student):
    client = api(student)

    first = client.post(f"/api/jobs/{job.pk}/apply", {"coverLetter": "Hire me"})
    second = client.post(f"/api/jobs/{job.pk}/apply", {"coverLetter": "Again"})

    assert first.status_code == 201
    assert first.json()["application"]["coverLetter"] == "Hire me"
    assert second.status_code == 400
    assert second.json()["message"] == "You have already applied for this job"
    assert JobApplication.objects.filter(job=job).count() == 1


def test_alumni_cannot_apply(api, job, other_alumni):
    assert api(other_alumni).post(f"/api/jobs/{job.pk}/apply").status_code == 403


def test_apply_after_deadline(api, job, student):
    job.deadline = timezone.now() - timedelta(days=1)
    job.save()

    response = api(student).post(f"/api/jobs/{job.pk}/apply")

    assert response.status_code == 400
    assert response.json()["message"] == "The application deadline has passed"


def test_owner_sees_applicants_others_do_not(api, job, alumni, other_alumni, student):
    JobApplication.objects.create(job=job, user=student)

    owner_view = api(alumni).get(f"/api/jobs/{job.pk}").json()["job"]
    other_view = api(other_alumni).get(f"/api/jobs/{job.pk}").json()["job"]

    assert [a["user"]["_id"] for a in owner_view["applicants"]] == [student.pk]
    assert "applicants" not in other_view
    assert other_view["applicantCount"] == 1


def test_application_status_update(api, job, alumni, other_alumni, student):
    application = JobApplication.objects.create(job=job, user=student)
    url = f"/api/jobs/{job.pk}/applications/{application.pk}"

    denied = api(other_alumni).put(url, {"status": "reviewed"})
    invalid = api(alumni).put(url, {"status": "maybe"})
    updated = api(alumni).put(url, {"status": "shortlisted"})

    assert denied.status_code == 403
    assert invalid.status_code == 400
    assert invalid.json()["message"] == "Invalid status"
    assert updated.json()["application"]["status"] == "shortlisted"


def test_owner_updates_and_deletes(api, job, alumni):
    updated = api(alumni).put(f"/api/jobs/{job.pk}", {"title": "Senior Data Analyst"})
    assert updated.json()["job"]["title"] == "Senior Data Analyst"
    assert updated.json()["job"]["company"] == "Initech"

    deleted = api(alumni).delete(f"/api/jobs/{job.pk}")
    assert deleted.status_code == 200
    assert not Job.objects.filter(pk=job.pk).exists()


def test_missing_job_is_404(api):
    response = api().get("/api/jobs/999999")

    assert response.status_code == 404
    assert response.json()["message"] == "Job not found"
