import pytest

from alumni import mentorship as lifecycle
from alumni.models import MentorshipProgram, ProgramMembership, ProgramRequest

from .conftest import make_user

pytestmark = pytest.mark.django_db


@pytest.fixture
def program(alumni):
    return MentorshipProgram.objects.create(mentor=alumni, title="Backend careers", description="Weekly calls",
                                            max_mentees=1)


def test_create_program_defaults(api, alumni):
    response = api(alumni).post("/api/mentorship-programs/", {"title": "Data careers", "description": "Monthly"})

    assert response.status_code == 201
    program = response.json()["program"]
    assert program["maxMentees"] == 10
    assert program["isActive"] is True
    assert program["mentor"]["_id"] == alumni.pk


def test_admin_cannot_create_program(api, admin_user):
    response = api(admin_user).post("/api/mentorship-programs/", {"title": "x", "description": "y"})

    assert response.status_code == 403
    assert response.json()["message"] == "Only alumni can create mentorship programs"


def test_alumni_only_see_their_programs(api, alumni, other_alumni, program, student):
    MentorshipProgram.objects.create(mentor=other_alumni, title="Other", description="Other program")

    mine = api(alumni).get("/api/mentorship-programs/").json()["programs"]
    everything = api(student).get("/api/mentorship-programs/").json()["programs"]

    assert [p["_id"] for p in mine] == [program.pk]
    assert len(everything) == 2


def test_join_request_rules(student, program):
    _, join_request = lifecycle.request_to_join(program.pk, student, "Let me in")
    assert join_request.status == "pending"

    with pytest.raises(lifecycle.MentorshipError, match="already requested"):
        lifecycle.request_to_join(program.pk, student)


def test_accept_respects_capacity(student, other_student, alumni, program):
    _, first = lifecycle.request_to_join(program.pk, student)
    _, second = lifecycle.request_to_join(program.pk, other_student)

    lifecycle.respond_to_join_request(program.pk, first.pk, alumni, "accepted")

    with pytest.raises(lifecycle.MentorshipError, match="Maximum mentees limit reached"):
        lifecycle.respond_to_join_request(program.pk, second.pk, alumni, "accepted")
    assert ProgramMembership.objects.filter(program=program).count() == 1
    second.refresh_from_db()
    assert second.status == "pending"


def test_request_refused_when_program_is_full(student, other_student, alumni, program):
    _, first = lifecycle.request_to_join(program.pk, student)
    lifecycle.respond_to_join_request(program.pk, first.pk, alumni, "accepted")

    with pytest.raises(lifecycle.MentorshipError, match="Maximum mentees limit reached for this program"):
        lifecycle.request_to_join(program.pk, other_student)


def test_rejected_request_can_be_repeated(student, alumni, program):
    _, first = lifecycle.request_to_join(program.pk, student)
    lifecycle.respond_to_join_request(program.pk, first.pk, alumni, "rejected")

    _, second = lifecycle.request_to_join(program.pk, student)

    assert second.pk != first.pk
    assert ProgramRequest.objects.filter(program=program, mentee=student).count() == 2


def test_only_program_mentor_responds(api, student, other_alumni, program):
    _, join_request = lifecycle.request_to_join(program.pk, student)

    response = api(other_alumni).put(
        f"/api/mentorship-programs/request/{program.pk}/{join_request.pk}", {"status": "accepted"}
    )

    assert response.status_code == 403


def test_join_and_accept_over_http(api, student, alumni, program):
    joined = api(student).post(f"/api/mentorship-programs/request/{program.pk}", {"message": "Hello"})
    assert joined.status_code == 201
    request_id = joined.json()["requestId"]

    accepted = api(alumni).put(f"/api/mentorship-programs/request/{program.pk}/{request_id}", {"status": "accepted"})

    assert accepted.status_code == 200
    assert accepted.json()["message"] == "Request accepted successfully"
    body = accepted.json()["program"]
    assert body["menteeCount"] == 1
    assert body["pendingRequestsCount"] == 0


def test_child_writes_bump_program_version(student, alumni, program):
    version = program.version

    _, join_request = lifecycle.request_to_join(program.pk, student)
    lifecycle.respond_to_join_request(program.pk, join_request.pk, alumni, "accepted")

    program.refresh_from_db()
    # request insert, membership insert, request status update
    assert program.version == version + 3


def test_admin_overview_has_stats(api, admin_user, program, student, alumni):
    lifecycle.request_to_join(program.pk, student)
    make_user("third@example.com")

    response = api(admin_user).get("/api/mentorship-programs/all")

    assert response.status_code == 200
    assert response.json()["stats"] == {
        "totalMentors": 1,
        "totalMentees": 0,
        "pendingRequests": 1,
        "totalPrograms": 1,
    }
