import pytest

from alumni.chat import add_message, find_or_create_chat, mark_read, participant_roles
from alumni.errors import BadRequest, Forbidden, NotFound
from alumni.models import Chat

pytestmark = pytest.mark.django_db


def test_participant_roles(alumni, student, other_student):
    assert participant_roles(student, alumni) == (alumni, student)
    assert participant_roles(alumni, student) == (alumni, student)
    assert participant_roles(other_student, student) == (student, other_student)


def test_find_or_create_is_symmetric(alumni, student):
    chat, created = find_or_create_chat(student, alumni.pk)
    again, created_again = find_or_create_chat(alumni, student.pk)

    assert created and not created_again
    assert again.pk == chat.pk
    assert chat.mentor == alumni and chat.mentee == student
    assert Chat.objects.count() == 1


def test_cannot_chat_with_yourself(student):
    with pytest.raises(BadRequest):
        find_or_create_chat(student, student.pk)


def test_unknown_counterpart(student):
    with pytest.raises(NotFound):
        find_or_create_chat(student, 987654)


def test_add_message_counts_unread(alumni, student):
    chat, _ = find_or_create_chat(student, alumni.pk)

    add_message(chat, student, "Hello")
    add_message(chat, student, "Are you there?")
    add_message(chat, alumni, "Hi!")

    chat.refresh_from_db()
    assert chat.mentor_unread == 2
    assert chat.mentee_unread == 1
    assert chat.last_message is not None


def test_outsider_cannot_post(alumni, student, other_student):
    chat, _ = find_or_create_chat(student, alumni.pk)

    with pytest.raises(Forbidden):
        add_message(chat, other_student, "Let me in")


def test_mark_read(alumni, student):
    chat, _ = find_or_create_chat(student, alumni.pk)
    add_message(chat, student, "One")
    add_message(chat, student, "Two")
    add_message(chat, alumni, "Reply")

    marked = mark_read(chat, alumni)

    chat.refresh_from_db()
    assert marked == 2
    assert chat.mentor_unread == 0
    assert chat.mentee_unread == 1
    assert not chat.messages.filter(sender=student, is_read=False).exists()
    assert chat.messages.get(sender=alumni).is_read is False


def test_message_is_pushed_to_recipient_after_commit(alumni, student, broadcaster,
                                                     django_capture_on_commit_callbacks):
    chat, _ = find_or_create_chat(student, alumni.pk)
    broadcaster.clear()

    with django_capture_on_commit_callbacks(execute=True):
        add_message(chat, student, "Ping", broadcaster=broadcaster)

    pushes = [(payload, room) for name, payload, room in broadcaster.events if name == "new-message"]
    assert len(pushes) == 1
    payload, room = pushes[0]
    assert room == f"user_{alumni.pk}"
    assert payload["chatId"] == chat.pk
    assert payload["message"]["content"] == "Ping"


def test_chat_endpoints(api, alumni, student):
    opened = api(student).get(f"/api/chat/user/{alumni.pk}").json()
    chat_id = opened["data"]["_id"]
    assert opened["success"] is True
    assert opened["data"]["otherParticipant"]["_id"] == alumni.pk

    sent = api(student).post(f"/api/chat/{chat_id}/messages", {"content": "Hello mentor"})
    assert sent.status_code == 201
    assert sent.json()["data"]["message"]["messageType"] == "text"

    listing = api(alumni).get("/api/chat/").json()["data"]
    assert listing[0]["myUnreadCount"] == 1
    assert listing[0]["latestMessage"]["content"] == "Hello mentor"

    read = api(alumni).put(f"/api/chat/{chat_id}/read").json()
    assert read["markedCount"] == 1

    thread = api(alumni).get(f"/api/chat/{chat_id}/messages").json()["data"]
    assert [m["content"] for m in thread["messages"]] == ["Hello mentor"]
    assert thread["myUnreadCount"] == 0


def test_fetching_messages_marks_them_read(api, alumni, student, admin_user):
    chat, _ = find_or_create_chat(student, alumni.pk)
    add_message(chat, student, "First")
    add_message(chat, student, "Second")

    as_admin = api(admin_user).get(f"/api/chat/{chat.pk}/messages").json()["data"]
    assert all(not m["isRead"] for m in as_admin["messages"])

    thread = api(alumni).get(f"/api/chat/{chat.pk}/messages").json()["data"]

    chat.refresh_from_db()
    assert thread["myUnreadCount"] == 0
    assert all(m["isRead"] for m in thread["messages"])
    assert chat.mentor_unread == 0
    assert chat.mentee_unread == 0


def test_empty_message_rejected(api, alumni, student):
    chat, _ = find_or_create_chat(student, alumni.pk)

    response = api(student).post(f"/api/chat/{chat.pk}/messages", {"content": ""})

    assert response.status_code == 400
    assert response.json()["message"] == "Message content is required"


def test_outsider_cannot_read_chat(api, alumni, student, other_student):
    chat, _ = find_or_create_chat(student, alumni.pk)

    assert api(other_student).get(f"/api/chat/{chat.pk}/messages").status_code == 403


def test_directory(api, alumni, other_alumni, student):
    mentors = api(student).get("/api/chat/mentors").json()["data"]
    mentees = api(alumni).get("/api/chat/mentees").json()["data"]

    assert {m["_id"] for m in mentors} == {alumni.pk, other_alumni.pk}
    assert [m["_id"] for m in mentees] == [student.pk]
