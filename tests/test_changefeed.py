import json

import pytest
from asgiref.sync import async_to_sync
from django.db import connection

from alumni.changefeed import (
    ChangeDispatcher, ChangeNotifier, CollectionWatcher, FeedInvalidated, channel_for, install_triggers,
)
from alumni.chat import add_message, find_or_create_chat
from alumni.events import get_entity
from alumni.management.commands.watch_changes import Command as WatchCommand
from alumni.realtime import RecordingBroadcaster

DOCUMENT = {"_id": 7, "title": "Engineer", "postedBy": {"_id": 1}, "deadline": None, "version": 4}


def loader_for(documents):
    async def load(pk):
        return documents.get(pk)
    return load


@pytest.fixture
def recorder():
    return RecordingBroadcaster()


@pytest.fixture
def dispatcher(recorder):
    return ChangeDispatcher(get_entity("jobs"), recorder, loader=loader_for({7: DOCUMENT}))


@pytest.mark.asyncio
async def test_insert(dispatcher, recorder):
    event = await dispatcher.dispatch({"op": "insert", "id": 7})

    assert event == "jobs:created"
    assert recorder.payloads("jobs:created") == [{"job": DOCUMENT}]


@pytest.mark.asyncio
async def test_update_maps_columns(dispatcher, recorder):
    await dispatcher.dispatch({
        "op": "update", "id": 7, "changed": ["title", "posted_by_id", "password"], "nulled": ["deadline"],
    })

    [payload] = recorder.payloads("jobs:updated")
    assert payload["_id"] == 7
    assert payload["fullDocument"] == DOCUMENT
    assert payload["updatedFields"] == {"title": "Engineer", "postedBy": {"_id": 1}}
    assert payload["removedFields"] == ["deadline"]


@pytest.mark.django_db
def test_update_resolves_nested_columns(alumni, student, recorder):
    chat, _ = find_or_create_chat(student, alumni.pk)
    add_message(chat, student, "Hello")
    spec = get_entity("chats")
    document = spec.document(chat.pk)
    dispatcher = ChangeDispatcher(spec, recorder, loader=loader_for({chat.pk: document}))

    async_to_sync(dispatcher.dispatch)({
        "op": "update", "id": chat.pk, "changed": ["version", "updated_at", "mentor_unread", "last_message"],
    })

    [payload] = recorder.payloads("chats:updated")
    assert payload["fullDocument"]["unreadCount"] == {"mentor": 1, "mentee": 0}
    assert payload["updatedFields"] == {
        "version": document["version"],
        "updatedAt": document["updatedAt"],
        "unreadCount.mentor": 1,
        "lastMessage": document["lastMessage"],
    }


@pytest.mark.asyncio
async def test_update_renamed_and_hidden_columns(recorder):
    jobs = ChangeDispatcher(get_entity("jobs"), recorder, loader=loader_for({
        7: {"_id": 7, "salary": {"min": 50000, "max": None, "currency": "EUR"}, "version": 5},
    }))
    users = ChangeDispatcher(get_entity("users"), recorder, loader=loader_for({3: {"_id": 3, "name": "Ada"}}))

    await jobs.dispatch({
        "op": "update", "id": 7, "changed": ["salary_min", "salary_currency"], "nulled": ["salary_max"],
    })
    await users.dispatch({"op": "update", "id": 3, "changed": ["last_login", "name"], "nulled": ["date_joined"]})

    [job] = recorder.payloads("jobs:updated")
    assert job["updatedFields"] == {"salary.min": 50000, "salary.currency": "EUR"}
    assert job["removedFields"] == ["salary.max"]
    [user] = recorder.payloads("users:updated")
    assert user["updatedFields"] == {"name": "Ada"}
    assert user["removedFields"] == []


@pytest.mark.asyncio
async def test_replace(dispatcher, recorder):
    assert await dispatcher.dispatch({"op": "replace", "id": 7}) == "jobs:replaced"
    assert recorder.payloads("jobs:replaced") == [{"_id": 7, "fullDocument": DOCUMENT}]


@pytest.mark.asyncio
async def test_delete_needs_no_document(dispatcher, recorder):
    assert await dispatcher.dispatch({"op": "delete", "id": 99}) == "jobs:deleted"
    assert recorder.payloads("jobs:deleted") == [{"_id": 99}]


@pytest.mark.asyncio
async def test_vanished_rows_are_skipped(dispatcher, recorder):
    assert await dispatcher.dispatch({"op": "insert", "id": 8}) is None
    assert await dispatcher.dispatch({"op": "update", "id": 8, "changed": ["title"]}) is None
    assert recorder.events == []


@pytest.mark.asyncio
async def test_unknown_operation_is_ignored(dispatcher, recorder):
    assert await dispatcher.dispatch({"op": "drop", "id": 7}) is None
    assert recorder.events == []


@pytest.mark.asyncio
async def test_watcher_handles_notes(recorder):
    watcher = CollectionWatcher(get_entity("jobs"), recorder, conninfo="dbname=unused")
    watcher.dispatcher.loader = loader_for({7: DOCUMENT})

    await watcher.handle("not json")
    await watcher.handle(json.dumps({"table": "alumni_job", "op": "insert", "id": 7}))

    assert recorder.names() == ["jobs:created"]
    with pytest.raises(FeedInvalidated):
        await watcher.handle(json.dumps({"table": "alumni_job", "op": "invalidate"}))


@pytest.mark.asyncio
async def test_failing_watcher_does_not_stop_others(recorder):
    notifier = ChangeNotifier(recorder, "dbname=unused", specs=[get_entity("jobs"), get_entity("blogs")])
    broken, healthy = notifier.watchers

    async def fail():
        raise ConnectionError("gone")

    async def serve():
        await healthy.handle(json.dumps({"op": "delete", "id": 3}))

    broken.run = fail
    healthy.run = serve

    await notifier.run()

    assert recorder.names() == ["blogs:deleted"]


def test_channel_names():
    assert channel_for(get_entity("mentorship-programs"), prefix="feed") == "feed_mentorship_programs"
    assert channel_for(get_entity("jobs"), prefix="feed") == "feed_jobs"


@pytest.mark.skipif(connection.vendor == "postgresql", reason="checks the non-PostgreSQL guard")
def test_triggers_need_postgres():
    with pytest.raises(RuntimeError):
        install_triggers(connection)


def test_watch_command_uses_configured_broadcaster(settings):
    settings.REALTIME_BROADCASTER = "alumni.realtime.RecordingBroadcaster"

    notifier = WatchCommand().build_notifier("default", [get_entity("jobs"), get_entity("chats")])

    assert [w.spec.name for w in notifier.watchers] == ["jobs", "chats"]
    assert all(isinstance(w.dispatcher.broadcaster, RecordingBroadcaster) for w in notifier.watchers)
