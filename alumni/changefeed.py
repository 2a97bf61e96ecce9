"""
Change notifier: republishes row changes from PostgreSQL as entity events.

Each watched table carries an AFTER row trigger that sends a small JSON
note through `pg_notify` on a per-table channel:

    {"table": ..., "op": "insert|update|delete", "id": ..., "changed": [...], "nulled": [...]}

and a statement trigger that reports TRUNCATE as `invalidate`. One
`CollectionWatcher` per table LISTENs on its own connection, looks up the
current document and emits `<entity>:<operation>` through the broadcaster.
A watcher that fails is logged and does not affect the others; an
invalidated feed stops its watcher for good.
"""
import asyncio
import json
import logging
import signal

import psycopg
from channels.db import database_sync_to_async
from django.conf import settings
from psycopg import sql
from psycopg.conninfo import make_conninfo

from .events import (
    CREATED, DELETED, REPLACED, UPDATED, created_payload, deleted_payload, replaced_payload, updated_payload,
    watched_entities,
)

logger = logging.getLogger(__name__)

SECRET_COLUMNS = {"password"}

TRIGGER_FUNCTION = """
CREATE OR REPLACE FUNCTION alumni_notify_change() RETURNS trigger AS $$
DECLARE
    payload jsonb;
    changed text[] := '{}';
    nulled text[] := '{}';
    old_row jsonb;
    new_row jsonb;
    col text;
BEGIN
    IF TG_OP = 'TRUNCATE' THEN
        PERFORM pg_notify(TG_ARGV[0], jsonb_build_object('table', TG_TABLE_NAME, 'op', 'invalidate')::text);
        RETURN NULL;
    END IF;

    IF TG_OP = 'INSERT' THEN
        payload := jsonb_build_object('table', TG_TABLE_NAME, 'op', 'insert', 'id', NEW.id);
    ELSIF TG_OP = 'UPDATE' THEN
        old_row := to_jsonb(OLD);
        new_row := to_jsonb(NEW);
        FOR col IN SELECT jsonb_object_keys(new_row) LOOP
            IF new_row -> col IS DISTINCT FROM old_row -> col THEN
                IF jsonb_typeof(new_row -> col) = 'null' THEN
                    nulled := array_append(nulled, col);
                ELSE
                    changed := array_append(changed, col);
                END IF;
            END IF;
        END LOOP;
        payload := jsonb_build_object(
            'table', TG_TABLE_NAME, 'op', 'update', 'id', NEW.id,
            'changed', to_jsonb(changed), 'nulled', to_jsonb(nulled)
        );
    ELSE
        payload := jsonb_build_object('table', TG_TABLE_NAME, 'op', 'delete', 'id', OLD.id);
    END IF;

    PERFORM pg_notify(TG_ARGV[0], payload::text);
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;
"""

ROW_TRIGGER = """
DROP TRIGGER IF EXISTS alumni_change_feed ON {table};
CREATE TRIGGER alumni_change_feed AFTER INSERT OR UPDATE OR DELETE ON {table}
    FOR EACH ROW EXECUTE FUNCTION alumni_notify_change('{channel}');
DROP TRIGGER IF EXISTS alumni_change_feed_truncate ON {table};
CREATE TRIGGER alumni_change_feed_truncate AFTER TRUNCATE ON {table}
    FOR EACH STATEMENT EXECUTE FUNCTION alumni_notify_change('{channel}');
"""

DROP_TRIGGERS = """
DROP TRIGGER IF EXISTS alumni_change_feed ON {table};
DROP TRIGGER IF EXISTS alumni_change_feed_truncate ON {table};
"""


def channel_for(spec, prefix=None):
    return f"{prefix or settings.CHANGEFEED_CHANNEL}_{spec.name.replace('-', '_')}"


def install_triggers(connection, specs=None):
    """Create the notify function and per-table triggers (PostgreSQL only)."""
    if connection.vendor != "postgresql":
        raise RuntimeError(f"Change feed triggers need PostgreSQL, not {connection.vendor}")
    specs = specs or watched_entities()
    with connection.cursor() as cursor:
        cursor.execute(TRIGGER_FUNCTION)
        for spec in specs:
            table = connection.ops.quote_name(spec.table)
            cursor.execute(ROW_TRIGGER.format(table=table, channel=channel_for(spec)))
            logger.info("Installed change feed trigger on %s", spec.table)
    return [spec.table for spec in specs]


def remove_triggers(connection, specs=None):
    specs = specs or watched_entities()
    with connection.cursor() as cursor:
        for spec in specs:
            cursor.execute(DROP_TRIGGERS.format(table=connection.ops.quote_name(spec.table)))
        cursor.execute("DROP FUNCTION IF EXISTS alumni_notify_change()")


def conninfo_from_settings(alias="default"):
    db = settings.DATABASES[alias]
    params = {
        "dbname": db.get("NAME"),
        "user": db.get("USER"),
        "password": db.get("PASSWORD"),
        "host": db.get("HOST"),
        "port": db.get("PORT"),
    }
    return make_conninfo(**{key: value for key, value in params.items() if value})


class ChangeDispatcher:
    """Turns one trigger note into an entity event."""

    def __init__(self, spec, broadcaster, loader=None):
        self.spec = spec
        self.broadcaster = broadcaster
        self.loader = loader or database_sync_to_async(spec.document)

    async def dispatch(self, change):
        operation = change.get("op")
        pk = change.get("id")

        if operation == "insert":
            document = await self.loader(pk)
            if document is None:
                return None
            return await self.publish(CREATED, created_payload(self.spec, document))

        if operation == "update":
            document = await self.loader(pk)
            if document is None:
                return None
            changed = [c for c in change.get("changed", []) if c not in SECRET_COLUMNS]
            nulled = [c for c in change.get("nulled", []) if c not in SECRET_COLUMNS]
            updated_fields = self.spec.changed_fields(changed, document)
            removed_fields = self.spec.removed_fields(nulled, document)
            return await self.publish(UPDATED, updated_payload(pk, document, updated_fields, removed_fields))

        if operation == "replace":
            document = await self.loader(pk)
            if document is None:
                return None
            return await self.publish(REPLACED, replaced_payload(pk, document))

        if operation == "delete":
            return await self.publish(DELETED, deleted_payload(pk))

        logger.debug("Ignoring %r change on %s", operation, self.spec.name)
        return None

    async def publish(self, operation, payload):
        event = self.spec.event(operation)
        await self.broadcaster.aemit(event, payload)
        return event


class FeedInvalidated(Exception):
    pass


class CollectionWatcher:
    def __init__(self, spec, broadcaster, conninfo, channel=None):
        self.spec = spec
        self.channel = channel or channel_for(spec)
        self.conninfo = conninfo
        self.dispatcher = ChangeDispatcher(spec, broadcaster)

    async def handle(self, raw):
        try:
            change = json.loads(raw)
        except ValueError:
            logger.warning("Malformed change note on %s: %r", self.channel, raw)
            return
        if change.get("op") == "invalidate":
            raise FeedInvalidated(self.spec.name)
        await self.dispatcher.dispatch(change)

    async def run(self):
        async with await psycopg.AsyncConnection.connect(self.conninfo, autocommit=True) as conn:
            await conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self.channel)))
            logger.info("Watching %s changes on channel %s", self.spec.name, self.channel)
            async for notify in conn.notifies():
                await self.handle(notify.payload)


class ChangeNotifier:
    """Runs one watcher per watched collection until stopped."""

    def __init__(self, broadcaster, conninfo, specs=None):
        self.watchers = [CollectionWatcher(spec, broadcaster, conninfo) for spec in specs or watched_entities()]
        self.tasks = []

    async def _guard(self, watcher):
        try:
            await watcher.run()
        except asyncio.CancelledError:
            logger.info("Closed change feed for %s", watcher.spec.name)
            raise
        except FeedInvalidated:
            logger.warning("Change feed for %s was invalidated; watcher stopped", watcher.spec.name)
        except Exception:
            logger.exception("Change feed for %s failed", watcher.spec.name)

    async def run(self):
        self.tasks = [asyncio.create_task(self._guard(w), name=f"watch-{w.spec.name}") for w in self.watchers]
        results = await asyncio.gather(*self.tasks, return_exceptions=True)
        logger.info("Change notifier stopped")
        return results

    def stop(self):
        for task in self.tasks:
            task.cancel()

    def install_signal_handlers(self, loop=None):
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.stop)
