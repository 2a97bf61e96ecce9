import asyncio
import logging

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import connections

from ...changefeed import ChangeNotifier, conninfo_from_settings
from ...events import get_entity, watched_entities
from ...realtime import build_broadcaster
from ...utils import wait_for_database

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Republish database row changes as realtime events (PostgreSQL LISTEN/NOTIFY)"

    def add_arguments(self, parser):
        parser.add_argument("--database", default="default")
        parser.add_argument(
            "--collection", action="append", dest="collections",
            help="Only watch this collection (repeatable)",
        )

    def handle(self, *args, **options):
        alias = options["database"]
        if connections[alias].vendor != "postgresql":
            raise CommandError("watch_changes needs a PostgreSQL database")
        if settings.REALTIME_SOURCE != "changefeed":
            logger.warning(
                "REALTIME_SOURCE is %r; web processes also emit directly, clients will see duplicates",
                settings.REALTIME_SOURCE,
            )

        wait_for_database(alias)
        specs = watched_entities()
        if options["collections"]:
            try:
                specs = [get_entity(name) for name in options["collections"]]
            except KeyError as exc:
                raise CommandError(f"Unknown collection {exc}")

        notifier = self.build_notifier(alias, specs)
        self.stdout.write(f"Watching {', '.join(spec.name for spec in specs)}")
        asyncio.run(self.run(notifier))
        self.stdout.write(self.style.SUCCESS("Change notifier stopped"))

    def build_notifier(self, alias, specs):
        return ChangeNotifier(build_broadcaster(), conninfo_from_settings(alias), specs=specs)

    async def run(self, notifier):
        notifier.install_signal_handlers()
        await notifier.run()
