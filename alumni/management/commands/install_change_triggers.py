from django.core.management.base import BaseCommand, CommandError
from django.db import connections

from ...changefeed import install_triggers, remove_triggers


class Command(BaseCommand):
    help = "Create (or drop) the PostgreSQL triggers that feed watch_changes"

    def add_arguments(self, parser):
        parser.add_argument("--database", default="default")
        parser.add_argument("--remove", action="store_true", help="Drop the triggers instead")

    def handle(self, *args, **options):
        connection = connections[options["database"]]
        if connection.vendor != "postgresql":
            raise CommandError(f"Change feed triggers need PostgreSQL, not {connection.vendor}")

        if options["remove"]:
            remove_triggers(connection)
            self.stdout.write(self.style.SUCCESS("Change feed triggers removed"))
            return

        tables = install_triggers(connection)
        self.stdout.write(self.style.SUCCESS(f"Change feed triggers installed on {', '.join(tables)}"))
