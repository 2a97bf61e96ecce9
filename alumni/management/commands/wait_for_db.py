from django.core.management.base import BaseCommand

from ...utils import wait_for_database


class Command(BaseCommand):
    help = "Block until the database accepts connections (exits 1 after the last failed attempt)"

    def add_arguments(self, parser):
        parser.add_argument("--database", default="default")
        parser.add_argument("--attempts", type=int, default=None)
        parser.add_argument("--delay", type=float, default=None)

    def handle(self, *args, **options):
        wait_for_database(options["database"], attempts=options["attempts"], delay=options["delay"])
        self.stdout.write(self.style.SUCCESS("Database available"))
