import logging

from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)

REALTIME_SOURCES = ("signals", "changefeed")


class AlumniConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "alumni"
    verbose_name = "Alumni association"

    broadcaster = None
    emitter = None

    def ready(self):
        from .realtime import build_broadcaster
        from .signals import DirectEmitter

        source = settings.REALTIME_SOURCE
        if source not in REALTIME_SOURCES:
            raise ImproperlyConfigured(f"REALTIME_SOURCE must be one of {', '.join(REALTIME_SOURCES)}, got {source!r}")

        self.broadcaster = build_broadcaster()
        self.emitter = DirectEmitter(self.broadcaster)
        # one broadcast path per deployment: the change feed process publishes instead
        if source == "signals":
            self.emitter.connect()
        logger.debug("Realtime source: %s", source)

    def use_broadcaster(self, broadcaster):
        """Swap the broadcaster used by the emitter and the views; returns the previous one."""
        previous = self.broadcaster
        self.broadcaster = broadcaster
        self.emitter.broadcaster = broadcaster
        return previous


def get_broadcaster():
    from django.apps import apps

    return apps.get_app_config("alumni").broadcaster
