import logging

from asgiref.sync import async_to_sync
from channels.layers import DEFAULT_CHANNEL_LAYER, get_channel_layer
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

BROADCAST_GROUP = "broadcast"
GROUP_MESSAGE_TYPE = "realtime.event"


def user_group(user_id):
    return f"user_{user_id}"


def chat_group(chat_id):
    return f"chat_{chat_id}"


def group_message(event, payload, exclude=None):
    message = {"type": GROUP_MESSAGE_TYPE, "event": event, "data": payload}
    if exclude:
        message["exclude"] = exclude
    return message


class Broadcaster:
    """Publishes named events to a room. Delivery is at-most-once."""

    def emit(self, event, payload, room=BROADCAST_GROUP):
        raise NotImplementedError

    async def aemit(self, event, payload, room=BROADCAST_GROUP):
        self.emit(event, payload, room=room)


class ChannelLayerBroadcaster(Broadcaster):
    def __init__(self, alias=DEFAULT_CHANNEL_LAYER):
        self.alias = alias

    def _layer(self):
        layer = get_channel_layer(self.alias)
        if layer is None:
            logger.warning("No channel layer configured; dropping realtime events")
        return layer

    def emit(self, event, payload, room=BROADCAST_GROUP):
        layer = self._layer()
        if layer is None:
            return
        try:
            async_to_sync(layer.group_send)(room, group_message(event, payload))
        except Exception:
            logger.exception("Failed to broadcast %s to %s", event, room)

    async def aemit(self, event, payload, room=BROADCAST_GROUP):
        layer = self._layer()
        if layer is None:
            return
        try:
            await layer.group_send(room, group_message(event, payload))
        except Exception:
            logger.exception("Failed to broadcast %s to %s", event, room)


class RecordingBroadcaster(Broadcaster):
    """Keeps emitted events in memory. Used by tests and the shell."""

    def __init__(self):
        self.events = []

    def emit(self, event, payload, room=BROADCAST_GROUP):
        self.events.append((event, payload, room))

    def names(self):
        return [event for event, _, _ in self.events]

    def payloads(self, event):
        return [payload for name, payload, _ in self.events if name == event]

    def clear(self):
        self.events.clear()


class NullBroadcaster(Broadcaster):
    def emit(self, event, payload, room=BROADCAST_GROUP):
        pass


def build_broadcaster(path=None):
    return import_string(path or settings.REALTIME_BROADCASTER)()
