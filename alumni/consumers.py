import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.core.serializers.json import DjangoJSONEncoder

from .models import Chat
from .realtime import BROADCAST_GROUP, chat_group, group_message, user_group

logger = logging.getLogger(__name__)

UNAUTHORIZED_CLOSE_CODE = 4401


class RealtimeConsumer(AsyncWebsocketConsumer):
    """
    One socket per client. Every connection receives entity events from
    the broadcast group and direct notices in its private `user_<id>`
    group; chat rooms are joined explicitly with `join-chat`.

    Frames in both directions are `{"event": name, "data": {...}}`.
    Chat relays are not persisted; the HTTP send-message endpoint is.
    """

    async def connect(self):
        self.user = self.scope.get("user")
        self.rooms = set()
        self.user_room = None

        if self.user is None or not self.user.is_authenticated:
            logger.info("Rejected websocket: %s", self.scope.get("auth_error") or "no token")
            await self.close(code=UNAUTHORIZED_CLOSE_CODE)
            return

        self.user_room = user_group(self.user.pk)
        await self.channel_layer.group_add(BROADCAST_GROUP, self.channel_name)
        await self.channel_layer.group_add(self.user_room, self.channel_name)
        await self.accept()
        logger.info("User %s connected (%s)", self.user.pk, self.channel_name)

    async def disconnect(self, close_code):
        if self.user_room is None:
            return
        for room in (BROADCAST_GROUP, self.user_room, *self.rooms):
            await self.channel_layer.group_discard(room, self.channel_name)
        self.rooms.clear()
        logger.info("User %s disconnected (%s)", self.user.pk, close_code)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return
        try:
            frame = json.loads(text_data)
        except ValueError:
            await self.send_event("error", {"message": "Invalid JSON"})
            return
        if not isinstance(frame, dict):
            await self.send_event("error", {"message": "Invalid frame"})
            return

        handler = self.client_events.get(frame.get("event"))
        if handler is None:
            await self.send_event("error", {"message": f"Unknown event {frame.get('event')!r}"})
            return
        data = frame.get("data")
        await handler(self, data if isinstance(data, dict) else {})

    # Client events

    async def join_chat(self, data):
        chat_id = data.get("chatId")
        if not await self.is_participant(chat_id):
            await self.send_event("error", {"message": "Not authorized to join this chat", "chatId": chat_id})
            return
        room = chat_group(chat_id)
        await self.channel_layer.group_add(room, self.channel_name)
        self.rooms.add(room)
        logger.info("User %s joined %s", self.user.pk, room)
        await self.send_event("joined-chat", {"chatId": chat_id})

    async def leave_chat(self, data):
        room = chat_group(data.get("chatId"))
        if room in self.rooms:
            await self.channel_layer.group_discard(room, self.channel_name)
            self.rooms.discard(room)
            logger.info("User %s left %s", self.user.pk, room)

    async def send_message(self, data):
        message = data.get("message")
        if not isinstance(message, dict):
            message = {"content": message}
        await self.relay(data.get("chatId"), "new-message", {
            "chatId": data.get("chatId"),
            "message": {**message, "sender": self.sender_fields()},
        })

    async def typing_start(self, data):
        await self.relay(data.get("chatId"), "user-typing", {
            "chatId": data.get("chatId"),
            "userId": self.user.pk,
            "userName": self.user.name,
        })

    async def typing_stop(self, data):
        await self.relay(data.get("chatId"), "user-stop-typing", {
            "chatId": data.get("chatId"),
            "userId": self.user.pk,
        })

    async def mark_read(self, data):
        await self.relay(data.get("chatId"), "messages-read", {
            "chatId": data.get("chatId"),
            "userId": self.user.pk,
        })

    client_events = {
        "join-chat": join_chat,
        "leave-chat": leave_chat,
        "send-message": send_message,
        "typing-start": typing_start,
        "typing-stop": typing_stop,
        "mark-read": mark_read,
    }

    async def relay(self, chat_id, event, payload):
        """Send to everyone else in the chat room."""
        room = chat_group(chat_id)
        if room not in self.rooms:
            await self.send_event("error", {"message": "Join the chat first", "chatId": chat_id})
            return
        await self.channel_layer.group_send(room, group_message(event, payload, exclude=self.channel_name))

    # Group event handler (invoked via group_send)

    async def realtime_event(self, event):
        if event.get("exclude") == self.channel_name:
            return
        await self.send_event(event["event"], event["data"])

    async def send_event(self, name, data):
        await self.send(text_data=json.dumps({"event": name, "data": data}, cls=DjangoJSONEncoder))

    def sender_fields(self):
        return {
            "_id": self.user.pk,
            "name": self.user.name,
            "profileImage": self.user.profile_image or None,
            "role": self.user.role,
        }

    # DB helpers

    @database_sync_to_async
    def is_participant(self, chat_id):
        try:
            chat = Chat.objects.filter(pk=int(chat_id)).first()
        except (TypeError, ValueError):
            return False
        return chat is not None and (chat.is_participant(self.user) or self.user.is_admin)
