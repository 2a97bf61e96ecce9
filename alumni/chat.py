import logging

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from .errors import BadRequest, Forbidden, NotFound
from .models import Chat, ChatMessage, User
from .realtime import user_group
from .serializers import serialize_message

logger = logging.getLogger(__name__)


def chats_for(user):
    return Chat.objects.filter(Q(mentor=user) | Q(mentee=user), is_active=True).select_related("mentor", "mentee")


def participant_roles(user, other):
    """Alumni take the mentor seat; otherwise the other person does."""
    if user.role == User.ALUMNI and other.role != User.ALUMNI:
        return user, other
    if other.role == User.ALUMNI and user.role != User.ALUMNI:
        return other, user
    return (user, other) if user.pk < other.pk else (other, user)


def find_or_create_chat(user, other_id):
    """Return (chat, created) for the unordered pair (user, other)."""
    if str(other_id) == str(user.pk):
        raise BadRequest("Cannot create chat with yourself")
    other = User.objects.filter(pk=other_id, is_active=True).first()
    if other is None:
        raise NotFound("User not found")

    mentor, mentee = participant_roles(user, other)
    # pair_key is unique, so concurrent callers converge on one row
    chat, created = Chat.objects.get_or_create(
        pair_key=Chat.key_for(user.pk, other.pk),
        defaults={"mentor": mentor, "mentee": mentee},
    )
    if created:
        logger.info("Chat %s created for %s", chat.pk, chat.pair_key)
    return chat, created


def get_chat_for(user, chat_id):
    chat = Chat.objects.select_related("mentor", "mentee").filter(pk=chat_id).first()
    if chat is None:
        raise NotFound("Chat not found")
    if not (chat.is_participant(user) or user.is_admin):
        raise Forbidden("Access denied")
    return chat


def add_message(chat, sender, content, message_type="text", file_url="", file_name="", broadcaster=None):
    """
    Persist a message, bump the recipient's unread counter and, after
    commit, push `new-message` to the recipient's private room.
    """
    if not chat.is_participant(sender):
        raise Forbidden("Access denied")

    recipient_id = chat.other_participant_id(sender)
    counter = "mentee_unread" if sender.pk == chat.mentor_id else "mentor_unread"

    with transaction.atomic():
        message = ChatMessage.objects.create(
            chat=chat,
            sender=sender,
            content=content,
            message_type=message_type or "text",
            file_url=file_url or "",
            file_name=file_name or "",
        )
        setattr(chat, counter, F(counter) + 1)
        chat.last_message = message.created_at
        chat.save(update_fields=[counter, "last_message"])
        chat.refresh_from_db(fields=[counter])

        if broadcaster is not None:
            payload = {"chatId": chat.pk, "message": serialize_message(message)}
            transaction.on_commit(
                lambda: broadcaster.emit("new-message", payload, room=user_group(recipient_id))
            )
    return message


def mark_read(chat, user):
    """Mark the other participant's messages read and reset the caller's counter."""
    if not chat.is_participant(user):
        raise Forbidden("Access denied")

    counter = chat.unread_field_for(user)
    with transaction.atomic():
        updated = chat.messages.filter(is_read=False).exclude(sender=user).update(is_read=True, read_at=timezone.now())
        setattr(chat, counter, 0)
        chat.save(update_fields=[counter])
    return updated
