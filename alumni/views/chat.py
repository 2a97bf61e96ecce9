from django.http import JsonResponse

from ..apps import get_broadcaster
from ..auth import login_required_api
from ..chat import add_message, chats_for, find_or_create_chat, get_chat_for, mark_read
from ..errors import api_view
from ..forms import ChatMessageForm
from ..models import User
from ..serializers import serialize_chat, serialize_message, user_summary
from ..utils import clean_form, parse_body


def directory_entry(user):
    return {**user_summary(user), "bio": user.bio, "major": user.major, "graduationYear": user.graduation_year}


def directory(role):
    users = User.objects.filter(role=role, is_approved=True, is_active=True).order_by("name")
    return JsonResponse({"success": True, "data": [directory_entry(u) for u in users]})


@api_view(["GET"])
@login_required_api
def chat_list(request):
    chats = chats_for(request.user).order_by("-last_message", "-updated_at")
    return JsonResponse({"success": True, "data": [serialize_chat(c, viewer=request.user) for c in chats]})


@api_view(["GET"])
@login_required_api
def mentors(request):
    return directory(User.ALUMNI)


@api_view(["GET"])
@login_required_api
def mentees(request):
    return directory(User.STUDENT)


@api_view(["GET"])
@login_required_api
def chat_with_user(request, other_id):
    chat, _ = find_or_create_chat(request.user, other_id)
    return JsonResponse({"success": True, "data": serialize_chat(chat, viewer=request.user, include_messages=True)})


@api_view(["GET", "POST"])
@login_required_api
def messages(request, chat_id):
    chat = get_chat_for(request.user, chat_id)
    if request.method == "POST":
        data = clean_form(ChatMessageForm, parse_body(request))
        message = add_message(
            chat, request.user, data["content"], data["message_type"], data["file_url"], data["file_name"],
            broadcaster=get_broadcaster(),
        )
        return JsonResponse({"success": True, "data": {"message": serialize_message(message), "chatId": chat.pk}},
                            status=201)

    viewer = request.user if chat.is_participant(request.user) else None
    if viewer is not None and chat.unread_for(viewer):
        mark_read(chat, viewer)
    return JsonResponse({"success": True, "data": serialize_chat(chat, viewer=viewer, include_messages=True)})


@api_view(["PUT"])
@login_required_api
def read(request, chat_id):
    chat = get_chat_for(request.user, chat_id)
    updated = mark_read(chat, request.user)
    return JsonResponse({"success": True, "message": "Chat marked as read", "markedCount": updated})
