from django.db.models import Count, Q
from django.http import JsonResponse

from .. import mentorship as lifecycle
from ..apps import get_broadcaster
from ..auth import alumni_or_admin, login_required_api
from ..chat import add_message, find_or_create_chat
from ..errors import Forbidden, NotFound, api_view
from ..forms import ChatMessageForm, MentorshipRequestForm, MentorshipResponseForm
from ..models import Mentorship, User
from ..serializers import serialize_chat, serialize_mentorship, serialize_message, user_summary
from ..utils import clean_form, paginate, parse_body


def mentor_summary(user):
    return {**user_summary(user), "major": user.major, "graduationYear": user.graduation_year}


def mentorships():
    return Mentorship.objects.select_related("mentor", "mentee")


def involving(user):
    return mentorships().filter(Q(mentor=user) | Q(mentee=user))


def filter_status(request, qs):
    status = request.GET.get("status")
    return qs.filter(status=status) if status else qs


@api_view(["GET"])
@login_required_api
def mentors(request):
    qs = User.objects.filter(role=User.ALUMNI, is_approved=True, is_active=True).order_by("name")
    search = request.GET.get("search")
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(major__icontains=search))
    return JsonResponse(paginate(request, qs, mentor_summary, "mentors"))


@api_view(["GET"])
@login_required_api
def requests(request):
    qs = mentorships() if request.user.is_admin else involving(request.user)
    return JsonResponse(paginate(request, filter_status(request, qs), serialize_mentorship, "requests"))


@api_view(["GET"])
@alumni_or_admin
def mentor_requests(request):
    qs = filter_status(request, mentorships().filter(mentor=request.user))
    return JsonResponse(paginate(request, qs, serialize_mentorship, "requests"))


@api_view(["GET"])
@login_required_api
def mentee_mentorships(request):
    qs = filter_status(request, mentorships().filter(mentee=request.user))
    return JsonResponse(paginate(request, qs, serialize_mentorship, "mentorships"))


@api_view(["POST"])
@login_required_api
def send_request(request):
    data = clean_form(MentorshipRequestForm, parse_body(request))
    mentorship = lifecycle.request_mentorship(request.user, data["mentor_id"], data["message"])
    return JsonResponse({
        "message": "Mentorship request sent successfully",
        "mentorship": serialize_mentorship(mentorship),
    }, status=201)


@api_view(["PUT"])
@login_required_api
def respond(request, mentorship_id):
    data = clean_form(MentorshipResponseForm, parse_body(request))
    mentorship = lifecycle.respond_to_request(mentorship_id, request.user, data["status"], data["response"])
    return JsonResponse({
        "message": f"Mentorship request {mentorship.status}",
        "mentorship": serialize_mentorship(mentorship),
    })


@api_view(["PUT"])
@login_required_api
def update_status(request, mentorship_id):
    data = clean_form(MentorshipResponseForm, parse_body(request))
    mentorship = lifecycle.update_status(mentorship_id, request.user, data["status"])
    return JsonResponse({
        "message": f"Mentorship {mentorship.status}",
        "mentorship": serialize_mentorship(mentorship),
    })


@api_view(["GET"])
@login_required_api
def relationships(request):
    qs = mentorships().filter(status=Mentorship.ACCEPTED)
    if not request.user.is_admin:
        qs = qs.filter(Q(mentor=request.user) | Q(mentee=request.user))
    return JsonResponse(paginate(request, qs, serialize_mentorship, "relationships"))


def relationship_chat(user, relationship_id):
    mentorship = mentorships().filter(pk=relationship_id).first()
    if mentorship is None:
        raise NotFound("Mentorship not found")
    if user.pk not in (mentorship.mentor_id, mentorship.mentee_id):
        raise Forbidden("Access denied")
    if mentorship.status != Mentorship.ACCEPTED:
        raise Forbidden("Chat is only available for active mentorships")
    other_id = mentorship.mentee_id if user.pk == mentorship.mentor_id else mentorship.mentor_id
    chat, _ = find_or_create_chat(user, other_id)
    return chat


@api_view(["GET", "POST"])
@login_required_api
def relationship_messages(request, relationship_id):
    chat = relationship_chat(request.user, relationship_id)
    if request.method == "GET":
        qs = chat.messages.select_related("sender").order_by("created_at")
        return JsonResponse({"chat": serialize_chat(chat), **paginate(request, qs, serialize_message, "messages", 50)})

    data = clean_form(ChatMessageForm, parse_body(request))
    message = add_message(
        chat, request.user, data["content"], data["message_type"], data["file_url"], data["file_name"],
        broadcaster=get_broadcaster(),
    )
    return JsonResponse({"message": "Message sent successfully", "chatMessage": serialize_message(message)},
                        status=201)


def mentorship_stats(user=None):
    qs = Mentorship.objects.all()
    if user is not None and not user.is_admin:
        qs = qs.filter(Q(mentor=user) | Q(mentee=user))
    counts = qs.aggregate(
        active=Count("id", filter=Q(status=Mentorship.ACCEPTED)),
        pending=Count("id", filter=Q(status=Mentorship.PENDING)),
        completed=Count("id", filter=Q(status=Mentorship.COMPLETED)),
        mentors=Count("mentor", distinct=True),
        mentees=Count("mentee", distinct=True),
    )
    return {
        "totalMentors": counts["mentors"],
        "totalMentees": counts["mentees"],
        "activeRelationships": counts["active"],
        "pendingRequests": counts["pending"],
        "completedMentorships": counts["completed"],
    }


@api_view(["GET"])
@login_required_api
def stats(request):
    return JsonResponse(mentorship_stats(request.user))
