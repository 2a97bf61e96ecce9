import logging

from django.db.models import Count, Q
from django.http import JsonResponse

from . import require_owner
from .. import mentorship as lifecycle
from ..auth import admin_required, alumni_or_admin, login_required_api
from ..errors import Forbidden, api_view
from ..forms import JoinRequestForm, MentorshipResponseForm, ProgramForm
from ..models import MentorshipProgram, ProgramMembership, ProgramRequest, User
from ..serializers import serialize_program
from ..utils import bind_form, clean_form, get_or_404, paginate, parse_body

logger = logging.getLogger(__name__)


def programs():
    return MentorshipProgram.objects.select_related("mentor")


@api_view(["GET", "POST"])
@login_required_api
def program_list(request):
    if request.method == "POST":
        return create_program(request)

    qs = programs().filter(is_active=True)
    if request.user.role == User.ALUMNI:
        qs = qs.filter(mentor=request.user)
    search = request.GET.get("search")
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))
    return JsonResponse(paginate(request, qs, serialize_program, "programs"))


@alumni_or_admin
def create_program(request):
    if request.user.role != User.ALUMNI:
        raise Forbidden("Only alumni can create mentorship programs")
    form = bind_form(ProgramForm, parse_body(request))
    program = form.save(commit=False)
    program.mentor = request.user
    program.save()
    logger.info("Mentorship program %s created by user %s", program.pk, request.user.pk)
    return JsonResponse({
        "message": "Mentorship program created successfully",
        "program": serialize_program(program),
    }, status=201)


def program_stats():
    mentees = ProgramMembership.objects.values("mentee").distinct().count()
    totals = MentorshipProgram.objects.aggregate(programs=Count("id"), mentors=Count("mentor", distinct=True))
    return {
        "totalMentors": totals["mentors"],
        "totalMentees": mentees,
        "pendingRequests": ProgramRequest.objects.filter(status="pending").count(),
        "totalPrograms": totals["programs"],
    }


@api_view(["GET"])
@admin_required
def all_programs(request):
    return JsonResponse({
        **paginate(request, programs(), serialize_program, "programs", default_limit=50),
        "stats": program_stats(),
    })


@api_view(["GET", "PUT", "DELETE"])
@login_required_api
def program_detail(request, program_id):
    program = get_or_404(programs(), "Mentorship program not found", pk=program_id)
    if request.method == "PUT":
        return update_program(request, program)
    if request.method == "DELETE":
        return delete_program(request, program)
    return JsonResponse({"program": serialize_program(program)})


@alumni_or_admin
def update_program(request, program):
    require_owner(request.user, program.mentor_id, "Not authorized to update this program")
    program = bind_form(ProgramForm, parse_body(request), instance=program).save()
    return JsonResponse({
        "message": "Mentorship program updated successfully",
        "program": serialize_program(program),
    })


@alumni_or_admin
def delete_program(request, program):
    require_owner(request.user, program.mentor_id, "Not authorized to delete this program")
    program.delete()
    return JsonResponse({"message": "Mentorship program deleted successfully"})


@api_view(["POST"])
@login_required_api
def request_to_join(request, program_id):
    data = clean_form(JoinRequestForm, parse_body(request))
    program, join_request = lifecycle.request_to_join(program_id, request.user, data["message"])
    return JsonResponse({
        "message": "Mentorship request sent successfully",
        "requestId": join_request.pk,
        "program": serialize_program(program),
    }, status=201)


@api_view(["PUT"])
@login_required_api
def respond_to_join_request(request, program_id, request_id):
    data = clean_form(MentorshipResponseForm, parse_body(request))
    program, join_request = lifecycle.respond_to_join_request(program_id, request_id, request.user, data["status"])
    return JsonResponse({
        "message": f"Request {join_request.status} successfully",
        "program": serialize_program(program),
    })
