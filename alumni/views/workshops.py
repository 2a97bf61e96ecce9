import logging

from django.db import transaction
from django.db.models import Q
from django.http import JsonResponse
from django.utils import timezone

from . import require_owner
from ..auth import alumni_or_admin, login_required_api
from ..errors import BadRequest, api_view
from ..forms import AttendeeStatusForm, WorkshopForm
from ..models import Workshop, WorkshopAttendee
from ..serializers import serialize_attendee, serialize_workshop
from ..utils import bind_form, clean_form, get_or_404, paginate, parse_body, to_bool

logger = logging.getLogger(__name__)


def workshop_data(request):
    """Request body with the nested `location` object flattened."""
    data = parse_body(request)
    location = data.pop("location", None)
    if isinstance(location, dict):
        if "type" in location:
            data["location_type"] = location["type"]
        if "address" in location:
            data["address"] = location["address"]
        if "onlineLink" in location:
            data["online_link"] = location["onlineLink"]
    elif isinstance(location, str):
        data["address"] = location
    return data


def summary(workshop):
    return serialize_workshop(workshop, include_attendees=False)


@api_view(["GET", "POST"])
def workshops(request):
    if request.method == "POST":
        return create_workshop(request)
    return list_workshops(request)


def list_workshops(request):
    qs = Workshop.objects.filter(is_active=True).select_related("host")

    search = request.GET.get("search")
    if search:
        qs = qs.filter(Q(topic__icontains=search) | Q(description__icontains=search))
    if request.GET.get("category"):
        qs = qs.filter(category=request.GET["category"])
    if request.GET.get("locationType"):
        qs = qs.filter(location_type=request.GET["locationType"])
    if to_bool(request.GET.get("upcoming"), False):
        qs = qs.filter(date__gte=timezone.now())

    return JsonResponse(paginate(request, qs, summary, "workshops"))


@alumni_or_admin
def create_workshop(request):
    form = bind_form(WorkshopForm, workshop_data(request))
    workshop = form.save(commit=False)
    workshop.host = request.user
    workshop.save()
    logger.info("Workshop %s created by user %s", workshop.pk, request.user.pk)
    return JsonResponse({"message": "Workshop created successfully", "workshop": serialize_workshop(workshop)},
                        status=201)


@api_view(["GET", "PUT", "DELETE"])
def workshop_detail(request, workshop_id):
    workshop = get_or_404(Workshop.objects.select_related("host"), "Workshop not found", pk=workshop_id)
    if request.method == "PUT":
        return update_workshop(request, workshop)
    if request.method == "DELETE":
        return delete_workshop(request, workshop)
    return JsonResponse({"workshop": serialize_workshop(workshop)})


@alumni_or_admin
def update_workshop(request, workshop):
    require_owner(request.user, workshop.host_id, "Not authorized to update this workshop")
    workshop = bind_form(WorkshopForm, workshop_data(request), instance=workshop).save()
    return JsonResponse({"message": "Workshop updated successfully", "workshop": serialize_workshop(workshop)})


@alumni_or_admin
def delete_workshop(request, workshop):
    require_owner(request.user, workshop.host_id, "Not authorized to delete this workshop")
    workshop.delete()
    return JsonResponse({"message": "Workshop deleted successfully"})


@api_view(["POST", "DELETE"])
@login_required_api
def registration(request, workshop_id):
    if request.method == "DELETE":
        return cancel_registration(request, workshop_id)
    return register(request, workshop_id)


def register(request, workshop_id):
    with transaction.atomic():
        # row lock: the capacity check and the insert happen together
        workshop = get_or_404(Workshop.objects.select_for_update(), "Workshop not found", pk=workshop_id)
        if not workshop.is_active:
            raise BadRequest("This workshop is no longer active")
        if workshop.registration_deadline and timezone.now() > workshop.registration_deadline:
            raise BadRequest("Registration deadline has passed")

        existing = workshop.attendees.filter(user=request.user).first()
        if existing is not None and existing.status != "cancelled":
            raise BadRequest("You have already registered for this workshop")
        if workshop.active_attendees().count() >= workshop.capacity:
            raise BadRequest("Workshop is full")

        if existing is not None:
            existing.status = "registered"
            existing.save(update_fields=["status"])
            attendee = existing
        else:
            attendee = WorkshopAttendee.objects.create(workshop=workshop, user=request.user)

    logger.info("User %s registered for workshop %s", request.user.pk, workshop.pk)
    workshop.refresh_from_db()
    return JsonResponse({
        "message": "Registration successful",
        "attendee": serialize_attendee(attendee),
        "workshop": serialize_workshop(workshop),
    }, status=201)


def cancel_registration(request, workshop_id):
    workshop = get_or_404(Workshop.objects.all(), "Workshop not found", pk=workshop_id)
    attendee = workshop.active_attendees().filter(user=request.user).first()
    if attendee is None:
        raise BadRequest("You are not registered for this workshop")
    attendee.delete()
    workshop.refresh_from_db()
    return JsonResponse({"message": "Registration cancelled successfully", "workshop": serialize_workshop(workshop)})


@api_view(["PUT", "PATCH"])
@alumni_or_admin
def update_attendee_status(request, workshop_id, attendee_id):
    data = clean_form(AttendeeStatusForm, parse_body(request))
    with transaction.atomic():
        workshop = get_or_404(Workshop.objects.select_for_update(), "Workshop not found", pk=workshop_id)
        require_owner(request.user, workshop.host_id, "Not authorized to update attendees")
        attendee = get_or_404(workshop.attendees.select_related("user"), "Attendee not found", pk=attendee_id)

        reactivating = attendee.status == "cancelled" and data["status"] != "cancelled"
        if reactivating and workshop.active_attendees().count() >= workshop.capacity:
            raise BadRequest("Workshop is full")
        attendee.status = data["status"]
        attendee.save(update_fields=["status"])

    return JsonResponse({"message": "Attendee status updated successfully", "attendee": serialize_attendee(attendee)})


@api_view(["GET"])
@alumni_or_admin
def my_workshops(request):
    qs = Workshop.objects.filter(host=request.user).select_related("host")
    return JsonResponse({"workshops": [serialize_workshop(w) for w in qs]})


@api_view(["GET"])
@login_required_api
def my_registrations(request):
    registrations = (
        WorkshopAttendee.objects.filter(user=request.user)
        .exclude(status="cancelled")
        .select_related("workshop", "workshop__host", "user")
        .order_by("-registered_at")
    )
    return JsonResponse({
        "registrations": [{**serialize_attendee(r), "workshop": summary(r.workshop)} for r in registrations]
    })
