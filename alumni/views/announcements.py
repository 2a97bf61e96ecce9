"""
Announcements. Non-admins only ever see published, unexpired announcements
addressed to `all` or to their role; an admin listing without a status
(or with `status=all`) sees everything.
"""
import logging

from django.db.models import Count, F, Q
from django.http import JsonResponse
from django.utils import timezone

from ..auth import admin_required, login_required_api
from ..errors import api_view
from ..forms import AnnouncementForm
from ..models import Announcement, User
from ..serializers import announcement_is_active, serialize_announcement
from ..utils import bind_form, get_or_404, paginate, parse_body

logger = logging.getLogger(__name__)


def addressed_to(announcement, role):
    audience = announcement.target_audience or ["all"]
    return "all" in audience or role in audience


def visible_announcements(queryset, role, now=None):
    """Audience and expiry filtering for a non-admin role."""
    now = now or timezone.now()
    return [
        a for a in queryset
        if addressed_to(a, role) and announcement_is_active(a.status, a.expires_at, now)
    ]


def announcements_for(user, status=None, priority=None, search=None):
    qs = Announcement.objects.select_related("author")
    if priority:
        qs = qs.filter(priority=priority)
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(content__icontains=search))

    if user.role == User.ADMIN:
        if not status or status == "all":
            return qs
        qs = qs.filter(status=status)
        if status != "published":
            return qs
        now = timezone.now()
        return qs.filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))

    return visible_announcements(qs.filter(status="published"), user.role)


@api_view(["GET", "POST"])
@login_required_api
def announcements(request):
    if request.method == "POST":
        return create_announcement(request)
    items = announcements_for(
        request.user,
        status=request.GET.get("status"),
        priority=request.GET.get("priority"),
        search=request.GET.get("search"),
    )
    return JsonResponse(paginate(request, items, serialize_announcement, "announcements"))


@admin_required
def create_announcement(request):
    form = bind_form(AnnouncementForm, parse_body(request))
    announcement = form.save(commit=False)
    announcement.author = request.user
    announcement.save()
    logger.info("Announcement %s created (%s)", announcement.pk, announcement.status)
    return JsonResponse({
        "message": "Announcement created successfully",
        "announcement": serialize_announcement(announcement),
    }, status=201)


@api_view(["GET"])
@login_required_api
def published(request):
    qs = Announcement.objects.select_related("author").filter(status="published")
    if request.user.is_admin:
        now = timezone.now()
        items = list(qs.filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now)))
    else:
        items = visible_announcements(qs, request.user.role)
    return JsonResponse({"announcements": [serialize_announcement(a) for a in items]})


@api_view(["GET"])
@admin_required
def stats(request):
    counts = Announcement.objects.aggregate(
        total=Count("id"),
        published=Count("id", filter=Q(status="published")),
        drafts=Count("id", filter=Q(status="draft")),
        archived=Count("id", filter=Q(status="archived")),
        pinned=Count("id", filter=Q(status="published", is_pinned=True)),
    )
    return JsonResponse({"stats": counts})


@api_view(["GET", "PUT", "DELETE"])
@login_required_api
def announcement_detail(request, announcement_id):
    announcement = get_or_404(
        Announcement.objects.select_related("author"), "Announcement not found", pk=announcement_id
    )
    if request.method == "PUT":
        return update_announcement(request, announcement)
    if request.method == "DELETE":
        return delete_announcement(request, announcement)

    Announcement.objects.filter(pk=announcement.pk).update(views=F("views") + 1)
    announcement.refresh_from_db(fields=["views"])
    return JsonResponse({"announcement": serialize_announcement(announcement)})


@admin_required
def update_announcement(request, announcement):
    data = parse_body(request)
    status = data.get("status")
    if status is not None and str(status).lower() not in Announcement.STATUSES:
        # an unknown status leaves the current one in place
        data["status"] = announcement.status
    announcement = bind_form(AnnouncementForm, data, instance=announcement).save()
    return JsonResponse({
        "message": "Announcement updated successfully",
        "announcement": serialize_announcement(announcement),
    })


@admin_required
def delete_announcement(request, announcement):
    announcement.delete()
    return JsonResponse({"message": "Announcement deleted successfully"})
