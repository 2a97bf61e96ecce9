import logging

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count
from django.http import JsonResponse
from django.utils import timezone

from . import require_owner
from ..auth import admin_required, login_required_api
from ..errors import BadRequest, Forbidden, api_view
from ..forms import FeedbackForm, FeedbackResponseForm, FeedbackStatusForm
from ..models import Feedback, FeedbackHelpful
from ..serializers import serialize_feedback
from ..utils import bind_form, clean_form, get_or_404, paginate, parse_body

logger = logging.getLogger(__name__)


def queryset():
    return Feedback.objects.select_related("user", "responded_by")


def public_document(feedback):
    return serialize_feedback(feedback, hide_identity=True)


@api_view(["GET", "POST"])
def feedback(request):
    if request.method == "POST":
        return submit(request)
    return list_feedback(request)


@login_required_api
def submit(request):
    form = bind_form(FeedbackForm, parse_body(request))
    item = form.save(commit=False)
    item.user = request.user
    item.save()
    logger.info("Feedback %s submitted (rating %s, priority %s)", item.pk, item.rating, item.priority)
    return JsonResponse({"message": "Feedback submitted successfully", "feedback": serialize_feedback(item)},
                        status=201)


@admin_required
def list_feedback(request):
    qs = queryset()
    for param, lookup in (("status", "status"), ("priority", "priority"), ("eventType", "event_type"),
                          ("category", "category"), ("rating", "rating")):
        value = request.GET.get(param)
        if value:
            qs = qs.filter(**{lookup: value})
    return JsonResponse(paginate(request, qs, serialize_feedback, "feedback"))


@api_view(["GET"])
def public_feedback(request):
    qs = queryset().filter(is_public=True)
    if request.GET.get("eventType"):
        qs = qs.filter(event_type=request.GET["eventType"])
    return JsonResponse(paginate(request, qs, public_document, "feedback"))


@api_view(["GET"])
@login_required_api
def my_feedback(request):
    return JsonResponse({"feedback": [serialize_feedback(f) for f in queryset().filter(user=request.user)]})


@api_view(["GET"])
@login_required_api
def user_feedback(request, user_id):
    if not (request.user.is_admin or request.user.pk == user_id):
        raise Forbidden("Not authorized to view this feedback")
    return JsonResponse({"feedback": [serialize_feedback(f) for f in queryset().filter(user_id=user_id)]})


def feedback_stats():
    qs = Feedback.objects.all()
    totals = qs.aggregate(total=Count("id"), average=Avg("rating"))

    def by(field):
        return {row[field]: row["count"] for row in qs.values(field).annotate(count=Count("id")).order_by()}

    ratings = by("rating")
    return {
        "total": totals["total"],
        "averageRating": round(totals["average"], 2) if totals["average"] is not None else None,
        "byStatus": by("status"),
        "byPriority": by("priority"),
        "byEventType": by("event_type"),
        "byCategory": by("category"),
        "ratingDistribution": {rating: ratings.get(rating, 0) for rating in range(1, 6)},
    }


@api_view(["GET"])
@admin_required
def stats(request):
    return JsonResponse({"stats": feedback_stats()})


@api_view(["GET"])
@admin_required
def summary(request):
    """Average rating for one event, or per event type when no event is given."""
    event_type = request.GET.get("eventType")
    event_id = request.GET.get("eventId")
    qs = Feedback.objects.all()
    if event_type:
        qs = qs.filter(event_type=event_type)
    if event_id:
        qs = qs.filter(event_id=event_id)
        result = qs.aggregate(averageRating=Avg("rating"), totalFeedback=Count("id"))
        return JsonResponse({"eventType": event_type, "eventId": int(event_id), **result})

    rows = qs.values("event_type").annotate(averageRating=Avg("rating"), totalFeedback=Count("id"))
    return JsonResponse({"summary": [
        {"eventType": r["event_type"], "averageRating": r["averageRating"], "totalFeedback": r["totalFeedback"]}
        for r in rows.order_by("event_type")
    ]})


@api_view(["GET", "DELETE"])
@login_required_api
def feedback_detail(request, feedback_id):
    item = get_or_404(queryset(), "Feedback not found", pk=feedback_id)
    if request.method == "DELETE":
        require_owner(request.user, item.user_id, "Not authorized to delete this feedback")
        item.delete()
        return JsonResponse({"message": "Feedback deleted successfully"})

    require_owner(request.user, item.user_id, "Not authorized to view this feedback")
    return JsonResponse({"feedback": serialize_feedback(item)})


@api_view(["PUT", "PATCH"])
@admin_required
def update_status(request, feedback_id):
    item = get_or_404(queryset(), "Feedback not found", pk=feedback_id)
    item.status = clean_form(FeedbackStatusForm, parse_body(request))["status"]
    item.save(update_fields=["status"])
    return JsonResponse({"message": "Feedback status updated successfully", "feedback": serialize_feedback(item)})


@api_view(["POST", "PUT"])
@admin_required
def respond(request, feedback_id):
    item = get_or_404(queryset(), "Feedback not found", pk=feedback_id)
    data = clean_form(FeedbackResponseForm, parse_body(request))
    item.admin_response = data["response"]
    item.responded_by = request.user
    item.responded_at = timezone.now()
    item.status = "addressed"
    item.save(update_fields=["admin_response", "responded_by", "responded_at", "status"])
    return JsonResponse({"message": "Admin response added successfully", "feedback": serialize_feedback(item)})


@api_view(["POST"])
@login_required_api
def toggle_helpful(request, feedback_id):
    item = get_or_404(Feedback.objects.all(), "Feedback not found", pk=feedback_id)
    if not (item.is_public or request.user.is_admin or item.user_id == request.user.pk):
        raise BadRequest("Only public feedback can be marked helpful")

    mark = item.helpful_marks.filter(user=request.user).first()
    if mark is not None:
        mark.delete()
        helpful = False
    else:
        try:
            with transaction.atomic():
                FeedbackHelpful.objects.create(feedback=item, user=request.user)
        except IntegrityError:
            pass  # already marked by a concurrent request
        helpful = True
    return JsonResponse({"helpful": helpful, "helpfulCount": item.helpful_marks.count()})
