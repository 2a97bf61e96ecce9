import logging

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.http import JsonResponse
from django.utils import timezone

from . import require_owner
from ..auth import alumni_or_admin, login_required_api, student_or_admin
from ..errors import BadRequest, api_view
from ..forms import ApplicationForm, ApplicationStatusForm, JobForm
from ..models import Job, JobApplication
from ..serializers import serialize_application, serialize_job
from ..utils import bind_form, clean_form, get_or_404, paginate, parse_body

logger = logging.getLogger(__name__)


def job_data(request):
    """Request body with a nested `salary` object flattened onto the model fields."""
    data = parse_body(request)
    salary = data.pop("salary", None)
    if isinstance(salary, dict):
        for key in ("min", "max", "currency"):
            if key in salary:
                data[f"salary_{key}"] = salary[key]
    return data


def summary(job):
    return serialize_job(job, include_applicants=False)


@api_view(["GET", "POST"])
def jobs(request):
    if request.method == "POST":
        return create_job(request)
    return list_jobs(request)


def list_jobs(request):
    qs = Job.objects.filter(is_active=True).select_related("posted_by")

    search = request.GET.get("search")
    if search:
        qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search) | Q(company__icontains=search))
    if request.GET.get("type"):
        qs = qs.filter(type=request.GET["type"])
    if request.GET.get("location"):
        qs = qs.filter(location__icontains=request.GET["location"])
    if request.GET.get("company"):
        qs = qs.filter(company__icontains=request.GET["company"])

    return JsonResponse(paginate(request, qs, summary, "jobs"))


@alumni_or_admin
def create_job(request):
    form = bind_form(JobForm, job_data(request))
    job = form.save(commit=False)
    job.posted_by = request.user
    job.save()
    logger.info("Job %s posted by user %s", job.pk, request.user.pk)
    return JsonResponse({"message": "Job posted successfully", "job": serialize_job(job)}, status=201)


@api_view(["GET", "PUT", "DELETE"])
def job_detail(request, job_id):
    job = get_or_404(Job.objects.select_related("posted_by"), "Job not found", pk=job_id)
    if request.method == "PUT":
        return update_job(request, job)
    if request.method == "DELETE":
        return delete_job(request, job)

    user = request.user
    owner_view = user.is_authenticated and (user.is_admin or user.pk == job.posted_by_id)
    return JsonResponse({"job": serialize_job(job, include_applicants=owner_view)})


@alumni_or_admin
def update_job(request, job):
    require_owner(request.user, job.posted_by_id, "Not authorized to update this job")
    job = bind_form(JobForm, job_data(request), instance=job).save()
    return JsonResponse({"message": "Job updated successfully", "job": serialize_job(job)})


@alumni_or_admin
def delete_job(request, job):
    require_owner(request.user, job.posted_by_id, "Not authorized to delete this job")
    job.delete()
    return JsonResponse({"message": "Job deleted successfully"})


@api_view(["POST"])
@student_or_admin
def apply(request, job_id):
    job = get_or_404(Job.objects.all(), "Job not found", pk=job_id)
    if not job.is_active:
        raise BadRequest("This job is no longer active")
    if job.deadline and job.deadline < timezone.now():
        raise BadRequest("The application deadline has passed")
    if job.applications.filter(user=request.user).exists():
        raise BadRequest("You have already applied for this job")

    data = clean_form(ApplicationForm, parse_body(request))
    try:
        with transaction.atomic():
            application = JobApplication.objects.create(
                job=job,
                user=request.user,
                resume=data.get("resume") or "",
                cover_letter=data.get("cover_letter") or "",
            )
    except IntegrityError:
        raise BadRequest("You have already applied for this job")

    return JsonResponse({
        "message": "Application submitted successfully",
        "application": serialize_application(application),
    }, status=201)


@api_view(["PUT", "PATCH"])
@alumni_or_admin
def update_application_status(request, job_id, application_id):
    job = get_or_404(Job.objects.all(), "Job not found", pk=job_id)
    require_owner(request.user, job.posted_by_id, "Not authorized to update applications")
    application = get_or_404(job.applications.select_related("user"), "Application not found", pk=application_id)

    data = clean_form(ApplicationStatusForm, parse_body(request))
    application.status = data["status"]
    application.save(update_fields=["status"])
    return JsonResponse({
        "message": "Application status updated successfully",
        "application": serialize_application(application),
    })


@api_view(["GET"])
@alumni_or_admin
def my_jobs(request):
    qs = Job.objects.filter(posted_by=request.user).select_related("posted_by")
    return JsonResponse({"jobs": [serialize_job(job) for job in qs]})


@api_view(["GET"])
@login_required_api
def my_applications(request):
    applications = JobApplication.objects.filter(user=request.user).select_related("job", "job__posted_by", "user")
    return JsonResponse({
        "applications": [
            {**serialize_application(a), "job": summary(a.job)}
            for a in applications.order_by("-applied_at")
        ]
    })
