"""Admin dashboard endpoints and the spreadsheet/PDF exports."""
import logging
from datetime import timedelta
from io import BytesIO

import openpyxl
from django.db.models import Count, Q
from django.db.models.functions import TruncMonth
from django.http import FileResponse, JsonResponse
from django.utils import timezone
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer
from reportlab.platypus import Table as RLTable
from reportlab.platypus import TableStyle as RLTableStyle

from .auth import set_approval
from ..auth import admin_required
from ..errors import BadRequest, api_view
from ..models import Blog, Feedback, Job, JobApplication, Mentorship, User, Workshop
from ..serializers import iso, serialize_application, serialize_job, serialize_mentorship, serialize_user, user_summary
from ..utils import get_or_404, paginate, parse_body, to_bool

logger = logging.getLogger(__name__)

USER_EXPORT_COLUMNS = ["ID", "Name", "Email", "Role", "Approved", "Graduation year", "Major", "Location", "Joined"]


@api_view(["GET"])
@admin_required
def users(request):
    qs = User.objects.order_by("-created_at")
    if request.GET.get("role"):
        qs = qs.filter(role=request.GET["role"])
    approved = to_bool(request.GET.get("isApproved"))
    if approved is not None:
        qs = qs.filter(is_approved=approved)
    search = request.GET.get("search")
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(email__icontains=search))
    return JsonResponse(paginate(request, qs, serialize_user, "users"))


def activity_counts(user):
    return {
        "jobsPosted": Job.objects.filter(posted_by=user).count(),
        "workshopsHosted": Workshop.objects.filter(host=user).count(),
        "blogsWritten": Blog.objects.filter(author=user).count(),
        "feedbackSubmitted": Feedback.objects.filter(user=user).count(),
    }


@api_view(["GET", "DELETE"])
@admin_required
def user_detail(request, user_id):
    user = get_or_404(User.objects.all(), "User not found", pk=user_id)
    if request.method == "DELETE":
        return delete_user(request, user)
    return JsonResponse({"user": serialize_user(user), "activities": activity_counts(user)})


def delete_user(request, user):
    if user.is_admin:
        raise BadRequest("Cannot delete admin users")
    owns_content = (
        Job.objects.filter(posted_by=user).exists()
        or Workshop.objects.filter(host=user).exists()
        or Blog.objects.filter(author=user).exists()
    )
    if owns_content:
        raise BadRequest("Cannot delete user with existing content. Please archive their content first.")
    user_id = user.pk
    user.delete()
    logger.info("User %s deleted by admin %s", user_id, request.user.pk)
    return JsonResponse({"message": "User deleted successfully"})


@api_view(["PUT", "PATCH"])
@admin_required
def approve_user(request, user_id):
    target = set_approval(user_id, parse_body(request))
    verdict = "approved" if target.is_approved else "rejected"
    return JsonResponse({"message": f"User {verdict} successfully", "user": serialize_user(target)})


def build_analytics(now=None):
    now = now or timezone.now()
    since = now - timedelta(days=182)

    users = User.objects.aggregate(
        total=Count("id"),
        alumni=Count("id", filter=Q(role=User.ALUMNI, is_approved=True)),
        students=Count("id", filter=Q(role=User.STUDENT, is_approved=True)),
        pending=Count("id", filter=Q(is_approved=False)),
    )
    monthly = (
        User.objects.filter(created_at__gte=since)
        .annotate(month=TruncMonth("created_at"))
        .values("month")
        .annotate(count=Count("id"))
        .order_by("month")
    )
    ratings = Feedback.objects.values("rating").annotate(count=Count("id")).order_by("rating")

    return {
        "userStats": {
            "total": users["total"],
            "alumni": users["alumni"],
            "students": users["students"],
            "pendingApprovals": users["pending"],
        },
        "contentStats": {
            "jobs": Job.objects.filter(is_active=True).count(),
            "workshops": Workshop.objects.filter(is_active=True).count(),
            "blogs": Blog.objects.filter(status="published").count(),
            "feedback": Feedback.objects.count(),
            "mentorships": Mentorship.objects.filter(status=Mentorship.ACCEPTED).count(),
        },
        "recentActivity": {
            "users": [
                {**user_summary(u), "createdAt": iso(u.created_at)}
                for u in User.objects.order_by("-created_at")[:5]
            ],
            "jobs": [
                {"_id": j.pk, "title": j.title, "company": j.company, "postedBy": user_summary(j.posted_by),
                 "createdAt": iso(j.created_at)}
                for j in Job.objects.filter(is_active=True).select_related("posted_by").order_by("-created_at")[:5]
            ],
            "workshops": [
                {"_id": w.pk, "topic": w.topic, "host": user_summary(w.host), "date": iso(w.date)}
                for w in Workshop.objects.filter(is_active=True).select_related("host").order_by("-date")[:5]
            ],
        },
        "feedbackStats": [{"rating": r["rating"], "count": r["count"]} for r in ratings],
        "monthlyRegistrations": [
            {"year": row["month"].year, "month": row["month"].month, "count": row["count"]}
            for row in monthly if row["month"] is not None
        ],
    }


@api_view(["GET"])
@admin_required
def analytics(request):
    return JsonResponse(build_analytics())


@api_view(["GET"])
@admin_required
def mentorships(request):
    qs = Mentorship.objects.select_related("mentor", "mentee")
    if request.GET.get("status"):
        qs = qs.filter(status=request.GET["status"])
    return JsonResponse(paginate(request, qs, serialize_mentorship, "mentorships"))


@api_view(["GET"])
@admin_required
def jobs(request):
    qs = Job.objects.select_related("posted_by")
    active = to_bool(request.GET.get("isActive"))
    if active is not None:
        qs = qs.filter(is_active=active)
    return JsonResponse(paginate(request, qs, serialize_job, "jobs"))


def application_row(application):
    return {
        **serialize_application(application),
        "job": {"_id": application.job_id, "title": application.job.title, "company": application.job.company},
    }


@api_view(["GET"])
@admin_required
def applications(request):
    qs = JobApplication.objects.select_related("job", "user").order_by("-applied_at")
    if request.GET.get("status"):
        qs = qs.filter(status=request.GET["status"])
    if request.GET.get("job"):
        qs = qs.filter(job_id=request.GET["job"])
    return JsonResponse(paginate(request, qs, application_row, "applications", default_limit=20))


# Exports

def auto_adjust(ws):
    """Fit column widths to their longest value."""
    for col in ws.columns:
        width = max(len(str(cell.value)) if cell.value is not None else 0 for cell in col)
        ws.column_dimensions[get_column_letter(col[0].column)].width = min(width + 4, 60)


def build_users_workbook(queryset):
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Users"
    ws.append(USER_EXPORT_COLUMNS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    count = 0
    for user in queryset:
        ws.append([
            user.pk,
            user.name,
            user.email,
            user.role,
            "yes" if user.is_approved else "no",
            user.graduation_year,
            user.major,
            user.location,
            user.created_at.strftime("%Y-%m-%d") if user.created_at else "",
        ])
        count += 1

    if count:
        ws.freeze_panes = ws["A2"]
        table = Table(displayName="users_table", ref=f"A1:{get_column_letter(len(USER_EXPORT_COLUMNS))}{count + 1}")
        table.tableStyleInfo = TableStyleInfo(name="TableStyleMedium9", showRowStripes=True)
        ws.add_table(table)
    auto_adjust(ws)
    return wb


@api_view(["GET"])
@admin_required
def export_users(request):
    qs = User.objects.order_by("role", "name")
    if request.GET.get("role"):
        qs = qs.filter(role=request.GET["role"])

    buf = BytesIO()
    build_users_workbook(qs).save(buf)
    buf.seek(0)
    logger.info("User export generated by admin %s", request.user.pk)
    return FileResponse(
        buf,
        as_attachment=True,
        filename="users.xlsx",
        content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def stats_table(rows):
    table = RLTable(rows, colWidths=[9 * cm, 5 * cm], repeatRows=1)
    table.setStyle(RLTableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#3f5cbf")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("INNERGRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("BOX", (0, 0), (-1, -1), 0.5, colors.black),
    ]))
    return table


def build_analytics_pdf(data, generated_at=None):
    generated_at = generated_at or timezone.now()
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=1.5 * cm, rightMargin=1.5 * cm)
    styles = getSampleStyleSheet()

    story = [
        Paragraph("<b>Alumni Association - Analytics</b>", styles["Heading1"]),
        Paragraph(f"Generated: {generated_at:%Y-%m-%d %H:%M}", styles["Normal"]),
        Spacer(1, 12),
    ]
    sections = [
        ("Users", data["userStats"]),
        ("Content", data["contentStats"]),
        ("Feedback ratings", {f"{r['rating']} star": r["count"] for r in data["feedbackStats"]}),
        ("Monthly registrations", {f"{r['year']}-{r['month']:02d}": r["count"] for r in data["monthlyRegistrations"]}),
    ]
    for title, values in sections:
        story.append(Paragraph(f"<b>{title}</b>", styles["Heading2"]))
        if not values:
            story.append(Paragraph("<i>No records found.</i>", styles["BodyText"]))
        else:
            story.append(stats_table([["Metric", "Value"]] + [[str(k), str(v)] for k, v in values.items()]))
        story.append(Spacer(1, 10))

    doc.build(story)
    buffer.seek(0)
    return buffer


@api_view(["GET"])
@admin_required
def export_analytics(request):
    buffer = build_analytics_pdf(build_analytics())
    return FileResponse(buffer, as_attachment=True, filename="analytics.pdf", content_type="application/pdf")
