import logging

from django.core.files.storage import default_storage
from django.conf import settings
from django.db import IntegrityError, transaction
from django.http import JsonResponse

from ..auth import admin_required, issue_token, login_required_api
from ..errors import BadRequest, NotAuthenticated, NotFound, api_view
from ..forms import ApprovalForm, LoginForm, ProfileForm, RegisterForm
from ..models import User
from ..serializers import serialize_user
from ..utils import bind_form, clean_form, parse_body

logger = logging.getLogger(__name__)


@api_view(["POST"])
def register(request):
    data = clean_form(RegisterForm, parse_body(request))
    try:
        with transaction.atomic():
            user = User.objects.create_user(
                email=data["email"],
                password=data["password"],
                name=data["name"],
                role=data["role"],
                graduation_year=data.get("graduation_year"),
                major=data.get("major") or "",
                bio=data.get("bio") or "",
                phone=data.get("phone") or "",
                location=data.get("location") or "",
            )
    except IntegrityError:
        raise BadRequest("User already exists")

    logger.info("Registered %s user %s", user.role, user.pk)
    return JsonResponse({
        "message": "Registration successful. Waiting for admin approval.",
        "token": issue_token(user),
        "user": serialize_user(user),
    }, status=201)


@api_view(["POST"])
def login(request):
    data = clean_form(LoginForm, parse_body(request))
    user = User.objects.filter(email=data["email"].strip().lower()).first()
    if user is None or not user.is_active or not user.check_password(data["password"]):
        raise NotAuthenticated("Invalid credentials")
    if not user.can_authenticate:
        raise NotAuthenticated("Account pending approval")

    return JsonResponse({
        "message": "Login successful",
        "token": issue_token(user),
        "user": serialize_user(user),
    })


@api_view(["GET"])
@login_required_api
def me(request):
    return JsonResponse({"user": serialize_user(request.user)})


@api_view(["PUT", "PATCH"])
@login_required_api
def update_profile(request):
    form = bind_form(ProfileForm, parse_body(request), instance=request.user)
    user = form.save()
    return JsonResponse({"message": "Profile updated successfully", "user": serialize_user(user)})


@api_view(["DELETE"])
@login_required_api
def delete_profile_image(request):
    user = request.user
    if not user.profile_image:
        raise BadRequest("No profile image to delete")

    if user.profile_image.startswith(settings.MEDIA_URL):
        name = user.profile_image[len(settings.MEDIA_URL):]
        if default_storage.exists(name):
            default_storage.delete(name)
    user.profile_image = ""
    user.save(update_fields=["profile_image"])
    return JsonResponse({"message": "Profile image deleted successfully", "user": serialize_user(user)})


@api_view(["GET"])
@admin_required
def pending_users(request):
    users = User.objects.filter(is_approved=False).exclude(role=User.ADMIN)
    return JsonResponse({"users": [serialize_user(u) for u in users]})


def set_approval(target_id, data):
    """Shared by the auth and admin approval endpoints."""
    target = User.objects.filter(pk=target_id).first()
    if target is None:
        raise NotFound("User not found")
    if target.is_admin:
        raise BadRequest("Cannot modify admin users")

    cleaned = clean_form(ApprovalForm, data)
    target.is_approved = cleaned["is_approved"]
    target.approval_reason = cleaned.get("reason") or ""
    if not target.is_approved:
        target.approved_at = None
    target.save(update_fields=["is_approved", "approval_reason", "approved_at"])
    logger.info("User %s approval set to %s", target.pk, target.is_approved)
    return target


@api_view(["PUT", "PATCH"])
@admin_required
def approve_user(request, user_id):
    target = set_approval(user_id, parse_body(request))
    message = "User approved successfully" if target.is_approved else "User approval revoked"
    return JsonResponse({"message": message, "user": serialize_user(target)})
