"""Bearer tokens and role checks for the JSON API."""
from functools import wraps

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import signing

from .errors import Forbidden, NotAuthenticated

TOKEN_SALT = "alumni.auth.token"


def issue_token(user):
    return signing.dumps({"id": user.pk}, salt=TOKEN_SALT, compress=True)


def user_for_token(token):
    """Resolve a bearer token to an active user allowed to sign in."""
    if not token:
        raise NotAuthenticated("Not authorized, no token")
    try:
        data = signing.loads(token, salt=TOKEN_SALT, max_age=settings.AUTH_TOKEN_MAX_AGE)
    except signing.BadSignature:
        raise NotAuthenticated("Not authorized, token failed")

    user = get_user_model().objects.filter(pk=data.get("id"), is_active=True).first()
    if user is None:
        raise NotAuthenticated("Not authorized, user not found")
    if not user.can_authenticate:
        raise NotAuthenticated("Account pending approval")
    return user


def token_from_header(header):
    if not header or not header.startswith("Bearer"):
        return None
    parts = header.split(" ", 1)
    return parts[1].strip() if len(parts) == 2 else ""


def login_required_api(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            raise NotAuthenticated(getattr(request, "auth_error", None) or "Not authorized, no token")
        return view(request, *args, **kwargs)

    return wrapper


def roles_required(*roles):
    def decorator(view):
        @wraps(view)
        @login_required_api
        def wrapper(request, *args, **kwargs):
            if request.user.role not in roles:
                raise Forbidden(f"User role {request.user.role} is not authorized to access this route")
            return view(request, *args, **kwargs)

        return wrapper

    return decorator


admin_required = roles_required("admin")
alumni_or_admin = roles_required("alumni", "admin")
student_or_admin = roles_required("student", "admin")
