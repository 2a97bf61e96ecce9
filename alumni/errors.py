import logging
from functools import wraps

from django.core.exceptions import ObjectDoesNotExist
from django.http import Http404, JsonResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status = 400

    def __init__(self, message, status=None, **extra):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.extra = extra

    def response(self):
        return error_response(self.message, self.status, **self.extra)


class BadRequest(ApiError):
    status = 400


class NotAuthenticated(ApiError):
    status = 401


class Forbidden(ApiError):
    status = 403


class NotFound(ApiError):
    status = 404


class ValidationFailed(BadRequest):
    """Raised with a bound, invalid form."""

    def __init__(self, form):
        errors = {name: [str(message) for message in messages] for name, messages in form.errors.items()}
        first = next((messages[0] for messages in errors.values() if messages), "Validation error")
        super().__init__(first, errors=errors)


def error_response(message, status, **extra):
    return JsonResponse({"message": message, **extra}, status=status)


def api_view(methods):
    """
    Wrap a JSON view: enforce allowed methods and turn every failure into a
    JSON error response. Unexpected exceptions are logged and reported as a
    generic server error.
    """
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                return error_response("Method not allowed", 405)
            try:
                return view(request, *args, **kwargs)
            except ApiError as exc:
                return exc.response()
            except (ObjectDoesNotExist, Http404):
                return error_response("Not found", 404)
            except Exception:
                logger.exception("Unhandled error in %s", view.__name__)
                return error_response("Server error", 500)

        wrapper.csrf_exempt = True
        return wrapper

    return decorator
