import json
import logging
import re
import sys
import time

from django import forms
from django.conf import settings
from django.core.paginator import Paginator
from django.db import OperationalError, connections

from .errors import BadRequest, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake(name):
    return _CAMEL_RE.sub("_", name).lower()


def parse_body(request):
    """Request body as a dict with snake_case keys (JSON or form-encoded)."""
    if request.content_type in ("multipart/form-data", "application/x-www-form-urlencoded"):
        data = {key: request.POST.get(key) for key in request.POST}
    elif request.body:
        try:
            data = json.loads(request.body)
        except (ValueError, UnicodeDecodeError):
            raise BadRequest("Invalid JSON body")
        if not isinstance(data, dict):
            raise BadRequest("Request body must be a JSON object")
    else:
        data = {}
    return {to_snake(key): value for key, value in data.items()}


def to_bool(value, default=None):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_list(value):
    """Accept a list or a comma separated string."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in str(value).split(",") if item.strip()]


class ListField(forms.Field):
    def to_python(self, value):
        return parse_list(value)


def bind_form(form_class, data, instance=None, **kwargs):
    """Validate `data` with `form_class`; on update, missing keys keep their stored values."""
    if instance is not None:
        current = forms.model_to_dict(instance, fields=form_class._meta.fields)
        current.update(data)
        data = current
    else:
        # an omitted checkbox reads as False, so fill in the model default
        data = dict(data)
        for field in form_class._meta.model._meta.concrete_fields:
            if (field.name in form_class._meta.fields and field.name not in data
                    and field.get_internal_type() == "BooleanField" and field.has_default()):
                data[field.name] = field.get_default()
    form = form_class(data, instance=instance, **kwargs)
    if not form.is_valid():
        raise ValidationFailed(form)
    return form


def clean_form(form_class, data, **kwargs):
    form = form_class(data, **kwargs)
    if not form.is_valid():
        raise ValidationFailed(form)
    return form.cleaned_data


def get_or_404(queryset, message, **lookup):
    obj = queryset.filter(**lookup).first()
    if obj is None:
        raise NotFound(message)
    return obj


def paginate(request, queryset, serializer, key, default_limit=10):
    try:
        page = max(int(request.GET.get("page", 1)), 1)
        limit = min(max(int(request.GET.get("limit", default_limit)), 1), 100)
    except ValueError:
        raise BadRequest("page and limit must be integers")

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)
    return {
        key: [serializer(item) for item in page_obj.object_list],
        "pagination": {
            "current_page": page_obj.number,
            "total_pages": paginator.num_pages,
            "total": paginator.count,
            "has_next": page_obj.has_next(),
            "has_prev": page_obj.has_previous(),
        },
    }


def wait_for_database(alias="default", attempts=None, delay=None, exit_on_failure=True):
    """
    Open the first database connection, retrying with linear backoff
    (delay * attempt seconds). Exits the process with status 1 when every
    attempt fails, unless `exit_on_failure` is False.
    """
    attempts = attempts or settings.DB_CONNECT_ATTEMPTS
    delay = settings.DB_CONNECT_DELAY if delay is None else delay
    connection = connections[alias]

    for attempt in range(1, attempts + 1):
        try:
            connection.ensure_connection()
            logger.info("Database connected (%s, attempt %d)", connection.vendor, attempt)
            return True
        except OperationalError as exc:
            logger.warning("Database connection attempt %d/%d failed: %s", attempt, attempts, exc)
            if attempt < attempts:
                time.sleep(delay * attempt)

    logger.error("Could not connect to the database after %d attempts", attempts)
    if exit_on_failure:
        sys.exit(1)
    return False
