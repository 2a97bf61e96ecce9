"""
Entity registry and realtime event envelopes.

Every aggregate that produces `<entity>:<operation>` events is described
by an `EntitySpec`. Both the direct emitter (model signals) and the change
notifier (database feed) build their payloads from here, so the two
sources publish the same event names and document shapes.
"""
from dataclasses import dataclass, field

from django.apps import apps

from . import serializers
from .serializers import column_key
from .models import AggregateChild

CREATED = "created"
UPDATED = "updated"
REPLACED = "replaced"
DELETED = "deleted"


@dataclass(frozen=True)
class EntitySpec:
    name: str
    singular: str
    model_label: str
    serializer: object
    watched: bool = False
    select_related: tuple = field(default_factory=tuple)
    # columns stored under a nested or renamed document key
    field_paths: dict = field(default_factory=dict)

    @property
    def model(self):
        return apps.get_model(self.model_label)

    @property
    def table(self):
        return self.model._meta.db_table

    def event(self, operation):
        return f"{self.name}:{operation}"

    def document(self, pk):
        """Current document for `pk`, or None when the row no longer exists."""
        queryset = self.model.objects.all()
        if self.select_related:
            queryset = queryset.select_related(*self.select_related)
        instance = queryset.filter(pk=pk).first()
        if instance is None:
            return None
        return self.serializer(instance)

    def document_path(self, column):
        """Dotted document path for a column or model field name (`mentee_unread` -> `unreadCount.mentee`)."""
        return self.field_paths.get(column) or column_key(column)

    def changed_fields(self, columns, document):
        """`{path: value}` for the changed columns; columns the document does not expose are dropped."""
        fields = {}
        for column in columns:
            path = self.document_path(column)
            value = lookup(document, path)
            if value is not MISSING:
                fields[path] = value
        return fields

    def child_keys(self):
        return {
            model.document_key for model in child_models()
            if model._meta.get_field(model.aggregate_field).related_model is self.model
        }

    def removed_fields(self, columns, document):
        paths = (self.document_path(column) for column in columns)
        return [path for path in paths if path.partition(".")[0] in document]


MISSING = object()


def lookup(document, path):
    """Value at a dotted path, or MISSING. An empty path is the document itself."""
    value = document
    for part in filter(None, path.split(".")):
        if not isinstance(value, dict) or part not in value:
            return MISSING
        value = value[part]
    return value


ENTITIES = (
    EntitySpec("users", "user", "alumni.User", serializers.serialize_user, watched=True),
    EntitySpec("jobs", "job", "alumni.Job", serializers.serialize_job, watched=True,
               select_related=("posted_by",),
               field_paths={"salary_min": "salary.min", "salary_max": "salary.max",
                            "salary_currency": "salary.currency"}),
    EntitySpec("workshops", "workshop", "alumni.Workshop", serializers.serialize_workshop, watched=True,
               select_related=("host",),
               field_paths={"location_type": "location.type", "address": "location.address",
                            "online_link": "location.onlineLink"}),
    EntitySpec("blogs", "blog", "alumni.Blog", serializers.serialize_blog, watched=True,
               select_related=("author",)),
    EntitySpec("feedback", "feedback", "alumni.Feedback", serializers.serialize_feedback, watched=True,
               select_related=("user", "responded_by"),
               field_paths={"admin_response": "adminResponse.response", "responded_by": "adminResponse.admin",
                            "responded_by_id": "adminResponse.admin",
                            "responded_at": "adminResponse.respondedAt"}),
    EntitySpec("mentorships", "mentorship", "alumni.Mentorship", serializers.serialize_mentorship,
               select_related=("mentor", "mentee")),
    EntitySpec("mentorship-programs", "mentorshipProgram", "alumni.MentorshipProgram",
               serializers.serialize_program, select_related=("mentor",)),
    EntitySpec("announcements", "announcement", "alumni.Announcement", serializers.serialize_announcement,
               select_related=("author",)),
    EntitySpec("chats", "chat", "alumni.Chat", serializers.serialize_chat, watched=True,
               select_related=("mentor", "mentee"),
               field_paths={"mentor_unread": "unreadCount.mentor", "mentee_unread": "unreadCount.mentee"}),
)

_BY_NAME = {spec.name: spec for spec in ENTITIES}
_BY_LABEL = {spec.model_label.lower(): spec for spec in ENTITIES}


def get_entity(name):
    return _BY_NAME[name]


def entity_for_model(model):
    return _BY_LABEL.get(model._meta.label_lower)


def watched_entities():
    return [spec for spec in ENTITIES if spec.watched]


def child_models():
    """Concrete child models whose aggregate is a registered entity."""
    children = []
    for model in apps.get_app_config("alumni").get_models():
        if issubclass(model, AggregateChild) and not model._meta.abstract:
            parent = model._meta.get_field(model.aggregate_field).related_model
            if entity_for_model(parent) is not None:
                children.append(model)
    return children


# Payload builders

def created_payload(spec, document):
    return {spec.singular: document}


def updated_payload(pk, document, updated_fields=None, removed_fields=None):
    payload = {"_id": pk, "fullDocument": document}
    if updated_fields is not None:
        payload["updatedFields"] = updated_fields
    if removed_fields is not None:
        payload["removedFields"] = removed_fields
    return payload


def replaced_payload(pk, document):
    return {"_id": pk, "fullDocument": document}


def deleted_payload(pk):
    return {"_id": pk}
