"""
Direct emitter: publishes entity events from model signals.

Events are sent from `transaction.on_commit`, so nothing is published for
a write that rolls back. Several writes to the same aggregate inside one
transaction collapse into one event carrying the committed document.
"""
import logging

from django.db import transaction
from django.db.models.signals import post_delete, post_save

from .events import (
    CREATED, DELETED, ENTITIES, UPDATED, child_models, created_payload, deleted_payload, entity_for_model,
    updated_payload,
)

logger = logging.getLogger(__name__)


class PendingEmit:
    """An on_commit callback for one (entity, id, operation)."""

    def __init__(self, emitter, spec, pk, operation, updated_fields=None):
        self.emitter = emitter
        self.spec = spec
        self.pk = pk
        self.operation = operation
        self.updated_fields = set(updated_fields) if updated_fields else None
        self.sent = False

    def matches(self, spec, pk, operation):
        if self.sent or self.spec.name != spec.name or self.pk != pk:
            return False
        # a pending create already carries the final document
        return self.operation == operation or (operation == UPDATED and self.operation == CREATED)

    def merge(self, updated_fields):
        if self.updated_fields is not None and updated_fields:
            self.updated_fields |= set(updated_fields)
        else:
            self.updated_fields = None

    def __call__(self):
        self.sent = True
        fields = sorted(self.updated_fields) if self.updated_fields else None
        self.emitter.emit(self.spec, self.pk, self.operation, fields)


class DirectEmitter:
    def __init__(self, broadcaster):
        self.broadcaster = broadcaster
        self.connected = False

    def connect(self):
        for spec in ENTITIES:
            post_save.connect(self.on_save, sender=spec.model, dispatch_uid=f"direct-emit-save-{spec.name}")
            post_delete.connect(self.on_delete, sender=spec.model, dispatch_uid=f"direct-emit-delete-{spec.name}")
        for model in child_models():
            label = model._meta.label_lower
            post_save.connect(self.on_child_change, sender=model, dispatch_uid=f"direct-emit-save-{label}")
            post_delete.connect(self.on_child_change, sender=model, dispatch_uid=f"direct-emit-delete-{label}")
        self.connected = True
        logger.info("Direct emitter connected for %d entities", len(ENTITIES))

    def disconnect(self):
        for spec in ENTITIES:
            post_save.disconnect(sender=spec.model, dispatch_uid=f"direct-emit-save-{spec.name}")
            post_delete.disconnect(sender=spec.model, dispatch_uid=f"direct-emit-delete-{spec.name}")
        for model in child_models():
            label = model._meta.label_lower
            post_save.disconnect(sender=model, dispatch_uid=f"direct-emit-save-{label}")
            post_delete.disconnect(sender=model, dispatch_uid=f"direct-emit-delete-{label}")
        self.connected = False

    # Receivers

    def on_save(self, sender, instance, created, update_fields=None, raw=False, **kwargs):
        if raw:
            return
        spec = entity_for_model(sender)
        if created:
            self.schedule(spec, instance.pk, CREATED)
        else:
            self.schedule(spec, instance.pk, UPDATED, update_fields)

    def on_delete(self, sender, instance, **kwargs):
        self.schedule(entity_for_model(sender), instance.pk, DELETED)

    def on_child_change(self, sender, instance, raw=False, **kwargs):
        if raw:
            return
        model, pk = instance.aggregate_key()
        self.schedule(entity_for_model(model), pk, UPDATED, [instance.document_key])

    # Emission

    def schedule(self, spec, pk, operation, updated_fields=None):
        connection = transaction.get_connection()
        if connection.in_atomic_block:
            for entry in connection.run_on_commit:
                callback = entry[1]
                if isinstance(callback, PendingEmit) and callback.matches(spec, pk, operation):
                    callback.merge(updated_fields)
                    return
        transaction.on_commit(PendingEmit(self, spec, pk, operation, updated_fields))

    def emit(self, spec, pk, operation, updated_fields=None):
        if operation == DELETED:
            self.broadcaster.emit(spec.event(DELETED), deleted_payload(pk))
            return

        document = spec.document(pk)
        if document is None:
            # removed later in the same transaction; its delete event covers it
            return
        if operation == CREATED:
            payload = created_payload(spec, document)
        else:
            fields = self.document_fields(spec, updated_fields, document)
            payload = updated_payload(pk, document, updated_fields=fields)
        self.broadcaster.emit(spec.event(operation), payload)

    @staticmethod
    def document_fields(spec, names, document):
        """Document paths for saved field names and child list keys, minus fields the document hides."""
        if names is None:
            return None
        children = spec.child_keys()
        paths = set()
        for name in names:
            path = name if name in children else spec.document_path(name)
            if name in children or path.partition(".")[0] in document:
                paths.add(path)
        return sorted(paths)
