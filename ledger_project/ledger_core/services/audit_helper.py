import logging
from typing import Optional

from django.db import transaction

from ..models import AuditLog

logger = logging.getLogger(__name__)


def log_action(*, action: str, instance=None, user=None, object_type: Optional[str] = None,
               object_id=None, changes: dict | None = None):
    """
    Central audit logger. Safe to call multiple times (caller ensures idempotency).
    Either pass the affected `instance`, or `object_type` + `object_id`.
    """
    if instance is not None:
        object_type = object_type or instance.__class__.__name__
        object_id = object_id if object_id is not None else instance.pk

    entry = AuditLog.objects.create(
        user=user,
        action=action,
        object_type=object_type or "",
        object_id=str(object_id if object_id is not None else ""),
        changes=changes,
    )
    logger.info("audit %s %s(%s)", action, entry.object_type, entry.object_id)
    return entry


def log_action_on_commit(**kwargs):
    """Write the audit entry only once the surrounding unit of work has committed."""
    # capture pk/class now: the instance may be deleted before commit (void)
    instance = kwargs.pop("instance", None)
    if instance is not None:
        kwargs.setdefault("object_type", instance.__class__.__name__)
        kwargs.setdefault("object_id", instance.pk)
    transaction.on_commit(lambda: log_action(**kwargs))
