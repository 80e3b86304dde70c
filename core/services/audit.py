# core/services/audit.py

from __future__ import annotations

from typing import Any, Mapping, Optional

from django.contrib.contenttypes.models import ContentType

from core.models import AuditLog, actor_or_none


def log_event(
    *,
    action: str | AuditLog.Action,
    message: str = "",
    actor: Any = None,
    target: Optional[Any] = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> AuditLog:
    """
    Create a single audit log entry.

    action:
        One of AuditLog.Action (STOCK_ADJUSTMENT, RESERVATION, STATUS_CHANGE, ...).
    message:
        Human-readable description of what happened.
    actor:
        The user who performed the action. Stored only if authenticated.
    target:
        Optional model instance the event relates to (stored via GenericForeignKey).
    extra:
        Optional JSON-safe mapping of structured details.
    """
    if isinstance(action, AuditLog.Action):
        action_value = action.value
    else:
        action_value = str(action)

    valid_actions = {choice[0] for choice in AuditLog.Action.choices}
    if action_value not in valid_actions:
        raise ValueError(
            f"Invalid audit action '{action_value}'. "
            f"Allowed values: {sorted(valid_actions)}"
        )

    data: dict[str, Any] = {
        "action": action_value,
        "message": str(message or ""),
        "extra": dict(extra) if extra is not None else {},
        "actor": actor_or_none(actor),
    }

    if target is not None and getattr(target, "pk", None) is not None:
        data["target_content_type"] = ContentType.objects.get_for_model(target, for_concrete_model=True)
        data["target_object_id"] = str(target.pk)

    return AuditLog.objects.create(**data)
