# core/models/domain.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type

from django.db import models, transaction
from django.utils.translation import gettext as _

from core.domain.dispatcher import emit as emit_domain_event
from core.domain.events import DomainEvent
from core.exceptions import InvalidStatus


class DomainEventsMixin(models.Model):
    """
    Abstract Django model that can:
      - emit domain events
      - execute lifecycle hooks
      - execute state transition hooks

    Hooks are discovered via decorators defined in core.domain.hooks:
      - @on_lifecycle("created" | "updated")
      - @on_transition(from_state, to_state, field_name="status")

    Hook discovery is cached per subclass in __init_subclass__.
    Hooks run after the surrounding transaction commits.
    """

    _lifecycle_hooks: Dict[str, List[str]] = {}
    _transition_hooks: List[Tuple[str, Any, Any, str]] = []

    class Meta:
        abstract = True

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        lifecycle_hooks: Dict[str, List[str]] = {}
        transition_hooks: List[Tuple[str, Any, Any, str]] = []

        for base in cls.__mro__[1:]:
            for name, methods in getattr(base, "_lifecycle_hooks", {}).items():
                lifecycle_hooks.setdefault(name, []).extend(methods)
            transition_hooks.extend(getattr(base, "_transition_hooks", []))

        for attr_name, attr_value in cls.__dict__.items():
            if not callable(attr_value):
                continue

            lifecycle_event = getattr(attr_value, "__lifecycle_event__", None)
            if lifecycle_event is not None:
                lifecycle_hooks.setdefault(lifecycle_event, []).append(attr_name)

            transition_meta = getattr(attr_value, "__transition__", None)
            if transition_meta is not None:
                field_name, from_state, to_state = transition_meta
                transition_hooks.append((field_name, from_state, to_state, attr_name))

        cls._lifecycle_hooks = lifecycle_hooks
        cls._transition_hooks = transition_hooks

    def emit(self, event: DomainEvent) -> None:
        emit_domain_event(event)

    def _run_lifecycle_hooks(self, event_name: str) -> None:
        for method_name in self._lifecycle_hooks.get(event_name, []):
            method = getattr(self, method_name, None)
            if callable(method):
                method()

    def _run_transition_hooks(self, field_name: str, old: Any, new: Any) -> None:
        for hook_field, from_state, to_state, method_name in self._transition_hooks:
            if hook_field != field_name:
                continue
            # None acts as a wildcard on either side.
            if from_state is not None and from_state != old:
                continue
            if to_state is not None and to_state != new:
                continue
            method = getattr(self, method_name, None)
            if callable(method):
                method(old, new)

    def save(self, *args, **kwargs) -> None:
        is_create = self._state.adding
        field_name = getattr(self, "STATUS_FIELD_NAME", "status")

        old_status: Optional[Any] = None
        track_status = not is_create and hasattr(self, field_name)
        if track_status:
            model_cls: Type[models.Model] = type(self)
            row = model_cls._default_manager.filter(pk=self.pk).values(field_name).first()
            old_status = row[field_name] if row is not None else None

        super().save(*args, **kwargs)

        new_status = getattr(self, field_name, None)

        def run_hooks() -> None:
            self._run_lifecycle_hooks("created" if is_create else "updated")
            if track_status and old_status is not None and old_status != new_status:
                self._run_transition_hooks(field_name, old_status, new_status)

        transaction.on_commit(run_hooks)


class StatefulDomainModel(DomainEventsMixin):
    """
    Base model for rows driven by a status state machine.

    - STATUS_FIELD_NAME: which field holds the state (default "status").
    - TRANSITIONS: mapping of state -> iterable of states reachable from it.
      change_state() rejects anything not listed with InvalidStatus.
    """

    STATUS_FIELD_NAME: str = "status"
    TRANSITIONS: Mapping[str, Iterable[str]] = {}

    class Meta:
        abstract = True

    @property
    def current_state(self) -> str:
        return getattr(self, self.STATUS_FIELD_NAME)

    def can_transition_to(self, new_state: Any) -> bool:
        current = str(self.current_state)
        for state, targets in self.TRANSITIONS.items():
            if str(state) == current:
                return str(new_state) in {str(target) for target in targets}
        return False

    def ensure_transition(self, new_state: Any) -> None:
        if not self.can_transition_to(new_state):
            raise InvalidStatus(
                _("Cannot move %(model)s from %(old)s to %(new)s.")
                % {
                    "model": self._meta.verbose_name,
                    "old": self.current_state,
                    "new": new_state,
                }
            )

    def change_state(
        self,
        new_state: Any,
        *,
        save: bool = True,
        update_fields: Optional[List[str]] = None,
    ) -> None:
        """
        Validate and apply a state change.

        Extra fields changed alongside the state can be listed in
        ``update_fields``; hooks are triggered by save().
        """
        self.ensure_transition(new_state)
        setattr(self, self.STATUS_FIELD_NAME, new_state)

        if save:
            fields = [self.STATUS_FIELD_NAME]
            if hasattr(self, "updated_at"):
                fields.append("updated_at")
            for name in update_fields or []:
                if name not in fields:
                    fields.append(name)
            self.save(update_fields=fields)
