# core/domain/hooks.py
from __future__ import annotations


def on_lifecycle(event_name: str):
    """
    Mark a model method as a lifecycle hook ("created" or "updated").

    The hook runs after save() once the transaction commits.
    """

    def decorator(func):
        setattr(func, "__lifecycle_event__", event_name)
        return func

    return decorator


def on_transition(from_state=None, to_state=None, field_name: str = "status"):
    """
    Mark a model method as a state transition hook.

    ``None`` on either side matches any state. The hook is called as
    ``method(old_state, new_state)``:

        class Batch(StatefulDomainModel):
            @on_transition(to_state=Status.RELEASED)
            def _on_released(self, old, new):
                self.emit(BatchReleased(batch_id=self.pk, batch_code=self.batch_code))
    """

    def decorator(func):
        setattr(func, "__transition__", (field_name, from_state, to_state))
        return func

    return decorator
