"""
Running django-fsm transitions with the application error format.

django-fsm raises TransitionNotAllowed for an illegal transition. Services
call apply_transition() instead so the API sees an InvalidStateTransitionError
(409) carrying the current status and the attempted transition.

Usage:
    from payments.state_machines.transitions import apply_transition

    apply_transition(payment, "release", breakdown)
    payment.save()
"""

from __future__ import annotations

from typing import Any

from django.db import models

from django_fsm import TransitionNotAllowed

from payments.exceptions import InvalidStateTransitionError


def apply_transition(instance: models.Model, name: str, *args: Any, **kwargs: Any) -> None:
    """
    Call the transition method ``name`` on ``instance``.

    Does not save - caller must save after calling.

    Raises:
        InvalidStateTransitionError: If the current status does not allow it
    """
    current_status = instance.status
    try:
        getattr(instance, name)(*args, **kwargs)
    except TransitionNotAllowed:
        model_name = instance.__class__.__name__
        raise InvalidStateTransitionError(
            f"Cannot {name} {model_name} {instance.pk} in status '{current_status}'",
            details={
                "id": str(instance.pk),
                "current_status": current_status,
                "transition": name,
            },
        )
