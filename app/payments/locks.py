"""
Row locking helpers for payment operations.

Optimistic locking (check_version):
    - Version-based conflict detection for records carrying VersionedMixin
    - The row is locked with select_for_update once the version matches
    - Use for: admin actions that were decided on a snapshot the client read

Usage:
    from payments.locks import check_version, lock_for_update

    with transaction.atomic():
        payment = check_version(Payment, payment_id, expected_version=3)
        payment.release(breakdown)
        payment.save()  # Version auto-increments

    with transaction.atomic():
        payment = lock_for_update(Payment, payment_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from django.db import models, transaction

from core.exceptions import NotFoundError
from payments.exceptions import StaleRecordError

if TYPE_CHECKING:
    from typing import Any

# Type variable for model classes
T = TypeVar("T", bound=models.Model)


def _not_found(model_class: type[models.Model], pk: Any) -> NotFoundError:
    model_name = model_class.__name__
    return NotFoundError(
        f"{model_name} {pk} not found",
        error_code=f"{model_name.upper()}_NOT_FOUND",
        details={"pk": str(pk)},
    )


def lock_for_update(
    model_class: type[T],
    pk: Any,
    expected_version: int | None = None,
) -> T:
    """
    Lock a record for update, raising NotFoundError when it is missing.

    With expected_version the version is checked as well (see check_version).
    Must be called inside transaction.atomic(); the lock is held until the
    outer transaction ends.
    """
    if expected_version is not None:
        return check_version(model_class, pk, expected_version)
    instance = model_class.objects.select_for_update().filter(pk=pk).first()
    if instance is None:
        raise _not_found(model_class, pk)
    return instance


def check_version(
    model_class: type[T],
    pk: Any,
    expected_version: int,
) -> T:
    """
    Atomically check version and lock a record for update.

    Combines optimistic locking (version check) with pessimistic locking
    (select_for_update) for the actual update operation.

    Args:
        model_class: Django model class (must have 'version' field)
        pk: Primary key of the record
        expected_version: Version the caller expects

    Returns:
        The locked model instance (within a transaction)

    Raises:
        StaleRecordError: If version doesn't match (concurrent modification)
        NotFoundError: If record doesn't exist

    Note:
        Call within a transaction context so the lock outlives this function.
    """
    with transaction.atomic():
        instance = (
            model_class.objects.select_for_update()
            .filter(pk=pk, version=expected_version)
            .first()
        )

        if instance is None:
            current_version = (
                model_class.objects.filter(pk=pk)
                .values_list("version", flat=True)
                .first()
            )
            if current_version is None:
                raise _not_found(model_class, pk)

            model_name = model_class.__name__
            raise StaleRecordError(
                f"{model_name} {pk} has been modified "
                f"(expected version {expected_version}, current {current_version})",
                details={
                    "pk": str(pk),
                    "expected_version": expected_version,
                    "current_version": current_version,
                },
            )

        return instance


__all__ = [
    "check_version",
    "lock_for_update",
]
