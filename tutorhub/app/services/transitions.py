"""Compare-and-swap status writes.

A status change is an UPDATE guarded by the status and version the caller
read. If another request committed first the guard matches no row and the
caller gets ConcurrentModificationError instead of silently overwriting.
"""

import logging
from enum import StrEnum

from sqlalchemy.orm import Session

from tutorhub.app.core.exceptions import ConcurrentModificationError
from tutorhub.app.domain.status import ensure_transition

logger = logging.getLogger(__name__)


def apply_transition(db: Session, instance, target: StrEnum, **changes) -> bool:
    """Move ``instance`` to ``target`` and write ``changes`` alongside.

    Returns False when the instance is already in ``target`` (nothing is
    written), True after a successful write.
    """
    model = type(instance)
    entity = model.__name__
    if not ensure_transition(entity, instance.status, target):
        return False

    values = {"status": target.value, "version": model.version + 1, **changes}
    updated = (
        db.query(model)
        .filter(
            model.id == instance.id,
            model.status == instance.status,
            model.version == instance.version,
        )
        .update(values, synchronize_session=False)
    )
    if updated != 1:
        db.rollback()
        raise ConcurrentModificationError(f"{entity} {instance.id} was modified concurrently")
    logger.info("%s %s: %s -> %s", entity, instance.id, instance.status, target.value)
    db.refresh(instance)
    return True
