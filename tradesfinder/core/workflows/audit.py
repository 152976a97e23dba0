import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tradesfinder.common.logging import get_logger
from tradesfinder.core.workflows.machine import Actor, Workflow
from tradesfinder.db.models.audit import AuditLog

logger = get_logger("workflows.audit")


async def record_transition(
    db: AsyncSession,
    entity_type: str,
    entity_id: uuid.UUID,
    action: str,
    actor_id: uuid.UUID | None,
    from_status: str,
    to_status: str,
    **extra: Any,
) -> AuditLog:
    entry = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        diff={"from": from_status, "to": to_status, **extra},
    )
    db.add(entry)
    logger.info("%s %s: %s -> %s (%s)", entity_type, entity_id, from_status, to_status, action)
    return entry


async def apply_transition(
    db: AsyncSession,
    workflow: Workflow,
    obj: Any,
    action: str,
    actor: Actor,
    actor_id: uuid.UUID | None,
    **extra: Any,
) -> str:
    """Move ``obj.status`` through ``workflow`` and write the audit row.

    Returns the previous status.
    """
    previous = obj.status
    obj.status = workflow.fire(previous, action, actor)
    await record_transition(db, workflow.entity, obj.id, action, actor_id, previous, obj.status, **extra)
    return previous
