"""
Audit logging service for admin changes.

Audit writes are best-effort: a failure is logged and never bubbles up to
the request that triggered it.
"""

import logging
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, desc
from rental_admin.app.models.audit_log import AuditLog

logger = logging.getLogger("rental_admin.audit")


class AuditAction:
    """Standardized audit action constants."""
    CREATE = "create"
    UPDATE = "update"


class AuditEntity:
    """Entity type constants."""
    CUSTOMER = "customer"
    VEHICLE = "vehicle"
    RESERVATION = "reservation"


async def record_audit(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Optional[Any],
    diff: Optional[Dict[str, Any]] = None,
    actor_id: Optional[str] = None
) -> Optional[AuditLog]:
    """
    Append an entry to the audit log.

    Args:
        db: Database session
        action: AuditAction constant
        entity_type: AuditEntity constant
        entity_id: ID of the changed row
        diff: Request body for creates, {"old": ..., "new": ...} for updates
        actor_id: Who made the change (None for the shared admin token)

    Returns:
        Created AuditLog, or None if the write failed
    """
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        diff=diff
    )

    try:
        db.add(entry)
        await db.commit()
        await db.refresh(entry)
    except SQLAlchemyError as exc:
        logger.error("Failed to log audit %s %s:%s: %s", action, entity_type, entity_id, exc)
        await db.rollback()
        return None

    return entry


async def get_audit_trail(
    db: AsyncSession,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Args:
        db: Database session
        entity_type: Filter by entity type
        entity_id: Filter by entity ID
        limit: Maximum number of records to return

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if entity_type:
        query = query.where(AuditLog.entity_type == entity_type)

    if entity_id is not None:
        query = query.where(AuditLog.entity_id == str(entity_id))

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
