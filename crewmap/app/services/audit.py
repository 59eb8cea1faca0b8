"""
Audit logging service for crew lifecycle events.

Rows are added to the caller's session so the event commits (or rolls
back) together with the change it describes.
"""

from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from crewmap.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    CREW_CREATED = "CREW_CREATED"
    DRIVER_JOINED = "DRIVER_JOINED"
    DRIVER_DEACTIVATED = "DRIVER_DEACTIVATED"


async def log_event(
    db: AsyncSession,
    action: str,
    crew_id: Optional[str] = None,
    driver_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record a crew lifecycle event.

    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        crew_id: Crew the event concerns
        driver_id: Driver the event concerns
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        action=action,
        crew_id=crew_id,
        driver_id=driver_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_crew_events(db: AsyncSession, crew_id: str, limit: int = 100) -> List[AuditLog]:
    """Most recent events for a crew, newest first."""
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.crew_id == crew_id)
        .order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
        .limit(limit)
    )
    return list(result.scalars().all())
