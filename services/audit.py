"""Audit trail written in the same transaction as the change it describes."""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models_sqlalchemy import AuditLog
from domain.enums import Actor, AuditAction


logger = logging.getLogger(__name__)


def record_audit(
    session: Session,
    action: AuditAction,
    entity_type: str,
    entity_id: Any,
    actor: Actor = Actor.SYSTEM,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit log entry to the session.

    Args:
        session: Session holding the change being audited
        action: Action performed
        entity_type: "reservation" or "table"
        entity_id: ID of affected entity
        actor: Who performed the action
        details: Additional JSON-serializable details

    Returns:
        The pending AuditLog row
    """
    entry = AuditLog(
        action=action.value,
        entity_type=entity_type,
        entity_id=str(entity_id),
        actor=actor.value,
        details=details or {},
    )
    session.add(entry)
    logger.info(f"Audit log: {action.value} for {entity_type} {entity_id} by {actor.value}")
    return entry


def audit_entries(session: Session, entity_type: str, entity_id: Any) -> list:
    """Audit entries for one entity, oldest first."""
    return list(
        session.scalars(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == str(entity_id))
            .order_by(AuditLog.id)
        )
    )
