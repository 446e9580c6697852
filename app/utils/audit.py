import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.archive import Archive
from app.models.audit_log import AuditLog, LogSeverity

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    title: str,
    description: str = "",
    severity: LogSeverity = LogSeverity.INFO,
    meta: Optional[dict] = None,
    user_id: Optional[int] = None,
) -> Optional[AuditLog]:
    """Append an audit entry. Never raises: a failed write is rolled back and logged."""
    try:
        entry = AuditLog(
            title=title,
            description=description,
            severity=severity,
            meta=meta or {},
            user_id=user_id,
        )
        db.add(entry)
        db.commit()
        return entry
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to commit audit log '{title}': {e}")
        return None


def save_to_archive(
    db: Session,
    data: Any,
    original_id: Optional[int],
    source_collection: str,
    reason: str,
    user_id: Optional[int] = None,
) -> Archive:
    """Stage a snapshot in the current transaction; it commits with the deletion it records."""
    archive = Archive(
        data=data,
        original_id=original_id,
        source_collection=source_collection,
        reason=reason,
        archived_by=user_id,
    )
    db.add(archive)
    return archive
