# WORKFLOW: Append-only audit sink backed by the query_audit_log table.
# Used by: Audit recorder
# Functions:
# 1. append() - Persist one audit entry
# 2. list_recent() - Newest-first listing for audit views
#
# Entries are never updated or deleted here.

from typing import List
import logging

from sqlalchemy.orm import Session

from db.models import QueryAuditEntry

logger = logging.getLogger(__name__)


class AuditStore:
    """SQLAlchemy audit sink."""

    def __init__(self, db: Session):
        self.db = db

    def append(self, entry: QueryAuditEntry) -> QueryAuditEntry:
        try:
            self.db.add(entry)
            self.db.commit()
            self.db.refresh(entry)
            return entry
        except Exception:
            self.db.rollback()
            raise

    def list_recent(self, limit: int = 50) -> List[QueryAuditEntry]:
        return self.db.query(QueryAuditEntry).order_by(
            QueryAuditEntry.created_at.desc(), QueryAuditEntry.id.desc()
        ).limit(limit).all()


# Factory function
def create_audit_store(db: Session) -> AuditStore:
    """Create audit store instance."""
    return AuditStore(db)
