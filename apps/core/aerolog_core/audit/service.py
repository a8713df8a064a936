"""Audit log service with hash chaining."""

import hashlib
import json
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from aerolog_core.models import AuditChainHead, AuditLogEntry
from aerolog_core.utils.time import utcnow

logger = logging.getLogger(__name__)


class AuditLogService:
    """Tamper-evident audit log with hash chaining."""

    def __init__(self, db: Session):
        self.db = db

    def _hash_entry(self, entry_data: dict) -> str:
        """Compute hash of entry data."""
        entry_str = json.dumps(entry_data, sort_keys=True, default=str)
        return hashlib.sha256(entry_str.encode()).hexdigest()

    def _entry_data(
        self,
        operation: str,
        entity_type: str,
        entity_id: Optional[str],
        actor_id: Optional[str],
        before: Optional[dict],
        after: Optional[dict],
        success: bool,
        error: Optional[str],
        previous_hash: Optional[str],
        created_at: datetime,
    ) -> dict:
        return {
            "operation": operation,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "actor_id": actor_id,
            "before": before,
            "after": after,
            "success": success,
            "error": error,
            "previous_hash": previous_hash,
            "timestamp": created_at.isoformat(timespec="microseconds"),
        }

    def _get_last_entry_hash(self) -> Optional[str]:
        last_entry = self.db.query(AuditLogEntry).order_by(AuditLogEntry.id.desc()).first()
        return last_entry.entry_hash if last_entry else None

    def _lock_head(self) -> AuditChainHead:
        """Lock the chain head until commit so concurrent appends link one after another."""
        head = (
            self.db.query(AuditChainHead)
            .filter(AuditChainHead.id == AuditChainHead.HEAD_ID)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if head is None:
            head = AuditChainHead(id=AuditChainHead.HEAD_ID, last_hash=self._get_last_entry_hash())
            self.db.add(head)
            self.db.flush()
        return head

    def record(
        self,
        operation: str,
        entity_type: str,
        entity_id=None,
        actor_id: Optional[str] = None,
        before: Optional[dict] = None,
        after: Optional[dict] = None,
        success: bool = True,
        error: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AuditLogEntry:
        """Append an entry to the audit log. Flushes, does not commit."""
        head = self._lock_head()
        previous_hash = head.last_hash
        created_at = now or utcnow()
        entity_id = str(entity_id) if entity_id is not None else None

        entry_hash = self._hash_entry(
            self._entry_data(
                operation, entity_type, entity_id, actor_id, before, after, success, error,
                previous_hash, created_at,
            )
        )

        entry = AuditLogEntry(
            entry_hash=entry_hash,
            previous_hash=previous_hash,
            operation=operation,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            before_json=before,
            after_json=after,
            success=success,
            error=error,
            created_at=created_at,
        )
        self.db.add(entry)
        self.db.flush()
        head.last_hash = entry_hash
        self.db.flush()

        if not success:
            logger.info(
                f"Audit {operation} failed for {entity_type} {entity_id}: {error}",
                extra={"operation": operation, "actor_id": actor_id},
            )
        return entry

    def verify_chain(self) -> tuple[bool, Optional[str]]:
        """Verify hash chain integrity. Returns (is_valid, error)."""
        entries = self.db.query(AuditLogEntry).order_by(AuditLogEntry.id.asc()).all()

        previous_hash = None
        for entry in entries:
            if entry.previous_hash != previous_hash:
                return False, f"Entry {entry.id} does not link to its predecessor"

            computed_hash = self._hash_entry(
                self._entry_data(
                    entry.operation,
                    entry.entity_type,
                    entry.entity_id,
                    entry.actor_id,
                    entry.before_json,
                    entry.after_json,
                    entry.success,
                    entry.error,
                    entry.previous_hash,
                    entry.created_at,
                )
            )
            if computed_hash != entry.entry_hash:
                return False, f"Entry {entry.id} hash mismatch"

            previous_hash = entry.entry_hash

        return True, None

    def find(
        self,
        operation: Optional[str] = None,
        since: Optional[datetime] = None,
        entity_id=None,
    ) -> list[AuditLogEntry]:
        """Entries filtered by operation, creation time and entity id, oldest first."""
        query = self.db.query(AuditLogEntry)
        if operation is not None:
            query = query.filter(AuditLogEntry.operation == operation)
        if since is not None:
            query = query.filter(AuditLogEntry.created_at >= since)
        if entity_id is not None:
            query = query.filter(AuditLogEntry.entity_id == str(entity_id))
        return query.order_by(AuditLogEntry.id.asc()).all()
