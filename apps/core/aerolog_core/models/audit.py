"""Audit log models."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text

from aerolog_core.db.base import Base


class AuditLogEntry(Base):
    """Append-only audit log with hash chaining."""

    __tablename__ = "audit_log_entries"

    id = Column(Integer, primary_key=True, index=True)
    entry_hash = Column(String(64), nullable=False, unique=True, index=True)
    # NULL for first entry; unique so two appends cannot share a predecessor
    previous_hash = Column(String(64), nullable=True, unique=True)
    operation = Column(String(100), nullable=False, index=True)  # sign_pilot, regulator_sync, etc.
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(String(100), nullable=True, index=True)
    actor_id = Column(String(100), nullable=True)
    before_json = Column(JSON, nullable=True)
    after_json = Column(JSON, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class AuditChainHead(Base):
    """Single row holding the hash of the latest entry; locked by every append."""

    __tablename__ = "audit_chain_head"

    HEAD_ID = 1

    id = Column(Integer, primary_key=True)
    last_hash = Column(String(64), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
