"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for SLA module.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk_sla.infrastructure.database import Base
from helpdesk_sla.config import SLAStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SlaConfigModel(Base):
    """
    Database model for SlaConfig entity.

    Maps to the 'sla_configs' table. Two partial unique indexes keep at most
    one active config per (tenant, priority, category), with the
    category-less fallback indexed separately because NULLs never collide.
    """
    __tablename__ = "sla_configs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)

    first_response_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    resolution_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    business_hours_start: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")
    business_hours_end: Mapped[str] = mapped_column(String(5), nullable=False, default="18:00")
    business_days: Mapped[List[int]] = mapped_column(JSON, nullable=False, default=lambda: [1, 2, 3, 4, 5])
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="America/Sao_Paulo")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index(
            "uq_sla_configs_active_fallback",
            "tenant_id", "priority",
            unique=True,
            postgresql_where=text("category_id IS NULL AND is_active"),
            sqlite_where=text("category_id IS NULL AND is_active"),
        ),
        Index(
            "uq_sla_configs_active_category",
            "tenant_id", "priority", "category_id",
            unique=True,
            postgresql_where=text("category_id IS NOT NULL AND is_active"),
            sqlite_where=text("category_id IS NOT NULL AND is_active"),
        ),
    )


class SlaStatusModel(Base):
    """
    Database model for SlaStatus entity.

    Maps to the 'sla_status' table; one row per ticket. `sla_config_id` carries
    no foreign key, so deleting a config leaves the row in place.
    """
    __tablename__ = "sla_status"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sla_config_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)

    # Ticket snapshot taken when tracking started
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    category_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ticket_created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    first_response_target_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    resolution_target_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    # First response leg
    first_response_due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    first_response_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    first_response_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SLAStatus.COMPLIANT)
    first_response_time_remaining: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    first_response_time_spent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    first_response_breached_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Resolution leg
    resolution_due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SLAStatus.COMPLIANT)
    resolution_time_remaining: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    resolution_time_spent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    resolution_breached_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class SlaLogModel(Base):
    """
    Database model for SlaLogEntry entity.

    Maps to the 'sla_logs' table. Rows are inserted, never updated.
    """
    __tablename__ = "sla_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    ticket_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    sla_config_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    sla_status_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    action: Mapped[str] = mapped_column(String(20), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    old_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    new_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    response_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    resolution_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # `metadata` is reserved on declarative classes
    log_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
