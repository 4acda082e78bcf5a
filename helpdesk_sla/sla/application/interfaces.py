"""
Repository Interfaces
=====================

Narrow, per-entity persistence contracts the SLA services depend on.
The SQLAlchemy implementations live in `sla.infrastructure.repositories`.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from helpdesk_sla.sla.domain import SlaConfig, SlaLogEntry, SlaStatus


class ISlaConfigRepository(ABC):
    """Interface for SLA config data access."""

    @abstractmethod
    async def get(self, config_id: str, tenant_id: str) -> Optional[SlaConfig]:
        """Get a config owned by the tenant."""

    @abstractmethod
    async def get_by_id(self, config_id: str) -> Optional[SlaConfig]:
        """Get a config regardless of tenant (internal lookups only)."""

    @abstractmethod
    async def list(
        self,
        tenant_id: str,
        category_id: Optional[str] = None,
        priority: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[SlaConfig]:
        """List the tenant's configs, newest first."""

    @abstractmethod
    async def find_active(
        self,
        tenant_id: str,
        priority: str,
        category_id: Optional[str]
    ) -> Optional[SlaConfig]:
        """Active config for the exact triple; None category means the fallback."""

    @abstractmethod
    async def create(self, config: SlaConfig) -> SlaConfig:
        """Persist a new config."""

    @abstractmethod
    async def update(self, config: SlaConfig) -> SlaConfig:
        """Persist changes to an existing config."""

    @abstractmethod
    async def delete(self, config_id: str, tenant_id: str) -> bool:
        """Delete a config; False when nothing matched."""


class ISlaStatusRepository(ABC):
    """Interface for per-ticket SLA status data access."""

    @abstractmethod
    async def get_by_ticket(self, ticket_id: str, tenant_id: Optional[str] = None) -> Optional[SlaStatus]:
        """Get the status of a ticket, optionally scoped to a tenant."""

    @abstractmethod
    async def create(self, status: SlaStatus) -> SlaStatus:
        """Persist a new status row."""

    @abstractmethod
    async def list(
        self,
        tenant_id: str,
        due_from: Optional[datetime] = None,
        due_to: Optional[datetime] = None,
        overdue_at: Optional[datetime] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        open_only: bool = False
    ) -> List[SlaStatus]:
        """
        List a tenant's statuses, most recently updated first.

        due_from/due_to keep rows with either due date inside the window;
        overdue_at keeps rows with an open leg due before that instant;
        created_from/created_to bound the ticket creation time.
        """

    @abstractmethod
    async def list_tenants_with_open_legs(self) -> List[str]:
        """Tenant ids that still have at least one open leg."""

    @abstractmethod
    async def record_completion(
        self,
        status_id: str,
        leg: str,
        completed_at: datetime,
        time_spent: int,
        status: str,
        breached_at: Optional[datetime]
    ) -> bool:
        """
        Close a leg if and only if it is still open.

        Runs as one conditional update; returns False when another writer
        closed the leg first.
        """

    @abstractmethod
    async def refresh_leg(
        self,
        status_id: str,
        leg: str,
        status: str,
        time_remaining: int,
        breached_at: Optional[datetime]
    ) -> bool:
        """Store a recomputed status for a leg that is still open."""


class ISlaLogRepository(ABC):
    """Interface for the append-only SLA audit trail."""

    @abstractmethod
    async def append(self, entry: SlaLogEntry) -> SlaLogEntry:
        """Append an entry. There is no update or delete."""

    @abstractmethod
    async def list(
        self,
        tenant_id: str,
        ticket_id: Optional[str] = None,
        action: Optional[str] = None,
        event_type: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 500
    ) -> List[SlaLogEntry]:
        """List entries, newest first."""
