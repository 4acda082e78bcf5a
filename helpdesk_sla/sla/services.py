"""
SLA Sweep
=========

Background job that keeps stored SLA statuses current.

The sweeper:
1. Finds every tenant with an open SLA leg
2. Recalculates that tenant's open legs in its own transaction
3. Sends a Slack notification for every leg that became at_risk or breached
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncContextManager, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_sla.config import Settings
from helpdesk_sla.infrastructure.database import get_session_context
from helpdesk_sla.sla.domain import RecalculationResult
from helpdesk_sla.sla.infrastructure import SQLAlchemySlaStatusRepository, sla_services_for_session
from helpdesk_sla.sla.infrastructure.external import SlackClient, SlackMessage
from helpdesk_sla.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


@dataclass
class SweepSummary:
    tenants: int = 0
    updated: int = 0
    errors: int = 0
    transitions: int = 0
    notifications_sent: int = 0

    def to_dict(self) -> dict:
        return {
            "tenants": self.tenants,
            "updated": self.updated,
            "errors": self.errors,
            "transitions": self.transitions,
            "notifications_sent": self.notifications_sent,
        }


class SLASweeper:
    """
    Recalculates every tenant's open SLA legs and notifies on transitions.

    Notifications are sent after the tenant's transaction commits, so a
    rolled-back recalculation never produces a message.
    """

    def __init__(
        self,
        slack_client: SlackClient,
        settings: Settings,
        session_factory: SessionFactory = get_session_context
    ):
        self._slack_client = slack_client
        self._settings = settings
        self._session_factory = session_factory

    async def run(self, now: Optional[datetime] = None) -> SweepSummary:
        summary = SweepSummary()

        async with self._session_factory() as session:
            tenants = await SQLAlchemySlaStatusRepository(session).list_tenants_with_open_legs()

        with log_latency(logger, "sla_sweep", tenants=len(tenants)):
            for tenant_id in tenants:
                try:
                    result = await self.sweep_tenant(tenant_id, now)
                except Exception:
                    logger.exception("SLA sweep failed for tenant", extra={"tenant_id": tenant_id})
                    summary.errors += 1
                    continue

                summary.tenants += 1
                summary.updated += result.updated
                summary.errors += result.errors
                summary.transitions += len(result.transitions)

                for transition in result.transitions:
                    if await self._slack_client.send_alert(SlackMessage.from_transition(transition)):
                        summary.notifications_sent += 1

        logger.info("SLA sweep complete", extra=summary.to_dict())
        return summary

    async def sweep_tenant(self, tenant_id: str, now: Optional[datetime] = None) -> RecalculationResult:
        async with self._session_factory() as session:
            services = sla_services_for_session(session, self._settings)
            return await services.tracker.recalculate_tenant(tenant_id, now)

    async def run_job(self) -> Any:
        """Scheduler entry point; a failed sweep must not stop later runs."""
        try:
            return await self.run()
        except Exception:
            logger.exception("SLA sweep job failed")
            return None
