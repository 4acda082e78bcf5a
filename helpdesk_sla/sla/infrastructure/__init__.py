"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA tracking:
- Models: SQLAlchemy ORM models
- Repositories: Data access layer
- External: Slack notifications and the sweep scheduler
"""

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_sla.config import Settings
from helpdesk_sla.sla.application.services import SlaServices, build_sla_services
from helpdesk_sla.sla.infrastructure.models import SlaConfigModel, SlaStatusModel, SlaLogModel
from helpdesk_sla.sla.infrastructure.repositories import (
    SQLAlchemySlaConfigRepository,
    SQLAlchemySlaStatusRepository,
    SQLAlchemySlaLogRepository,
)


def sla_services_for_session(session: AsyncSession, settings: Settings) -> SlaServices:
    """Wire the SLA services onto one database session."""
    return build_sla_services(
        SQLAlchemySlaConfigRepository(session),
        SQLAlchemySlaStatusRepository(session),
        SQLAlchemySlaLogRepository(session),
        settings,
    )


__all__ = [
    "SlaConfigModel",
    "SlaStatusModel",
    "SlaLogModel",
    "SQLAlchemySlaConfigRepository",
    "SQLAlchemySlaStatusRepository",
    "SQLAlchemySlaLogRepository",
    "sla_services_for_session",
]
