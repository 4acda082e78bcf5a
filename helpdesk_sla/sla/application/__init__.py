"""
SLA Application Layer
======================

Application layer for SLA tracking.

Contains:
- Services: configuration store, calculation engine, status tracker, audit log
- Reporting: alert generator and compliance reports
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from helpdesk_sla.sla.application.dto import (
    SlaConfigCreateRequest,
    SlaConfigUpdateRequest,
    SlaStatusUpdateRequest,
    SlaCalculateRequest,
    TicketCreatedRequest,
    SlaConfigResponse,
    SlaStatusResponse,
    SlaStatusDetailsResponse,
    SlaCalculationResponse,
    SlaLogResponse,
    SlaAlertResponse,
    RecalculationResponse,
    ComplianceStatsResponse,
    SlaReportResponse,
    SlaStatisticsResponse,
)
from helpdesk_sla.sla.application.interfaces import (
    ISlaConfigRepository,
    ISlaStatusRepository,
    ISlaLogRepository,
)
from helpdesk_sla.sla.application.services import (
    SlaAuditLogger,
    SlaConfigService,
    SlaCalculationEngine,
    SlaStatusTracker,
    SlaServices,
    build_sla_services,
)
from helpdesk_sla.sla.application.reporting import (
    ComplianceStats,
    SlaAlertGenerator,
    SlaReportService,
)

__all__ = [
    # DTOs
    "SlaConfigCreateRequest",
    "SlaConfigUpdateRequest",
    "SlaStatusUpdateRequest",
    "SlaCalculateRequest",
    "TicketCreatedRequest",
    "SlaConfigResponse",
    "SlaStatusResponse",
    "SlaStatusDetailsResponse",
    "SlaCalculationResponse",
    "SlaLogResponse",
    "SlaAlertResponse",
    "RecalculationResponse",
    "ComplianceStatsResponse",
    "SlaReportResponse",
    "SlaStatisticsResponse",
    # Services
    "SlaAuditLogger",
    "SlaConfigService",
    "SlaCalculationEngine",
    "SlaStatusTracker",
    "SlaAlertGenerator",
    "SlaReportService",
    "ComplianceStats",
    "SlaServices",
    "build_sla_services",
    # Repository Interfaces
    "ISlaConfigRepository",
    "ISlaStatusRepository",
    "ISlaLogRepository",
]
