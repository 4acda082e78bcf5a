"""
SLA Domain Layer
================

Domain layer for SLA tracking.

Contains:
- Entities: SlaConfig, SlaStatus, SlaLogEntry, SlaAlert and friends
- Value Objects: BusinessHours and the due-date calendars
- Domain Services: Stateless SLA arithmetic (SLACalculator)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from helpdesk_sla.sla.domain.entities import (
    LEG_FIELDS,
    LegTransition,
    RecalculationResult,
    SlaAlert,
    SlaCalculation,
    SlaConfig,
    SlaLogEntry,
    SlaStatus,
    TicketSnapshot,
    worst_status,
)
from helpdesk_sla.sla.domain.value_objects import (
    BusinessHours,
    BusinessHoursCalendar,
    LinearCalendar,
    SLACalculator,
    calendar_for,
    ensure_utc,
    utcnow,
)

__all__ = [
    # Entities
    "TicketSnapshot",
    "SlaConfig",
    "SlaStatus",
    "SlaLogEntry",
    "SlaCalculation",
    "SlaAlert",
    "LegTransition",
    "RecalculationResult",
    "LEG_FIELDS",
    "worst_status",
    # Value Objects & Services
    "BusinessHours",
    "LinearCalendar",
    "BusinessHoursCalendar",
    "calendar_for",
    "SLACalculator",
    "ensure_utc",
    "utcnow",
]
