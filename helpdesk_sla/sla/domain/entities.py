"""
SLA Domain Entities
====================

Pure Python domain entities for SLA tracking.

These entities hold state and the rules that only need that state; anything
touching storage lives in the application and infrastructure layers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from helpdesk_sla.config import SLALeg, SLAStatus
from helpdesk_sla.sla.domain.value_objects import BusinessHours, ensure_utc

_STATUS_SEVERITY = {
    SLAStatus.COMPLIANT: 0,
    SLAStatus.AT_RISK: 1,
    SLAStatus.BREACHED: 2,
}


def worst_status(*statuses: str) -> str:
    """The most severe of the given leg statuses."""
    return max(statuses, key=lambda s: _STATUS_SEVERITY.get(s, 0))


@dataclass(frozen=True)
class LegFields:
    """Attribute names holding one leg's state on a status row."""
    completed_at: str
    due_at: str
    status: str
    time_remaining: str
    time_spent: str
    breached_at: str
    target_minutes: str


LEG_FIELDS: Dict[str, LegFields] = {
    SLALeg.FIRST_RESPONSE: LegFields(
        completed_at="first_response_at",
        due_at="first_response_due_at",
        status="first_response_status",
        time_remaining="first_response_time_remaining",
        time_spent="first_response_time_spent",
        breached_at="first_response_breached_at",
        target_minutes="first_response_target_minutes",
    ),
    SLALeg.RESOLUTION: LegFields(
        completed_at="resolved_at",
        due_at="resolution_due_at",
        status="resolution_status",
        time_remaining="resolution_time_remaining",
        time_spent="resolution_time_spent",
        breached_at="resolution_breached_at",
        target_minutes="resolution_target_minutes",
    ),
}


@dataclass
class TicketSnapshot:
    """The ticket attributes SLA tracking needs; tickets are owned elsewhere."""
    id: str
    tenant_id: str
    priority: str
    created_at: datetime
    category_id: Optional[str] = None

    def __post_init__(self):
        self.created_at = ensure_utc(self.created_at)


@dataclass
class SlaConfig:
    """
    Per-tenant SLA targets for a priority, optionally narrowed to a category.

    A config with no category is the tenant-wide fallback for its priority.
    """

    tenant_id: str
    priority: str
    first_response_minutes: int
    resolution_minutes: int
    category_id: Optional[str] = None
    business_hours_start: str = "09:00"
    business_hours_end: str = "18:00"
    business_days: List[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])
    timezone: str = "America/Sao_Paulo"
    is_active: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    UPDATABLE_FIELDS = (
        "first_response_minutes",
        "resolution_minutes",
        "business_hours_start",
        "business_hours_end",
        "business_days",
        "timezone",
        "is_active",
    )

    @property
    def business_hours(self) -> BusinessHours:
        return BusinessHours.from_strings(
            self.business_hours_start,
            self.business_hours_end,
            self.business_days,
            self.timezone,
        )

    def target_minutes(self, leg: str) -> int:
        if leg == SLALeg.FIRST_RESPONSE:
            return self.first_response_minutes
        return self.resolution_minutes

    def validate(self) -> None:
        """Raise ValueError when the targets or calendar are unusable."""
        if self.first_response_minutes <= 0:
            raise ValueError("first_response_minutes must be positive")
        if self.resolution_minutes <= 0:
            raise ValueError("resolution_minutes must be positive")
        # Constructing the value object validates hours, days and timezone
        self.business_hours

    def snapshot(self) -> Dict[str, Any]:
        """Scalar view of the config for audit old/new values."""
        return {
            "id": self.id,
            "priority": self.priority,
            "category_id": self.category_id,
            "first_response_minutes": self.first_response_minutes,
            "resolution_minutes": self.resolution_minutes,
            "business_hours_start": self.business_hours_start,
            "business_hours_end": self.business_hours_end,
            "business_days": ",".join(str(d) for d in self.business_days),
            "timezone": self.timezone,
            "is_active": self.is_active,
        }


@dataclass
class SlaStatus:
    """
    Per-ticket SLA state.

    Each leg (first response, resolution) carries its own due date, status,
    remaining minutes and breach time. The completion timestamp of a leg is
    written once and never changes afterwards.
    """

    ticket_id: str
    tenant_id: str
    priority: str
    ticket_created_at: datetime
    first_response_target_minutes: int
    resolution_target_minutes: int
    first_response_due_at: datetime
    resolution_due_at: datetime
    sla_config_id: Optional[str] = None
    category_id: Optional[str] = None

    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    first_response_status: str = SLAStatus.COMPLIANT
    resolution_status: str = SLAStatus.COMPLIANT
    first_response_time_remaining: Optional[int] = None
    resolution_time_remaining: Optional[int] = None
    first_response_time_spent: Optional[int] = None
    resolution_time_spent: Optional[int] = None
    first_response_breached_at: Optional[datetime] = None
    resolution_breached_at: Optional[datetime] = None

    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        for name in (
            "ticket_created_at", "first_response_due_at", "resolution_due_at",
            "first_response_at", "resolved_at",
            "first_response_breached_at", "resolution_breached_at",
            "created_at", "updated_at",
        ):
            setattr(self, name, ensure_utc(getattr(self, name)))

    def get(self, leg: str, attribute: str) -> Any:
        return getattr(self, getattr(LEG_FIELDS[leg], attribute))

    def set(self, leg: str, attribute: str, value: Any) -> None:
        setattr(self, getattr(LEG_FIELDS[leg], attribute), value)

    def is_leg_open(self, leg: str) -> bool:
        return self.get(leg, "completed_at") is None

    @property
    def is_open(self) -> bool:
        """True while either leg is still running."""
        return self.first_response_at is None or self.resolved_at is None

    @property
    def overall_status(self) -> str:
        return worst_status(self.first_response_status, self.resolution_status)


@dataclass
class SlaLogEntry:
    """Append-only audit record of an SLA event."""
    tenant_id: str
    action: str
    event_type: str
    description: Optional[str] = None
    ticket_id: Optional[str] = None
    sla_config_id: Optional[str] = None
    sla_status_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    response_time: Optional[int] = None
    resolution_time: Optional[int] = None
    user_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class SlaCalculation:
    """Result of evaluating a ticket against a config at one instant."""
    ticket_id: str
    sla_config_id: Optional[str]
    first_response_minutes: int
    resolution_minutes: int
    first_response_due_at: datetime
    resolution_due_at: datetime
    first_response_status: str
    resolution_status: str
    first_response_time_remaining: int
    resolution_time_remaining: int
    is_business_hours: bool


@dataclass
class SlaAlert:
    """A derived, unsaved warning or breach notice for one leg."""
    id: str
    ticket_id: str
    type: str
    priority: str
    percentage: int
    time_remaining: int
    due_at: datetime
    message: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "type": self.type,
            "priority": self.priority,
            "percentage": self.percentage,
            "time_remaining": self.time_remaining,
            "due_at": self.due_at.isoformat(),
            "message": self.message,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class LegTransition:
    """A leg whose stored status changed during a recalculation."""
    ticket_id: str
    tenant_id: str
    leg: str
    previous_status: str
    status: str
    priority: str
    due_at: datetime
    time_remaining: int


@dataclass
class RecalculationResult:
    """Outcome of a tenant-wide recalculation."""
    updated: int = 0
    errors: int = 0
    transitions: List[LegTransition] = field(default_factory=list)
