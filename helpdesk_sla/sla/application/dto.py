"""
SLA Application DTOs
=====================

Data Transfer Objects for SLA API layer.

These Pydantic models handle serialization/deserialization and validation
for API requests and responses. JSON fields are camelCase; snake_case is
accepted on input as well.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from helpdesk_sla.sla.domain.value_objects import parse_clock, validate_business_days, validate_timezone


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
SLAStatusStr = Literal["compliant", "at_risk", "breached"]
LogActionStr = Literal["created", "updated", "deleted", "violation", "resolution"]
AlertTypeStr = Literal[
    "first_response_warning", "resolution_warning",
    "first_response_breach", "resolution_breach"
]
SLALegStr = Literal["first_response", "resolution"]


class CamelModel(BaseModel):
    """Base for every SLA DTO: camelCase on the wire, attributes on the way in."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _check_clock(value: Optional[str]) -> Optional[str]:
    if value is not None:
        parse_clock(value)
    return value


def _check_days(value: Optional[List[int]]) -> Optional[List[int]]:
    if value is not None:
        return list(validate_business_days(value))
    return value


def _check_timezone(value: Optional[str]) -> Optional[str]:
    if value is not None:
        validate_timezone(value)
    return value


def _check_window(start: Optional[str], end: Optional[str]) -> None:
    if start is not None and end is not None and parse_clock(end) <= parse_clock(start):
        raise ValueError("businessHoursEnd must be after businessHoursStart")


# ========== Request DTOs ==========

class SlaConfigCreateRequest(CamelModel):
    """Body of POST /sla/configs."""
    category_id: Optional[str] = Field(None, description="Category this config is limited to; omit for the tenant-wide fallback")
    priority: PriorityStr = Field(..., description="Ticket priority")
    first_response_minutes: int = Field(..., gt=0, description="Minutes allowed until first response")
    resolution_minutes: int = Field(..., gt=0, description="Minutes allowed until resolution")
    business_hours_start: Optional[str] = Field(None, description="HH:MM, default 09:00")
    business_hours_end: Optional[str] = Field(None, description="HH:MM, default 18:00")
    business_days: Optional[List[int]] = Field(None, description="ISO weekdays, default Monday-Friday")
    timezone: Optional[str] = Field(None, description="IANA timezone, default America/Sao_Paulo")
    is_active: bool = Field(True, description="Whether the config is applied to new tickets")

    @field_validator("business_hours_start", "business_hours_end")
    @classmethod
    def validate_clock(cls, v: Optional[str]) -> Optional[str]:
        return _check_clock(v)

    @field_validator("business_days")
    @classmethod
    def validate_days(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        return _check_days(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _check_timezone(v)

    @model_validator(mode="after")
    def validate_window(self) -> "SlaConfigCreateRequest":
        _check_window(self.business_hours_start, self.business_hours_end)
        return self


class SlaConfigUpdateRequest(CamelModel):
    """Body of PATCH /sla/configs/{id}. Priority and category cannot change."""
    model_config = ConfigDict(extra="forbid")

    first_response_minutes: Optional[int] = Field(None, gt=0)
    resolution_minutes: Optional[int] = Field(None, gt=0)
    business_hours_start: Optional[str] = None
    business_hours_end: Optional[str] = None
    business_days: Optional[List[int]] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("business_hours_start", "business_hours_end")
    @classmethod
    def validate_clock(cls, v: Optional[str]) -> Optional[str]:
        return _check_clock(v)

    @field_validator("business_days")
    @classmethod
    def validate_days(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        return _check_days(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _check_timezone(v)

    @model_validator(mode="after")
    def validate_window(self) -> "SlaConfigUpdateRequest":
        _check_window(self.business_hours_start, self.business_hours_end)
        return self

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually sent, keyed by attribute name."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class SlaStatusUpdateRequest(CamelModel):
    """Body of PATCH /sla/status (ticket lifecycle webhook)."""
    ticket_id: str = Field(..., min_length=1)
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class SlaCalculateRequest(CamelModel):
    """Body of POST /sla/calculate."""
    ticket_id: str = Field(..., min_length=1)
    priority: PriorityStr
    category_id: Optional[str] = None
    created_at: datetime


class TicketCreatedRequest(CamelModel):
    """Body of POST /sla/tickets, sent when a ticket is created."""
    ticket_id: str = Field(..., min_length=1)
    priority: PriorityStr
    category_id: Optional[str] = None
    created_at: datetime


# ========== Response DTOs ==========

class SlaConfigResponse(CamelModel):
    id: str
    tenant_id: str
    category_id: Optional[str] = None
    priority: PriorityStr
    first_response_minutes: int
    resolution_minutes: int
    business_hours_start: str
    business_hours_end: str
    business_days: List[int]
    timezone: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SlaStatusResponse(CamelModel):
    id: str
    ticket_id: str
    sla_config_id: Optional[str] = None
    priority: PriorityStr
    category_id: Optional[str] = None
    ticket_created_at: datetime
    first_response_target_minutes: int
    resolution_target_minutes: int
    first_response_due_at: datetime
    resolution_due_at: datetime
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    first_response_status: SLAStatusStr
    resolution_status: SLAStatusStr
    first_response_time_remaining: Optional[int] = None
    resolution_time_remaining: Optional[int] = None
    first_response_time_spent: Optional[int] = None
    resolution_time_spent: Optional[int] = None
    first_response_breached_at: Optional[datetime] = None
    resolution_breached_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SlaStatusDetailsResponse(CamelModel):
    status: SlaStatusResponse
    config: Optional[SlaConfigResponse] = None


class SlaCalculationResponse(CamelModel):
    ticket_id: str
    sla_config_id: Optional[str] = None
    first_response_due_at: datetime
    resolution_due_at: datetime
    first_response_status: SLAStatusStr
    resolution_status: SLAStatusStr
    first_response_time_remaining: int
    resolution_time_remaining: int
    is_business_hours: bool


class SlaLogResponse(CamelModel):
    id: str
    tenant_id: str
    ticket_id: Optional[str] = None
    sla_config_id: Optional[str] = None
    sla_status_id: Optional[str] = None
    action: LogActionStr
    event_type: str
    description: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    response_time: Optional[int] = None
    resolution_time: Optional[int] = None
    user_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class SlaAlertResponse(CamelModel):
    id: str
    ticket_id: str
    type: AlertTypeStr
    priority: PriorityStr
    percentage: int
    time_remaining: int
    due_at: datetime
    message: str
    created_at: datetime


class LegTransitionResponse(CamelModel):
    ticket_id: str
    leg: SLALegStr
    previous_status: SLAStatusStr
    status: SLAStatusStr
    due_at: datetime
    time_remaining: int


class RecalculationResponse(CamelModel):
    updated: int
    errors: int
    transitions: List[LegTransitionResponse] = Field(default_factory=list)


class ComplianceStatsResponse(CamelModel):
    total: int
    compliant: int
    at_risk: int
    breached: int
    compliance_rate: float


class ReportPeriod(CamelModel):
    start: datetime
    end: datetime


class ReportSummary(CamelModel):
    total_tickets: int
    compliant_tickets: int
    at_risk_tickets: int
    breached_tickets: int
    compliance_rate: float


class PriorityBreakdownResponse(CamelModel):
    priority: PriorityStr
    total: int
    compliant: int
    at_risk: int
    breached: int
    rate: float


class CategoryBreakdownResponse(CamelModel):
    category_id: Optional[str] = None
    total: int
    compliant: int
    at_risk: int
    breached: int
    rate: float


class TrendPointResponse(CamelModel):
    date: date
    total: int
    compliant: int
    at_risk: int
    breached: int
    rate: float


class SlaReportResponse(CamelModel):
    period: ReportPeriod
    summary: ReportSummary
    by_priority: List[PriorityBreakdownResponse]
    by_category: List[CategoryBreakdownResponse]
    trends: List[TrendPointResponse]

    @classmethod
    def from_report(cls, report: Any) -> "SlaReportResponse":
        def counts(stats) -> Dict[str, Any]:
            return {
                "total": stats.total,
                "compliant": stats.compliant,
                "at_risk": stats.at_risk,
                "breached": stats.breached,
                "rate": stats.compliance_rate,
            }

        summary = report.summary
        return cls(
            period=ReportPeriod(start=report.start, end=report.end),
            summary=ReportSummary(
                total_tickets=summary.total,
                compliant_tickets=summary.compliant,
                at_risk_tickets=summary.at_risk,
                breached_tickets=summary.breached,
                compliance_rate=summary.compliance_rate,
            ),
            by_priority=[
                PriorityBreakdownResponse(priority=row.priority, **counts(row.stats))
                for row in report.by_priority
            ],
            by_category=[
                CategoryBreakdownResponse(category_id=row.category_id, **counts(row.stats))
                for row in report.by_category
            ],
            trends=[
                TrendPointResponse(date=point.date, **counts(point.stats))
                for point in report.trends
            ],
        )


class ConfigOverview(CamelModel):
    total: int
    active: int


class AlertOverview(CamelModel):
    total: int
    warnings: int
    breaches: int


class PeriodComplianceResponse(CamelModel):
    days: int
    total: int
    compliant: int
    at_risk: int
    breached: int
    compliance_rate: float


class SlaStatisticsResponse(CamelModel):
    configs: ConfigOverview
    compliance: ComplianceStatsResponse
    open_tickets: int
    alerts: AlertOverview
    trends: List[PeriodComplianceResponse]

    @classmethod
    def from_statistics(cls, stats: Any) -> "SlaStatisticsResponse":
        return cls(
            configs=ConfigOverview(total=stats.total_configs, active=stats.active_configs),
            compliance=ComplianceStatsResponse.model_validate(stats.compliance),
            open_tickets=stats.open_tickets,
            alerts=AlertOverview(
                total=stats.warning_alerts + stats.breach_alerts,
                warnings=stats.warning_alerts,
                breaches=stats.breach_alerts,
            ),
            trends=[
                PeriodComplianceResponse(
                    days=period.days,
                    total=period.stats.total,
                    compliant=period.stats.compliant,
                    at_risk=period.stats.at_risk,
                    breached=period.stats.breached,
                    compliance_rate=period.stats.compliance_rate,
                )
                for period in stats.trends
            ],
        )
