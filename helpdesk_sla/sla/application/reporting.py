"""
SLA Alerts and Reports
======================

Read-only views derived from the tracked statuses: the transient alert
list and the compliance roll-ups. Nothing here is persisted.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from helpdesk_sla.config import AlertType, Priority, SLALeg, SLAStatus, VALID_PRIORITIES, VALID_SLA_LEGS
from helpdesk_sla.sla.application.services import SlaConfigService, SlaStatusTracker, leg_label
from helpdesk_sla.sla.domain import SLACalculator, SlaAlert, SlaStatus, ensure_utc, utcnow

_ALERT_ID_PREFIX = {
    SLALeg.FIRST_RESPONSE: "fr",
    SLALeg.RESOLUTION: "res",
}

STATISTICS_TREND_DAYS = (1, 7, 30)


@dataclass
class ComplianceStats:
    total: int = 0
    compliant: int = 0
    at_risk: int = 0
    breached: int = 0

    @property
    def compliance_rate(self) -> float:
        return SLACalculator.compliance_rate(self.compliant, self.total)

    def add(self, status: SlaStatus) -> None:
        """Count a ticket under its worst leg."""
        self.total += 1
        overall = status.overall_status
        if overall == SLAStatus.BREACHED:
            self.breached += 1
        elif overall == SLAStatus.AT_RISK:
            self.at_risk += 1
        else:
            self.compliant += 1

    @classmethod
    def of(cls, statuses: Iterable[SlaStatus]) -> "ComplianceStats":
        stats = cls()
        for status in statuses:
            stats.add(status)
        return stats


@dataclass
class PriorityBreakdown:
    priority: str
    stats: ComplianceStats = field(default_factory=ComplianceStats)


@dataclass
class CategoryBreakdown:
    category_id: Optional[str]
    stats: ComplianceStats = field(default_factory=ComplianceStats)


@dataclass
class TrendPoint:
    date: date
    stats: ComplianceStats = field(default_factory=ComplianceStats)


@dataclass
class SlaReport:
    start: datetime
    end: datetime
    summary: ComplianceStats
    by_priority: List[PriorityBreakdown]
    by_category: List[CategoryBreakdown]
    trends: List[TrendPoint]


@dataclass
class PeriodCompliance:
    days: int
    stats: ComplianceStats


@dataclass
class SlaStatistics:
    total_configs: int
    active_configs: int
    compliance: ComplianceStats
    open_tickets: int
    warning_alerts: int
    breach_alerts: int
    trends: List[PeriodCompliance]


class SlaAlertGenerator:
    """Derives at-risk and breach alerts for a tenant's open legs."""

    def __init__(self, tracker: SlaStatusTracker):
        self._tracker = tracker

    async def generate_alerts(
        self,
        tenant_id: str,
        now: Optional[datetime] = None
    ) -> List[SlaAlert]:
        now = ensure_utc(now) or utcnow()
        alerts: List[SlaAlert] = []

        for status in await self._tracker.list_open_statuses(tenant_id, now):
            for leg in VALID_SLA_LEGS:
                if not status.is_leg_open(leg):
                    continue
                alert = self._alert_for_leg(status, leg, now)
                if alert is not None:
                    alerts.append(alert)

        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return alerts

    @staticmethod
    def _alert_for_leg(status: SlaStatus, leg: str, now: datetime) -> Optional[SlaAlert]:
        leg_status = status.get(leg, "status")
        prefix = _ALERT_ID_PREFIX[leg]
        label = leg_label(leg)

        if leg_status == SLAStatus.BREACHED:
            return SlaAlert(
                id=f"{prefix}_breach_{status.id}",
                ticket_id=status.ticket_id,
                type=AlertType.FIRST_RESPONSE_BREACH if leg == SLALeg.FIRST_RESPONSE else AlertType.RESOLUTION_BREACH,
                priority=Priority.CRITICAL,
                percentage=100,
                time_remaining=0,
                due_at=status.get(leg, "due_at"),
                message=f"{label} SLA breached",
                created_at=status.get(leg, "breached_at") or now,
            )

        if leg_status == SLAStatus.AT_RISK:
            remaining = status.get(leg, "time_remaining") or 0
            percentage = SLACalculator.consumed_percentage(remaining, status.get(leg, "target_minutes"))
            return SlaAlert(
                id=f"{prefix}_{status.id}",
                ticket_id=status.ticket_id,
                type=AlertType.FIRST_RESPONSE_WARNING if leg == SLALeg.FIRST_RESPONSE else AlertType.RESOLUTION_WARNING,
                priority=status.priority,
                percentage=percentage,
                time_remaining=remaining,
                due_at=status.get(leg, "due_at"),
                message=f"{label} SLA at risk ({percentage}% consumed)",
                created_at=now,
            )

        return None


class SlaReportService:
    """Compliance counts and rates over a tenant and date range."""

    def __init__(
        self,
        tracker: SlaStatusTracker,
        config_service: SlaConfigService,
        alert_generator: SlaAlertGenerator
    ):
        self._tracker = tracker
        self._configs = config_service
        self._alerts = alert_generator

    async def get_compliance_stats(
        self,
        tenant_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        now: Optional[datetime] = None
    ) -> ComplianceStats:
        statuses = await self._tracker.list_tracked(tenant_id, start, end, now)
        return ComplianceStats.of(statuses)

    async def generate_report(
        self,
        tenant_id: str,
        start_date: datetime,
        end_date: datetime,
        now: Optional[datetime] = None
    ) -> SlaReport:
        start_date, end_date = ensure_utc(start_date), ensure_utc(end_date)
        statuses = await self._tracker.list_tracked(tenant_id, start_date, end_date, now)

        by_priority = OrderedDict((p, PriorityBreakdown(priority=p)) for p in VALID_PRIORITIES)
        by_category: Dict[Optional[str], CategoryBreakdown] = {}
        trends: Dict[date, TrendPoint] = {}

        for status in statuses:
            by_priority.setdefault(status.priority, PriorityBreakdown(priority=status.priority)).stats.add(status)
            by_category.setdefault(
                status.category_id, CategoryBreakdown(category_id=status.category_id)
            ).stats.add(status)
            day = status.ticket_created_at.date()
            trends.setdefault(day, TrendPoint(date=day)).stats.add(status)

        return SlaReport(
            start=start_date,
            end=end_date,
            summary=ComplianceStats.of(statuses),
            by_priority=list(by_priority.values()),
            by_category=sorted(by_category.values(), key=lambda c: (c.category_id is None, c.category_id or "")),
            trends=[trends[day] for day in sorted(trends)],
        )

    async def get_statistics(
        self,
        tenant_id: str,
        now: Optional[datetime] = None
    ) -> SlaStatistics:
        now = ensure_utc(now) or utcnow()
        configs = await self._configs.list_configs(tenant_id)
        statuses = await self._tracker.list_tracked(tenant_id, now=now)
        alerts = await self._alerts.generate_alerts(tenant_id, now)

        breach_types = (AlertType.FIRST_RESPONSE_BREACH, AlertType.RESOLUTION_BREACH)
        trends = [
            PeriodCompliance(
                days=days,
                stats=ComplianceStats.of(
                    s for s in statuses if s.ticket_created_at >= now - timedelta(days=days)
                ),
            )
            for days in STATISTICS_TREND_DAYS
        ]

        return SlaStatistics(
            total_configs=len(configs),
            active_configs=sum(1 for c in configs if c.is_active),
            compliance=ComplianceStats.of(statuses),
            open_tickets=sum(1 for s in statuses if s.is_open),
            warning_alerts=sum(1 for a in alerts if a.type not in breach_types),
            breach_alerts=sum(1 for a in alerts if a.type in breach_types),
            trends=trends,
        )
