"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain entities and repositories.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations

Services are built once per unit of work by `build_sla_services` and
receive the tenant id by value on every call.
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from helpdesk_sla.config import (
    Settings,
    SLALeg,
    SLALogAction,
    SLAStatus,
    VALID_PRIORITIES,
    VALID_SLA_LEGS,
)
from helpdesk_sla.core import (
    NoApplicableConfigException,
    ConfigConflictException,
    ResourceNotFoundException,
    ValidationException,
)
from helpdesk_sla.sla.application.interfaces import (
    ISlaConfigRepository,
    ISlaLogRepository,
    ISlaStatusRepository,
)
from helpdesk_sla.sla.domain import (
    BusinessHours,
    LegTransition,
    RecalculationResult,
    SLACalculator,
    SlaCalculation,
    SlaConfig,
    SlaLogEntry,
    SlaStatus,
    TicketSnapshot,
    calendar_for,
    ensure_utc,
    utcnow,
)
from helpdesk_sla.shared.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from helpdesk_sla.sla.application.reporting import SlaAlertGenerator, SlaReportService

logger = get_logger(__name__)

_LEG_LABELS = {
    SLALeg.FIRST_RESPONSE: "First response",
    SLALeg.RESOLUTION: "Resolution",
}


def leg_label(leg: str) -> str:
    return _LEG_LABELS[leg]


# ========== Audit Log ==========

class SlaAuditLogger:
    """
    Append-only writer and reader for the SLA audit trail.

    Writes are best-effort: a failed append is logged with its traceback
    and never raised into the caller's success path.
    """

    def __init__(self, log_repository: ISlaLogRepository):
        self._log_repo = log_repository

    async def record(
        self,
        tenant_id: str,
        action: str,
        event_type: str,
        description: Optional[str] = None,
        ticket_id: Optional[str] = None,
        sla_config_id: Optional[str] = None,
        sla_status_id: Optional[str] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        response_time: Optional[int] = None,
        resolution_time: Optional[int] = None,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[SlaLogEntry]:
        entry = SlaLogEntry(
            tenant_id=tenant_id,
            action=action,
            event_type=event_type,
            description=description,
            ticket_id=ticket_id,
            sla_config_id=sla_config_id,
            sla_status_id=sla_status_id,
            old_values=old_values,
            new_values=new_values,
            response_time=response_time,
            resolution_time=resolution_time,
            user_id=user_id,
            metadata=metadata,
        )
        try:
            return await self._log_repo.append(entry)
        except Exception:
            logger.exception(
                "Failed to write SLA audit log entry",
                extra={
                    "tenant_id": tenant_id,
                    "action": action,
                    "event_type": event_type,
                    "ticket_id": ticket_id,
                    "sla_config_id": sla_config_id,
                }
            )
            return None

    async def list_logs(
        self,
        tenant_id: str,
        ticket_id: Optional[str] = None,
        action: Optional[str] = None,
        event_type: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 500
    ) -> List[SlaLogEntry]:
        return await self._log_repo.list(
            tenant_id,
            ticket_id=ticket_id,
            action=action,
            event_type=event_type,
            date_from=ensure_utc(date_from),
            date_to=ensure_utc(date_to),
            limit=limit,
        )

    async def list_ticket_logs(self, tenant_id: str, ticket_id: str) -> List[SlaLogEntry]:
        return await self._log_repo.list(tenant_id, ticket_id=ticket_id)


# ========== Configuration Store ==========

class SlaConfigService:
    """
    CRUD over per-tenant SLA configs.

    At most one active config exists per (tenant, priority, category);
    the config without a category is the tenant-wide fallback.
    """

    def __init__(
        self,
        config_repository: ISlaConfigRepository,
        audit_logger: SlaAuditLogger,
        settings: Settings
    ):
        self._config_repo = config_repository
        self._audit = audit_logger
        self._settings = settings

    async def list_configs(
        self,
        tenant_id: str,
        category_id: Optional[str] = None,
        priority: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[SlaConfig]:
        return await self._config_repo.list(
            tenant_id,
            category_id=category_id,
            priority=priority,
            is_active=is_active,
        )

    async def get_config(self, config_id: str, tenant_id: str) -> SlaConfig:
        config = await self._config_repo.get(config_id, tenant_id)
        if config is None:
            raise ResourceNotFoundException("SLA config", config_id)
        return config

    async def create(
        self,
        tenant_id: str,
        priority: str,
        first_response_minutes: int,
        resolution_minutes: int,
        category_id: Optional[str] = None,
        business_hours_start: Optional[str] = None,
        business_hours_end: Optional[str] = None,
        business_days: Optional[List[int]] = None,
        timezone: Optional[str] = None,
        is_active: bool = True,
        user_id: Optional[str] = None
    ) -> SlaConfig:
        settings = self._settings
        config = SlaConfig(
            tenant_id=tenant_id,
            priority=priority,
            category_id=category_id,
            first_response_minutes=first_response_minutes,
            resolution_minutes=resolution_minutes,
            business_hours_start=business_hours_start or settings.sla_default_business_hours_start,
            business_hours_end=business_hours_end or settings.sla_default_business_hours_end,
            business_days=list(business_days or settings.sla_default_business_days),
            timezone=timezone or settings.sla_default_timezone,
            is_active=is_active,
        )
        self._validate(config)

        if config.is_active:
            await self._ensure_no_conflict(config)

        created = await self._config_repo.create(config)

        logger.info(
            "SLA config created",
            extra={
                "tenant_id": tenant_id,
                "sla_config_id": created.id,
                "priority": priority,
                "category_id": category_id,
            }
        )
        await self._audit.record(
            tenant_id=tenant_id,
            action=SLALogAction.CREATED,
            event_type="config_created",
            description=f"SLA config created for {priority} priority",
            sla_config_id=created.id,
            new_values=created.snapshot(),
            user_id=user_id,
        )
        return created

    async def update(
        self,
        config_id: str,
        tenant_id: str,
        changes: Dict[str, Any],
        user_id: Optional[str] = None
    ) -> SlaConfig:
        config = await self.get_config(config_id, tenant_id)

        unknown = sorted(set(changes) - set(SlaConfig.UPDATABLE_FIELDS))
        if unknown:
            raise ValidationException(
                "Fields cannot be updated",
                {"fields": unknown}
            )
        if not changes:
            return config

        old_values = config.snapshot()
        updated = dataclasses.replace(config, **changes)
        if "business_days" in changes:
            updated.business_days = list(updated.business_days)
        self._validate(updated)

        if updated.is_active:
            await self._ensure_no_conflict(updated)

        saved = await self._config_repo.update(updated)

        logger.info(
            "SLA config updated",
            extra={
                "tenant_id": tenant_id,
                "sla_config_id": config_id,
                "fields": sorted(changes),
            }
        )
        await self._audit.record(
            tenant_id=tenant_id,
            action=SLALogAction.UPDATED,
            event_type="config_updated",
            description=f"SLA config updated for {saved.priority} priority",
            sla_config_id=config_id,
            old_values=old_values,
            new_values=saved.snapshot(),
            user_id=user_id,
        )
        return saved

    async def delete(self, config_id: str, tenant_id: str, user_id: Optional[str] = None) -> None:
        config = await self.get_config(config_id, tenant_id)
        deleted = await self._config_repo.delete(config_id, tenant_id)
        if not deleted:
            raise ResourceNotFoundException("SLA config", config_id)

        logger.info(
            "SLA config deleted",
            extra={"tenant_id": tenant_id, "sla_config_id": config_id}
        )
        await self._audit.record(
            tenant_id=tenant_id,
            action=SLALogAction.DELETED,
            event_type="config_deleted",
            description=f"SLA config deleted for {config.priority} priority",
            sla_config_id=config_id,
            old_values=config.snapshot(),
            user_id=user_id,
        )

    async def resolve_applicable(
        self,
        tenant_id: str,
        priority: str,
        category_id: Optional[str] = None
    ) -> Optional[SlaConfig]:
        """Category-specific active config first, then the tenant-wide fallback."""
        if category_id is not None:
            specific = await self._config_repo.find_active(tenant_id, priority, category_id)
            if specific is not None:
                return specific
        return await self._config_repo.find_active(tenant_id, priority, None)

    async def _ensure_no_conflict(self, config: SlaConfig) -> None:
        existing = await self._config_repo.find_active(
            config.tenant_id, config.priority, config.category_id
        )
        if existing is not None and existing.id != config.id:
            raise ConfigConflictException(config.priority, config.category_id)

    @staticmethod
    def _validate(config: SlaConfig) -> None:
        if config.priority not in VALID_PRIORITIES:
            raise ValidationException(
                f"Invalid priority '{config.priority}'",
                {"allowed": VALID_PRIORITIES}
            )
        try:
            config.validate()
        except ValueError as e:
            raise ValidationException(str(e))


# ========== Calculation Engine ==========

class SlaCalculationEngine:
    """
    Computes due dates, remaining minutes and statuses.

    The engine itself has no side effects; callers decide what to persist.
    Every call re-reads the applicable config.
    """

    def __init__(
        self,
        config_service: SlaConfigService,
        config_repository: ISlaConfigRepository,
        settings: Settings
    ):
        self._config_service = config_service
        self._config_repo = config_repository
        self._settings = settings

    @property
    def at_risk_ratio(self) -> float:
        return self._settings.sla_at_risk_ratio

    def default_business_hours(self) -> BusinessHours:
        settings = self._settings
        return BusinessHours.from_strings(
            settings.sla_default_business_hours_start,
            settings.sla_default_business_hours_end,
            settings.sla_default_business_days,
            settings.sla_default_timezone,
        )

    def calendar(self, business_hours: BusinessHours):
        return calendar_for(business_hours, self._settings.sla_due_date_mode)

    async def calculate(
        self,
        ticket_id: str,
        tenant_id: str,
        priority: str,
        created_at: datetime,
        category_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> SlaCalculation:
        config = await self._config_service.resolve_applicable(tenant_id, priority, category_id)
        if config is None:
            raise NoApplicableConfigException(priority, category_id)
        return self.calculate_with_config(config, ticket_id, created_at, now)

    def calculate_with_config(
        self,
        config: SlaConfig,
        ticket_id: str,
        created_at: datetime,
        now: Optional[datetime] = None
    ) -> SlaCalculation:
        now = ensure_utc(now) or utcnow()
        created_at = ensure_utc(created_at)
        calendar = self.calendar(config.business_hours)

        first_response_due = SLACalculator.calculate_due_date(
            created_at, config.first_response_minutes, calendar
        )
        resolution_due = SLACalculator.calculate_due_date(
            created_at, config.resolution_minutes, calendar
        )

        first_response_remaining = SLACalculator.calculate_time_remaining(now, first_response_due, calendar)
        resolution_remaining = SLACalculator.calculate_time_remaining(now, resolution_due, calendar)

        return SlaCalculation(
            ticket_id=ticket_id,
            sla_config_id=config.id,
            first_response_minutes=config.first_response_minutes,
            resolution_minutes=config.resolution_minutes,
            first_response_due_at=first_response_due,
            resolution_due_at=resolution_due,
            first_response_status=SLACalculator.determine_status(
                first_response_remaining, config.first_response_minutes, self.at_risk_ratio
            ),
            resolution_status=SLACalculator.determine_status(
                resolution_remaining, config.resolution_minutes, self.at_risk_ratio
            ),
            first_response_time_remaining=first_response_remaining,
            resolution_time_remaining=resolution_remaining,
            is_business_hours=calendar.is_business_time(now),
        )

    def is_within_business_hours(self, moment: datetime, config: SlaConfig) -> bool:
        return config.business_hours.is_within(moment)

    async def config_for_status(self, status: SlaStatus) -> Optional[SlaConfig]:
        """The config a status was created from, if it still exists."""
        if not status.sla_config_id:
            return None
        return await self._config_repo.get_by_id(status.sla_config_id)

    async def calendar_for_status(
        self,
        status: SlaStatus,
        cache: Optional[Dict[Optional[str], Any]] = None
    ):
        """
        Calendar for a tracked ticket.

        Uses the original config's business hours; a deleted config falls
        back to the default hours from settings.
        """
        if cache is not None and status.sla_config_id in cache:
            return cache[status.sla_config_id]

        config = await self.config_for_status(status)
        hours = config.business_hours if config else self.default_business_hours()
        calendar = self.calendar(hours)

        if cache is not None:
            cache[status.sla_config_id] = calendar
        return calendar

    def evaluate_leg(self, status: SlaStatus, leg: str, now: datetime, calendar) -> Tuple[str, int]:
        """Current (status, remaining minutes) of an open leg."""
        remaining = SLACalculator.calculate_time_remaining(now, status.get(leg, "due_at"), calendar)
        derived = SLACalculator.determine_status(
            remaining, status.get(leg, "target_minutes"), self.at_risk_ratio
        )
        return derived, remaining


# ========== Status Tracker ==========

class SlaStatusTracker:
    """
    Per-ticket SLA state machine.

    Lifecycle events close legs exactly once; at_risk is only ever a
    point-in-time derivation for open legs.
    """

    def __init__(
        self,
        status_repository: ISlaStatusRepository,
        engine: SlaCalculationEngine,
        audit_logger: SlaAuditLogger
    ):
        self._status_repo = status_repository
        self._engine = engine
        self._audit = audit_logger

    async def on_ticket_created(
        self,
        ticket: TicketSnapshot,
        now: Optional[datetime] = None
    ) -> Optional[SlaStatus]:
        """
        Start tracking a ticket.

        Fail-open: returns None instead of raising so ticket creation is
        never blocked by SLA misconfiguration.
        """
        try:
            existing = await self._status_repo.get_by_ticket(ticket.id, ticket.tenant_id)
            if existing is not None:
                return existing

            calculation = await self._engine.calculate(
                ticket_id=ticket.id,
                tenant_id=ticket.tenant_id,
                priority=ticket.priority,
                created_at=ticket.created_at,
                category_id=ticket.category_id,
                now=now,
            )
            status = await self._status_repo.create(SlaStatus(
                ticket_id=ticket.id,
                tenant_id=ticket.tenant_id,
                priority=ticket.priority,
                category_id=ticket.category_id,
                ticket_created_at=ticket.created_at,
                sla_config_id=calculation.sla_config_id,
                first_response_target_minutes=calculation.first_response_minutes,
                resolution_target_minutes=calculation.resolution_minutes,
                first_response_due_at=calculation.first_response_due_at,
                resolution_due_at=calculation.resolution_due_at,
                first_response_status=calculation.first_response_status,
                resolution_status=calculation.resolution_status,
                first_response_time_remaining=calculation.first_response_time_remaining,
                resolution_time_remaining=calculation.resolution_time_remaining,
                first_response_breached_at=(
                    calculation.first_response_due_at
                    if calculation.first_response_status == SLAStatus.BREACHED else None
                ),
                resolution_breached_at=(
                    calculation.resolution_due_at
                    if calculation.resolution_status == SLAStatus.BREACHED else None
                ),
            ))
        except NoApplicableConfigException as e:
            logger.warning(
                "No applicable SLA config, ticket not tracked",
                extra={
                    "tenant_id": ticket.tenant_id,
                    "ticket_id": ticket.id,
                    "priority": ticket.priority,
                    "category_id": ticket.category_id,
                    "error": e.message,
                }
            )
            return None
        except Exception:
            logger.exception(
                "Failed to start SLA tracking",
                extra={"tenant_id": ticket.tenant_id, "ticket_id": ticket.id}
            )
            return None

        logger.info(
            "SLA tracking started",
            extra={
                "tenant_id": ticket.tenant_id,
                "ticket_id": ticket.id,
                "sla_config_id": status.sla_config_id,
            }
        )
        await self._audit.record(
            tenant_id=ticket.tenant_id,
            action=SLALogAction.CREATED,
            event_type="sla_tracking_started",
            description=f"SLA tracking started for ticket {ticket.id}",
            ticket_id=ticket.id,
            sla_config_id=status.sla_config_id,
            sla_status_id=status.id,
            new_values={
                "first_response_due_at": status.first_response_due_at.isoformat(),
                "resolution_due_at": status.resolution_due_at.isoformat(),
                "first_response_status": status.first_response_status,
                "resolution_status": status.resolution_status,
            },
            metadata={"priority": ticket.priority, "category_id": ticket.category_id},
        )
        return status

    async def on_first_response(
        self,
        ticket_id: str,
        response_time: datetime,
        tenant_id: Optional[str] = None
    ) -> Optional[SlaStatus]:
        return await self._complete_leg(SLALeg.FIRST_RESPONSE, ticket_id, response_time, tenant_id)

    async def on_ticket_resolved(
        self,
        ticket_id: str,
        resolved_time: datetime,
        tenant_id: Optional[str] = None
    ) -> Optional[SlaStatus]:
        return await self._complete_leg(SLALeg.RESOLUTION, ticket_id, resolved_time, tenant_id)

    async def _complete_leg(
        self,
        leg: str,
        ticket_id: str,
        completed_at: datetime,
        tenant_id: Optional[str]
    ) -> Optional[SlaStatus]:
        status = await self._status_repo.get_by_ticket(ticket_id, tenant_id)
        if status is None:
            logger.info(
                "No SLA status for ticket, event ignored",
                extra={"ticket_id": ticket_id, "tenant_id": tenant_id, "leg": leg}
            )
            return None
        if not status.is_leg_open(leg):
            return status

        completed_at = ensure_utc(completed_at)
        calendar = await self._engine.calendar_for_status(status)
        target = status.get(leg, "target_minutes")
        elapsed = SLACalculator.calculate_elapsed(status.ticket_created_at, completed_at, calendar)
        outcome = SLACalculator.determine_completion_status(elapsed, target)

        breached_at = status.get(leg, "breached_at")
        if outcome == SLAStatus.BREACHED and breached_at is None:
            breached_at = completed_at

        won = await self._status_repo.record_completion(
            status.id, leg, completed_at, elapsed, outcome, breached_at
        )
        if not won:
            logger.info(
                "SLA leg already closed by a concurrent update",
                extra={"ticket_id": ticket_id, "leg": leg}
            )
            return await self._status_repo.get_by_ticket(ticket_id, tenant_id)

        status.set(leg, "completed_at", completed_at)
        status.set(leg, "time_spent", elapsed)
        status.set(leg, "status", outcome)
        status.set(leg, "breached_at", breached_at)

        timing = {"response_time": elapsed} if leg == SLALeg.FIRST_RESPONSE else {"resolution_time": elapsed}
        if outcome == SLAStatus.BREACHED:
            logger.warning(
                "SLA breached",
                extra={
                    "tenant_id": status.tenant_id,
                    "ticket_id": ticket_id,
                    "leg": leg,
                    "elapsed_minutes": elapsed,
                    "target_minutes": target,
                }
            )
            await self._audit.record(
                tenant_id=status.tenant_id,
                action=SLALogAction.VIOLATION,
                event_type=f"{leg}_breach",
                description=f"{leg_label(leg)} SLA breached after {elapsed} minutes",
                ticket_id=ticket_id,
                sla_config_id=status.sla_config_id,
                sla_status_id=status.id,
                metadata={"target_minutes": target},
                **timing,
            )
        elif leg == SLALeg.RESOLUTION:
            await self._audit.record(
                tenant_id=status.tenant_id,
                action=SLALogAction.RESOLUTION,
                event_type="resolution_compliant",
                description=f"Ticket resolved within SLA ({elapsed} minutes)",
                ticket_id=ticket_id,
                sla_config_id=status.sla_config_id,
                sla_status_id=status.id,
                metadata={"target_minutes": target},
                **timing,
            )
        return status

    async def update_status(
        self,
        tenant_id: str,
        ticket_id: str,
        first_response_at: Optional[datetime] = None,
        resolved_at: Optional[datetime] = None,
        now: Optional[datetime] = None
    ) -> SlaStatus:
        """Apply lifecycle events delivered by the ticket webhook."""
        status = await self._status_repo.get_by_ticket(ticket_id, tenant_id)
        if status is None:
            raise ResourceNotFoundException("SLA status", ticket_id)

        if first_response_at is not None:
            await self.on_first_response(ticket_id, first_response_at, tenant_id)
        if resolved_at is not None:
            await self.on_ticket_resolved(ticket_id, resolved_at, tenant_id)

        current = await self._status_repo.get_by_ticket(ticket_id, tenant_id)
        return await self.refresh(current, now)

    async def refresh(
        self,
        status: SlaStatus,
        now: Optional[datetime] = None,
        calendars: Optional[Dict[Optional[str], Any]] = None
    ) -> SlaStatus:
        """Copy of the status with open legs re-derived at `now`. Nothing is stored."""
        now = ensure_utc(now) or utcnow()
        current = dataclasses.replace(status)
        if not current.is_open:
            return current

        calendar = await self._engine.calendar_for_status(current, calendars)
        for leg in VALID_SLA_LEGS:
            if not current.is_leg_open(leg):
                continue
            derived, remaining = self._engine.evaluate_leg(current, leg, now, calendar)
            current.set(leg, "status", derived)
            current.set(leg, "time_remaining", remaining)
            if derived == SLAStatus.BREACHED and current.get(leg, "breached_at") is None:
                current.set(leg, "breached_at", current.get(leg, "due_at"))
        return current

    async def recalculate_tenant(
        self,
        tenant_id: str,
        now: Optional[datetime] = None
    ) -> RecalculationResult:
        """Persist the current derivation for every open leg of a tenant."""
        now = ensure_utc(now) or utcnow()
        result = RecalculationResult()
        calendars: Dict[Optional[str], Any] = {}

        for status in await self._status_repo.list(tenant_id, open_only=True):
            try:
                transitions = await self._recalculate_status(status, now, calendars)
            except Exception:
                logger.exception(
                    "Failed to recalculate SLA status",
                    extra={"tenant_id": tenant_id, "ticket_id": status.ticket_id}
                )
                result.errors += 1
                continue

            if transitions is not None:
                result.updated += 1
                result.transitions.extend(transitions)

        logger.info(
            "SLA recalculation finished",
            extra={
                "tenant_id": tenant_id,
                "updated": result.updated,
                "errors": result.errors,
                "transitions": len(result.transitions),
            }
        )
        return result

    async def _recalculate_status(
        self,
        status: SlaStatus,
        now: datetime,
        calendars: Dict[Optional[str], Any]
    ) -> Optional[List[LegTransition]]:
        calendar = await self._engine.calendar_for_status(status, calendars)
        transitions: List[LegTransition] = []
        touched = False

        for leg in VALID_SLA_LEGS:
            if not status.is_leg_open(leg):
                continue

            previous = status.get(leg, "status")
            derived, remaining = self._engine.evaluate_leg(status, leg, now, calendar)
            breached_at = status.get(leg, "breached_at")
            if derived == SLAStatus.BREACHED and breached_at is None:
                breached_at = status.get(leg, "due_at")

            stored = await self._status_repo.refresh_leg(status.id, leg, derived, remaining, breached_at)
            if not stored:
                continue
            touched = True

            if derived == previous or derived == SLAStatus.COMPLIANT:
                continue
            transition = LegTransition(
                ticket_id=status.ticket_id,
                tenant_id=status.tenant_id,
                leg=leg,
                previous_status=previous,
                status=derived,
                priority=status.priority,
                due_at=status.get(leg, "due_at"),
                time_remaining=remaining,
            )
            transitions.append(transition)
            await self._log_transition(status, transition)

        return transitions if touched else None

    async def _log_transition(self, status: SlaStatus, transition: LegTransition) -> None:
        label = leg_label(transition.leg)
        if transition.status == SLAStatus.BREACHED:
            await self._audit.record(
                tenant_id=status.tenant_id,
                action=SLALogAction.VIOLATION,
                event_type=f"{transition.leg}_breach",
                description=f"{label} SLA breached (due {transition.due_at.isoformat()})",
                ticket_id=status.ticket_id,
                sla_config_id=status.sla_config_id,
                sla_status_id=status.id,
                old_values={"status": transition.previous_status},
                new_values={"status": transition.status},
            )
        else:
            await self._audit.record(
                tenant_id=status.tenant_id,
                action=SLALogAction.UPDATED,
                event_type=f"{transition.leg}_at_risk",
                description=f"{label} SLA at risk ({transition.time_remaining} minutes remaining)",
                ticket_id=status.ticket_id,
                sla_config_id=status.sla_config_id,
                sla_status_id=status.id,
                old_values={"status": transition.previous_status},
                new_values={"status": transition.status, "time_remaining": transition.time_remaining},
            )

    async def get_status(
        self,
        tenant_id: str,
        ticket_id: str,
        now: Optional[datetime] = None
    ) -> SlaStatus:
        status = await self._status_repo.get_by_ticket(ticket_id, tenant_id)
        if status is None:
            raise ResourceNotFoundException("SLA status", ticket_id)
        return await self.refresh(status, now)

    async def get_status_details(
        self,
        tenant_id: str,
        ticket_id: str,
        now: Optional[datetime] = None
    ) -> Tuple[SlaStatus, Optional[SlaConfig]]:
        status = await self.get_status(tenant_id, ticket_id, now)
        config = await self._engine.config_for_status(status)
        if config is not None and config.tenant_id != tenant_id:
            config = None
        return status, config

    async def list_statuses(
        self,
        tenant_id: str,
        status: Optional[str] = None,
        due_today: bool = False,
        overdue: bool = False,
        now: Optional[datetime] = None
    ) -> List[SlaStatus]:
        now = ensure_utc(now) or utcnow()
        due_from = due_to = None
        if due_today:
            due_from = now.replace(hour=0, minute=0, second=0, microsecond=0)
            due_to = due_from + timedelta(days=1)

        rows = await self._status_repo.list(
            tenant_id,
            due_from=due_from,
            due_to=due_to,
            overdue_at=now if overdue else None,
        )

        calendars: Dict[Optional[str], Any] = {}
        refreshed = [await self.refresh(row, now, calendars) for row in rows]
        if status:
            refreshed = [
                row for row in refreshed
                if status in (row.first_response_status, row.resolution_status)
            ]
        return refreshed

    async def list_open_statuses(
        self,
        tenant_id: str,
        now: Optional[datetime] = None
    ) -> List[SlaStatus]:
        """Refreshed statuses of the tenant's tickets with an open leg."""
        now = ensure_utc(now) or utcnow()
        calendars: Dict[Optional[str], Any] = {}
        rows = await self._status_repo.list(tenant_id, open_only=True)
        return [await self.refresh(row, now, calendars) for row in rows]

    async def list_tracked(
        self,
        tenant_id: str,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        now: Optional[datetime] = None
    ) -> List[SlaStatus]:
        """Refreshed statuses of tickets created in the given window."""
        now = ensure_utc(now) or utcnow()
        calendars: Dict[Optional[str], Any] = {}
        rows = await self._status_repo.list(
            tenant_id,
            created_from=ensure_utc(created_from),
            created_to=ensure_utc(created_to),
        )
        return [await self.refresh(row, now, calendars) for row in rows]


# ========== Composition Root ==========

@dataclass
class SlaServices:
    """Every SLA service wired for one unit of work."""
    audit: SlaAuditLogger
    configs: SlaConfigService
    engine: SlaCalculationEngine
    tracker: SlaStatusTracker
    alerts: "SlaAlertGenerator"
    reports: "SlaReportService"


def build_sla_services(
    config_repository: ISlaConfigRepository,
    status_repository: ISlaStatusRepository,
    log_repository: ISlaLogRepository,
    settings: Settings
) -> SlaServices:
    """Construct the services once and pass references explicitly."""
    from helpdesk_sla.sla.application.reporting import SlaAlertGenerator, SlaReportService

    audit = SlaAuditLogger(log_repository)
    configs = SlaConfigService(config_repository, audit, settings)
    engine = SlaCalculationEngine(configs, config_repository, settings)
    tracker = SlaStatusTracker(status_repository, engine, audit)
    alerts = SlaAlertGenerator(tracker)
    reports = SlaReportService(tracker, configs, alerts)
    return SlaServices(
        audit=audit,
        configs=configs,
        engine=engine,
        tracker=tracker,
        alerts=alerts,
        reports=reports,
    )
