"""
SLA Infrastructure Repositories
=================================

Concrete implementations of repository interfaces using SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. Every query is scoped by tenant.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import DateTime, and_, delete, func, literal, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_sla.core import ConfigConflictException, RepositoryException
from helpdesk_sla.sla.application.interfaces import (
    ISlaConfigRepository,
    ISlaLogRepository,
    ISlaStatusRepository,
)
from helpdesk_sla.sla.domain import LEG_FIELDS, SlaConfig, SlaLogEntry, SlaStatus, ensure_utc
from helpdesk_sla.sla.infrastructure.models import SlaConfigModel, SlaLogModel, SlaStatusModel


def _as_uuid(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _as_str(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value is not None else None


class SQLAlchemySlaConfigRepository(ISlaConfigRepository):
    """
    SQLAlchemy implementation of the SLA config repository.

    The partial unique indexes back the service-level conflict check; an
    IntegrityError on write surfaces as ConfigConflictException.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: SlaConfigModel) -> SlaConfig:
        return SlaConfig(
            id=str(model.id),
            tenant_id=model.tenant_id,
            category_id=model.category_id,
            priority=model.priority,
            first_response_minutes=model.first_response_minutes,
            resolution_minutes=model.resolution_minutes,
            business_hours_start=model.business_hours_start,
            business_hours_end=model.business_hours_end,
            business_days=list(model.business_days or []),
            timezone=model.timezone,
            is_active=model.is_active,
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )

    async def _get_model(self, config_id: str, tenant_id: Optional[str]) -> Optional[SlaConfigModel]:
        config_uuid = _as_uuid(config_id)
        if config_uuid is None:
            return None

        stmt = select(SlaConfigModel).where(SlaConfigModel.id == config_uuid)
        if tenant_id is not None:
            stmt = stmt.where(SlaConfigModel.tenant_id == tenant_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, config_id: str, tenant_id: str) -> Optional[SlaConfig]:
        model = await self._get_model(config_id, tenant_id)
        return self._to_entity(model) if model else None

    async def get_by_id(self, config_id: str) -> Optional[SlaConfig]:
        model = await self._get_model(config_id, None)
        return self._to_entity(model) if model else None

    async def list(
        self,
        tenant_id: str,
        category_id: Optional[str] = None,
        priority: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> List[SlaConfig]:
        conditions = [SlaConfigModel.tenant_id == tenant_id]
        if category_id is not None:
            conditions.append(SlaConfigModel.category_id == category_id)
        if priority is not None:
            conditions.append(SlaConfigModel.priority == priority)
        if is_active is not None:
            conditions.append(SlaConfigModel.is_active.is_(is_active))

        stmt = (
            select(SlaConfigModel)
            .where(and_(*conditions))
            .order_by(SlaConfigModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def find_active(
        self,
        tenant_id: str,
        priority: str,
        category_id: Optional[str]
    ) -> Optional[SlaConfig]:
        category_clause = (
            SlaConfigModel.category_id.is_(None)
            if category_id is None
            else SlaConfigModel.category_id == category_id
        )
        stmt = (
            select(SlaConfigModel)
            .where(
                SlaConfigModel.tenant_id == tenant_id,
                SlaConfigModel.priority == priority,
                SlaConfigModel.is_active.is_(True),
                category_clause,
            )
            .order_by(SlaConfigModel.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def create(self, config: SlaConfig) -> SlaConfig:
        model = SlaConfigModel(
            tenant_id=config.tenant_id,
            category_id=config.category_id,
            priority=config.priority,
            first_response_minutes=config.first_response_minutes,
            resolution_minutes=config.resolution_minutes,
            business_hours_start=config.business_hours_start,
            business_hours_end=config.business_hours_end,
            business_days=list(config.business_days),
            timezone=config.timezone,
            is_active=config.is_active,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError:
            raise ConfigConflictException(config.priority, config.category_id)

        return self._to_entity(model)

    async def update(self, config: SlaConfig) -> SlaConfig:
        model = await self._get_model(config.id, config.tenant_id)
        if model is None:
            raise RepositoryException(f"SLA config {config.id} not found")

        try:
            async with self._session.begin_nested():
                model.first_response_minutes = config.first_response_minutes
                model.resolution_minutes = config.resolution_minutes
                model.business_hours_start = config.business_hours_start
                model.business_hours_end = config.business_hours_end
                model.business_days = list(config.business_days)
                model.timezone = config.timezone
                model.is_active = config.is_active
                model.updated_at = datetime.now(timezone.utc)
                await self._session.flush()
        except IntegrityError:
            raise ConfigConflictException(config.priority, config.category_id)

        return self._to_entity(model)

    async def delete(self, config_id: str, tenant_id: str) -> bool:
        config_uuid = _as_uuid(config_id)
        if config_uuid is None:
            return False

        stmt = delete(SlaConfigModel).where(
            SlaConfigModel.id == config_uuid,
            SlaConfigModel.tenant_id == tenant_id,
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0


class SQLAlchemySlaStatusRepository(ISlaStatusRepository):
    """
    SQLAlchemy implementation of the SLA status repository.

    Leg writes are single conditional UPDATE statements guarded by
    `<completed_at> IS NULL`, so concurrent deliveries of the same event
    cannot both close a leg.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: SlaStatusModel) -> SlaStatus:
        return SlaStatus(
            id=str(model.id),
            ticket_id=model.ticket_id,
            tenant_id=model.tenant_id,
            sla_config_id=_as_str(model.sla_config_id),
            priority=model.priority,
            category_id=model.category_id,
            ticket_created_at=model.ticket_created_at,
            first_response_target_minutes=model.first_response_target_minutes,
            resolution_target_minutes=model.resolution_target_minutes,
            first_response_due_at=model.first_response_due_at,
            resolution_due_at=model.resolution_due_at,
            first_response_at=model.first_response_at,
            resolved_at=model.resolved_at,
            first_response_status=model.first_response_status,
            resolution_status=model.resolution_status,
            first_response_time_remaining=model.first_response_time_remaining,
            resolution_time_remaining=model.resolution_time_remaining,
            first_response_time_spent=model.first_response_time_spent,
            resolution_time_spent=model.resolution_time_spent,
            first_response_breached_at=model.first_response_breached_at,
            resolution_breached_at=model.resolution_breached_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def _scalars(self, stmt) -> List[SlaStatusModel]:
        # Conditional updates bypass the identity map, so reads must overwrite it
        result = await self._session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def get_by_ticket(self, ticket_id: str, tenant_id: Optional[str] = None) -> Optional[SlaStatus]:
        stmt = select(SlaStatusModel).where(SlaStatusModel.ticket_id == ticket_id)
        if tenant_id is not None:
            stmt = stmt.where(SlaStatusModel.tenant_id == tenant_id)
        models = await self._scalars(stmt)
        return self._to_entity(models[0]) if models else None

    async def create(self, status: SlaStatus) -> SlaStatus:
        model = SlaStatusModel(
            ticket_id=status.ticket_id,
            tenant_id=status.tenant_id,
            sla_config_id=_as_uuid(status.sla_config_id),
            priority=status.priority,
            category_id=status.category_id,
            ticket_created_at=ensure_utc(status.ticket_created_at),
            first_response_target_minutes=status.first_response_target_minutes,
            resolution_target_minutes=status.resolution_target_minutes,
            first_response_due_at=ensure_utc(status.first_response_due_at),
            resolution_due_at=ensure_utc(status.resolution_due_at),
            first_response_status=status.first_response_status,
            resolution_status=status.resolution_status,
            first_response_time_remaining=status.first_response_time_remaining,
            resolution_time_remaining=status.resolution_time_remaining,
            first_response_breached_at=ensure_utc(status.first_response_breached_at),
            resolution_breached_at=ensure_utc(status.resolution_breached_at),
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError:
            raise RepositoryException(
                f"SLA status already exists for ticket {status.ticket_id}",
                {"ticket_id": status.ticket_id}
            )
        return self._to_entity(model)

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
        m = SlaStatusModel
        conditions = [m.tenant_id == tenant_id]

        if due_from is not None and due_to is not None:
            conditions.append(or_(
                and_(m.first_response_due_at >= due_from, m.first_response_due_at < due_to),
                and_(m.resolution_due_at >= due_from, m.resolution_due_at < due_to),
            ))
        if overdue_at is not None:
            conditions.append(or_(
                and_(m.first_response_due_at < overdue_at, m.first_response_at.is_(None)),
                and_(m.resolution_due_at < overdue_at, m.resolved_at.is_(None)),
            ))
        if created_from is not None:
            conditions.append(m.ticket_created_at >= created_from)
        if created_to is not None:
            conditions.append(m.ticket_created_at <= created_to)
        if open_only:
            conditions.append(or_(m.first_response_at.is_(None), m.resolved_at.is_(None)))

        stmt = (
            select(m)
            .where(and_(*conditions))
            .order_by(m.updated_at.desc(), m.ticket_created_at.desc())
        )
        return [self._to_entity(model) for model in await self._scalars(stmt)]

    async def list_tenants_with_open_legs(self) -> List[str]:
        m = SlaStatusModel
        stmt = (
            select(m.tenant_id)
            .where(or_(m.first_response_at.is_(None), m.resolved_at.is_(None)))
            .distinct()
            .order_by(m.tenant_id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def _conditional_update(self, status_id: str, leg: str, values: dict) -> bool:
        status_uuid = _as_uuid(status_id)
        if status_uuid is None:
            return False

        fields = LEG_FIELDS[leg]
        values["updated_at"] = datetime.now(timezone.utc)
        stmt = (
            update(SlaStatusModel)
            .where(
                SlaStatusModel.id == status_uuid,
                getattr(SlaStatusModel, fields.completed_at).is_(None),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def _breached_at_value(leg: str, breached_at: Optional[datetime]):
        """Keep an existing breach time; only fill it when unset."""
        column = getattr(SlaStatusModel, LEG_FIELDS[leg].breached_at)
        return func.coalesce(column, literal(ensure_utc(breached_at), DateTime(timezone=True)))

    async def record_completion(
        self,
        status_id: str,
        leg: str,
        completed_at: datetime,
        time_spent: int,
        status: str,
        breached_at: Optional[datetime]
    ) -> bool:
        fields = LEG_FIELDS[leg]
        values = {
            fields.completed_at: ensure_utc(completed_at),
            fields.time_spent: time_spent,
            fields.status: status,
        }
        if breached_at is not None:
            values[fields.breached_at] = self._breached_at_value(leg, breached_at)
        return await self._conditional_update(status_id, leg, values)

    async def refresh_leg(
        self,
        status_id: str,
        leg: str,
        status: str,
        time_remaining: int,
        breached_at: Optional[datetime]
    ) -> bool:
        fields = LEG_FIELDS[leg]
        values = {
            fields.status: status,
            fields.time_remaining: time_remaining,
        }
        if breached_at is not None:
            values[fields.breached_at] = self._breached_at_value(leg, breached_at)
        return await self._conditional_update(status_id, leg, values)


class SQLAlchemySlaLogRepository(ISlaLogRepository):
    """SQLAlchemy implementation of the append-only SLA audit log."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: SlaLogModel) -> SlaLogEntry:
        return SlaLogEntry(
            id=str(model.id),
            tenant_id=model.tenant_id,
            ticket_id=model.ticket_id,
            sla_config_id=_as_str(model.sla_config_id),
            sla_status_id=_as_str(model.sla_status_id),
            action=model.action,
            event_type=model.event_type,
            description=model.description,
            old_values=model.old_values,
            new_values=model.new_values,
            response_time=model.response_time,
            resolution_time=model.resolution_time,
            user_id=model.user_id,
            metadata=model.log_metadata,
            created_at=ensure_utc(model.created_at),
        )

    async def append(self, entry: SlaLogEntry) -> SlaLogEntry:
        model = SlaLogModel(
            tenant_id=entry.tenant_id,
            ticket_id=entry.ticket_id,
            sla_config_id=_as_uuid(entry.sla_config_id),
            sla_status_id=_as_uuid(entry.sla_status_id),
            action=entry.action,
            event_type=entry.event_type,
            description=entry.description,
            old_values=entry.old_values,
            new_values=entry.new_values,
            response_time=entry.response_time,
            resolution_time=entry.resolution_time,
            user_id=entry.user_id,
            log_metadata=entry.metadata,
        )
        # Savepoint: a failed audit write must not roll back the caller's work
        async with self._session.begin_nested():
            self._session.add(model)
            await self._session.flush()
        return self._to_entity(model)

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
        conditions = [SlaLogModel.tenant_id == tenant_id]
        if ticket_id is not None:
            conditions.append(SlaLogModel.ticket_id == ticket_id)
        if action is not None:
            conditions.append(SlaLogModel.action == action)
        if event_type is not None:
            conditions.append(SlaLogModel.event_type == event_type)
        if date_from is not None:
            conditions.append(SlaLogModel.created_at >= date_from)
        if date_to is not None:
            conditions.append(SlaLogModel.created_at <= date_to)

        stmt = (
            select(SlaLogModel)
            .where(and_(*conditions))
            .order_by(SlaLogModel.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]
