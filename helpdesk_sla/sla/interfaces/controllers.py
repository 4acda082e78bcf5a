"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA configuration, tracking, alerts and reports.

Controllers are thin - they delegate to application services. Every route
is scoped to the caller's tenant and answers with the response envelope.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_sla.config import get_settings
from helpdesk_sla.core import ValidationException
from helpdesk_sla.infrastructure.database import get_session
from helpdesk_sla.sla.application import (
    SlaServices,
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
    SlaReportResponse,
    SlaStatisticsResponse,
)
from helpdesk_sla.sla.application.dto import LogActionStr, PriorityStr, SLAStatusStr
from helpdesk_sla.sla.domain import TicketSnapshot, ensure_utc
from helpdesk_sla.sla.infrastructure import sla_services_for_session
from helpdesk_sla.shared.api.auth import TenantContext, get_tenant_context, require_admin
from helpdesk_sla.shared.api.responses import ApiResponse, ErrorResponse, ok
from helpdesk_sla.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA"])


# ========== Example payloads for Swagger ==========

CONFIG_EXAMPLE = {
    "success": True,
    "data": {
        "id": "0b9d4f3e-5a43-4c1e-9a1f-2f4b8f1d7c11",
        "tenantId": "tenant-1",
        "categoryId": None,
        "priority": "high",
        "firstResponseMinutes": 60,
        "resolutionMinutes": 480,
        "businessHoursStart": "09:00",
        "businessHoursEnd": "18:00",
        "businessDays": [1, 2, 3, 4, 5],
        "timezone": "America/Sao_Paulo",
        "isActive": True,
        "createdAt": "2024-01-01T10:00:00Z",
        "updatedAt": "2024-01-01T10:00:00Z"
    }
}

STATUS_EXAMPLE = {
    "success": True,
    "data": {
        "id": "5f0c6a3e-7d51-4d5f-8b6a-0c1d2e3f4a5b",
        "ticketId": "TICKET-001",
        "slaConfigId": "0b9d4f3e-5a43-4c1e-9a1f-2f4b8f1d7c11",
        "priority": "high",
        "categoryId": None,
        "ticketCreatedAt": "2024-01-01T10:00:00Z",
        "firstResponseTargetMinutes": 60,
        "resolutionTargetMinutes": 480,
        "firstResponseDueAt": "2024-01-01T11:00:00Z",
        "resolutionDueAt": "2024-01-01T18:00:00Z",
        "firstResponseAt": None,
        "resolvedAt": None,
        "firstResponseStatus": "at_risk",
        "resolutionStatus": "compliant",
        "firstResponseTimeRemaining": 15,
        "resolutionTimeRemaining": 435,
        "firstResponseTimeSpent": None,
        "resolutionTimeSpent": None,
        "firstResponseBreachedAt": None,
        "resolutionBreachedAt": None
    }
}

ALERTS_EXAMPLE = {
    "success": True,
    "data": [
        {
            "id": "fr_breach_5f0c6a3e-7d51-4d5f-8b6a-0c1d2e3f4a5b",
            "ticketId": "TICKET-001",
            "type": "first_response_breach",
            "priority": "critical",
            "percentage": 100,
            "timeRemaining": 0,
            "dueAt": "2024-01-01T11:00:00Z",
            "message": "First response SLA breached",
            "createdAt": "2024-01-01T11:00:00Z"
        }
    ]
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    401: {"model": ErrorResponse, "description": "Missing user or tenant"},
}


# ========== Dependencies ==========

async def get_sla_services(
    session: AsyncSession = Depends(get_session)
) -> SlaServices:
    """Get the SLA services bound to the request session."""
    return sla_services_for_session(session, get_settings())


# ========== Configurations ==========

@router.get(
    "/configs",
    response_model=ApiResponse[List[SlaConfigResponse]],
    summary="List SLA configurations",
    description="""
    List the tenant's SLA configurations.

    **Query Parameters:**
    - `categoryId`: Only configs for this category
    - `priority`: Filter by priority (critical, high, medium, low)
    - `isActive`: Filter by active flag
    """,
    responses=ERROR_RESPONSES
)
async def list_configs(
    category_id: Optional[str] = Query(None, alias="categoryId"),
    priority: Optional[PriorityStr] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    configs = await services.configs.list_configs(
        context.tenant_id,
        category_id=category_id,
        priority=priority,
        is_active=is_active,
    )
    return ok([SlaConfigResponse.model_validate(c) for c in configs])


@router.get(
    "/configs/{config_id}",
    response_model=ApiResponse[SlaConfigResponse],
    summary="Get SLA configuration",
    responses={
        200: {"content": {"application/json": {"example": CONFIG_EXAMPLE}}},
        404: {"model": ErrorResponse, "description": "Config not found"},
    }
)
async def get_config(
    config_id: str,
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    config = await services.configs.get_config(config_id, context.tenant_id)
    return ok(SlaConfigResponse.model_validate(config))


@router.post(
    "/configs",
    response_model=ApiResponse[SlaConfigResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create SLA configuration",
    description="""
    Create an SLA configuration for a priority, optionally limited to a category.

    Only one active configuration may exist per (priority, category); a
    config without `categoryId` is the fallback for every category.

    **Example Request**:
    ```json
    {
        "priority": "high",
        "firstResponseMinutes": 60,
        "resolutionMinutes": 480,
        "businessHoursStart": "09:00",
        "businessHoursEnd": "18:00",
        "businessDays": [1, 2, 3, 4, 5],
        "timezone": "America/Sao_Paulo"
    }
    ```
    """,
    responses={
        201: {"content": {"application/json": {"example": CONFIG_EXAMPLE}}},
        409: {"model": ErrorResponse, "description": "An active config already exists"},
        **ERROR_RESPONSES,
    }
)
async def create_config(
    request: SlaConfigCreateRequest,
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    config = await services.configs.create(
        tenant_id=context.tenant_id,
        priority=request.priority,
        first_response_minutes=request.first_response_minutes,
        resolution_minutes=request.resolution_minutes,
        category_id=request.category_id,
        business_hours_start=request.business_hours_start,
        business_hours_end=request.business_hours_end,
        business_days=request.business_days,
        timezone=request.timezone,
        is_active=request.is_active,
        user_id=context.user_id,
    )
    return ok(SlaConfigResponse.model_validate(config), "SLA config created")


@router.patch(
    "/configs/{config_id}",
    response_model=ApiResponse[SlaConfigResponse],
    summary="Update SLA configuration",
    description="Partial update. Priority and category cannot be changed.",
    responses={
        404: {"model": ErrorResponse, "description": "Config not found"},
        409: {"model": ErrorResponse, "description": "An active config already exists"},
        **ERROR_RESPONSES,
    }
)
async def update_config(
    config_id: str,
    request: SlaConfigUpdateRequest,
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    config = await services.configs.update(
        config_id, context.tenant_id, request.changes(), user_id=context.user_id
    )
    return ok(SlaConfigResponse.model_validate(config), "SLA config updated")


@router.delete(
    "/configs/{config_id}",
    response_model=ApiResponse[None],
    summary="Delete SLA configuration",
    description="Existing ticket statuses keep their due dates.",
    responses={404: {"model": ErrorResponse, "description": "Config not found"}}
)
async def delete_config(
    config_id: str,
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    await services.configs.delete(config_id, context.tenant_id, user_id=context.user_id)
    return ok(message="SLA config deleted")


# ========== Status ==========

@router.get(
    "/status",
    response_model=ApiResponse[List[SlaStatusResponse]],
    summary="List SLA statuses",
    description="""
    List the tenant's ticket SLA statuses, derived at request time.

    **Query Parameters:**
    - `status`: Only tickets with a leg in this state (compliant, at_risk, breached)
    - `dueToday`: Only tickets with a leg due today (UTC)
    - `overdue`: Only tickets with an open leg past its due date
    """,
    responses=ERROR_RESPONSES
)
async def list_statuses(
    sla_status: Optional[SLAStatusStr] = Query(None, alias="status"),
    due_today: bool = Query(False, alias="dueToday"),
    overdue: bool = Query(False),
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    statuses = await services.tracker.list_statuses(
        context.tenant_id,
        status=sla_status,
        due_today=due_today,
        overdue=overdue,
    )
    return ok([SlaStatusResponse.model_validate(s) for s in statuses])


@router.get(
    "/status/{ticket_id}",
    response_model=ApiResponse[SlaStatusDetailsResponse],
    summary="Get ticket SLA status",
    description="""
    Get SLA information for a single ticket together with the config that
    produced it. `config` is null when that config has been deleted.
    """,
    responses={
        200: {"content": {"application/json": {"example": STATUS_EXAMPLE}}},
        404: {"model": ErrorResponse, "description": "Ticket is not tracked"},
    }
)
async def get_ticket_status(
    ticket_id: str,
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    sla_status, config = await services.tracker.get_status_details(context.tenant_id, ticket_id)
    return ok(SlaStatusDetailsResponse(
        status=SlaStatusResponse.model_validate(sla_status),
        config=SlaConfigResponse.model_validate(config) if config else None,
    ))


@router.get(
    "/status/{ticket_id}/logs",
    response_model=ApiResponse[List[SlaLogResponse]],
    summary="Get ticket SLA audit trail"
)
async def get_ticket_logs(
    ticket_id: str,
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    entries = await services.audit.list_ticket_logs(context.tenant_id, ticket_id)
    return ok([SlaLogResponse.model_validate(e) for e in entries])


@router.patch(
    "/status",
    response_model=ApiResponse[SlaStatusResponse],
    summary="Apply ticket lifecycle events",
    description="""
    Webhook called by the ticket system when a ticket gets its first
    response or is resolved. A leg that is already completed keeps its
    first recorded time.

    **Example Request**:
    ```json
    {
        "ticketId": "TICKET-001",
        "firstResponseAt": "2024-01-01T10:45:00Z"
    }
    ```
    """,
    responses={
        200: {"content": {"application/json": {"example": STATUS_EXAMPLE}}},
        404: {"model": ErrorResponse, "description": "Ticket is not tracked"},
        **ERROR_RESPONSES,
    }
)
async def update_status(
    request: SlaStatusUpdateRequest,
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    if request.first_response_at is None and request.resolved_at is None:
        raise ValidationException(
            "firstResponseAt or resolvedAt is required",
            {"ticketId": request.ticket_id}
        )

    sla_status = await services.tracker.update_status(
        context.tenant_id,
        request.ticket_id,
        first_response_at=request.first_response_at,
        resolved_at=request.resolved_at,
    )
    return ok(SlaStatusResponse.model_validate(sla_status), "SLA status updated")


@router.post(
    "/tickets",
    response_model=ApiResponse[SlaStatusResponse],
    summary="Start SLA tracking for a ticket",
    description="""
    Hook called when a ticket is created. Tracking is fail-open: when no
    config applies or calculation fails, the answer is still successful
    with `data: null`, so ticket creation is never blocked.
    """,
    responses=ERROR_RESPONSES
)
async def start_tracking(
    request: TicketCreatedRequest,
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    sla_status = await services.tracker.on_ticket_created(
        TicketSnapshot(
            id=request.ticket_id,
            tenant_id=context.tenant_id,
            priority=request.priority,
            created_at=request.created_at,
            category_id=request.category_id,
        )
    )
    if sla_status is None:
        return ok(None, "SLA tracking not started for this ticket")
    return ok(SlaStatusResponse.model_validate(sla_status), "SLA tracking started")


@router.post(
    "/calculate",
    response_model=ApiResponse[SlaCalculationResponse],
    summary="Calculate SLA due dates",
    description="Run the calculation engine for a ticket without storing anything.",
    responses={
        422: {"model": ErrorResponse, "description": "No SLA config applies"},
        **ERROR_RESPONSES,
    }
)
async def calculate(
    request: SlaCalculateRequest,
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    calculation = await services.engine.calculate(
        ticket_id=request.ticket_id,
        tenant_id=context.tenant_id,
        priority=request.priority,
        created_at=request.created_at,
        category_id=request.category_id,
    )
    return ok(SlaCalculationResponse.model_validate(calculation))


@router.post(
    "/recalculate-all",
    response_model=ApiResponse[RecalculationResponse],
    summary="Recalculate all open SLAs",
    description="Administrators only. Stores the current state of every open leg of the tenant.",
    responses={403: {"model": ErrorResponse, "description": "Caller is not an administrator"}}
)
async def recalculate_all(
    context: TenantContext = Depends(require_admin),
    services: SlaServices = Depends(get_sla_services)
):
    with log_latency(logger, "sla_recalculation", tenant_id=context.tenant_id):
        result = await services.tracker.recalculate_tenant(context.tenant_id)
    return ok(
        RecalculationResponse.model_validate(result),
        f"{result.updated} SLA statuses recalculated"
    )


# ========== Alerts & Reports ==========

@router.get(
    "/alerts",
    response_model=ApiResponse[List[SlaAlertResponse]],
    summary="List SLA alerts",
    description="At-risk warnings and breaches for open tickets, most recent first.",
    responses={200: {"content": {"application/json": {"example": ALERTS_EXAMPLE}}}}
)
async def list_alerts(
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    alerts = await services.alerts.generate_alerts(context.tenant_id)
    return ok([SlaAlertResponse.model_validate(a) for a in alerts])


@router.get(
    "/reports",
    response_model=ApiResponse[SlaReportResponse],
    summary="SLA compliance report",
    description="""
    Compliance for tickets created between `startDate` and `endDate`, with
    per-priority, per-category and daily breakdowns.
    """,
    responses=ERROR_RESPONSES
)
async def get_report(
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    start_date, end_date = ensure_utc(start_date), ensure_utc(end_date)
    if end_date < start_date:
        raise ValidationException(
            "endDate must not be before startDate",
            {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()}
        )
    report = await services.reports.generate_report(context.tenant_id, start_date, end_date)
    return ok(SlaReportResponse.from_report(report))


@router.get(
    "/statistics",
    response_model=ApiResponse[SlaStatisticsResponse],
    summary="SLA statistics overview"
)
async def get_statistics(
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    stats = await services.reports.get_statistics(context.tenant_id)
    return ok(SlaStatisticsResponse.from_statistics(stats))


@router.get(
    "/logs",
    response_model=ApiResponse[List[SlaLogResponse]],
    summary="SLA audit log",
    description="""
    **Query Parameters:**
    - `ticketId`: Entries for one ticket
    - `action`: created, updated, deleted, violation, resolution
    - `eventType`: e.g. `first_response_breach`
    - `dateFrom` / `dateTo`: Creation time window
    """,
    responses=ERROR_RESPONSES
)
async def list_logs(
    ticket_id: Optional[str] = Query(None, alias="ticketId"),
    action: Optional[LogActionStr] = Query(None),
    event_type: Optional[str] = Query(None, alias="eventType"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    context: TenantContext = Depends(get_tenant_context),
    services: SlaServices = Depends(get_sla_services)
):
    entries = await services.audit.list_logs(
        context.tenant_id,
        ticket_id=ticket_id,
        action=action,
        event_type=event_type,
        date_from=date_from,
        date_to=date_to,
    )
    return ok([SlaLogResponse.model_validate(e) for e in entries])


# Export router for inclusion in main app
sla_router = router
