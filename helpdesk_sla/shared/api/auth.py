"""
Tenant Context
==============

Authentication happens upstream; the gateway forwards the authenticated
user and tenant as headers. This module turns them into one immutable
TenantContext per request and checks presence and role only.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header

from helpdesk_sla.config import ADMIN_ROLES
from helpdesk_sla.core import AuthenticationException, PermissionDeniedException


@dataclass(frozen=True)
class TenantContext:
    """The authenticated caller and the tenant every query is scoped to."""
    tenant_id: str
    user_id: str
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def get_tenant_context(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> TenantContext:
    if not x_user_id:
        raise AuthenticationException("Authentication required")
    if not x_tenant_id:
        raise AuthenticationException("User not associated with tenant")
    return TenantContext(tenant_id=x_tenant_id, user_id=x_user_id, role=x_user_role)


async def require_admin(
    context: TenantContext = Depends(get_tenant_context),
) -> TenantContext:
    if not context.is_admin:
        raise PermissionDeniedException(
            "Only administrators can recalculate all SLAs",
            {"role": context.role},
        )
    return context
