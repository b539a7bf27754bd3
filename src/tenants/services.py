"""Service / helper functions for the tenants app."""
from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model

from tenants.models import AuditLog, Tenant, TenantUser

User = get_user_model()


def create_audit_log(
    actor: User | None,
    tenant: Tenant | None,
    action: str,
    entity_type: str,
    entity_id: str,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
    ip: str | None = None,
) -> AuditLog:
    """Create and return a new :class:`~tenants.models.AuditLog` entry."""
    return AuditLog.objects.create(
        actor=actor,
        tenant=tenant,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=before,
        after_json=after,
        ip_address=ip,
    )


def get_default_tenant(user: User) -> Tenant | None:
    """Return the user's default territory.

    Falls back to the first active membership when none is flagged as
    default; returns ``None`` for users without any membership (HQ staff
    typically).
    """
    memberships = (
        TenantUser.objects
        .filter(user=user, tenant__is_active=True)
        .select_related("tenant")
        .order_by("-is_default", "tenant__name")
    )
    membership = memberships.first()
    return membership.tenant if membership else None
