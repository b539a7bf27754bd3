"""Models for the tenants app."""
import uuid

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


# ---------------------------------------------------------------------------
# Tenant
# ---------------------------------------------------------------------------

class Tenant(TimeStampedModel):
    """A licensed territory operating camps under the platform brand."""

    name = models.CharField("name", max_length=255)
    code = models.CharField("code", max_length=50, unique=True)
    owner_name = models.CharField("owner name", max_length=255, blank=True, default="")
    email = models.EmailField("email", blank=True, default="")
    phone = models.CharField("phone", max_length=30, blank=True, default="")
    currency = models.CharField("currency", max_length=10, default="USD")
    is_active = models.BooleanField("active", default=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Territory"
        verbose_name_plural = "Territories"

    def __str__(self):
        return f"{self.name} ({self.code})"


# ---------------------------------------------------------------------------
# TenantUser
# ---------------------------------------------------------------------------

class TenantUser(models.Model):
    """Links a user to one or more territories."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="tenant_users",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="tenant_users",
    )
    is_default = models.BooleanField(
        default=False,
        help_text="If True, this territory is the user's default territory.",
    )

    class Meta:
        unique_together = [("tenant", "user")]
        verbose_name = "Territory member"
        verbose_name_plural = "Territory members"

    def __str__(self):
        return f"{self.user} - {self.tenant}"


# ---------------------------------------------------------------------------
# AuditLog
# ---------------------------------------------------------------------------

class AuditLog(models.Model):
    """Immutable log of every significant action in the system."""

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    action = models.CharField(max_length=100)
    entity_type = models.CharField(max_length=100, db_index=True)
    entity_id = models.CharField(max_length=255)
    before_json = models.JSONField(null=True, blank=True)
    after_json = models.JSONField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Audit log entry"
        verbose_name_plural = "Audit log"
        indexes = [
            models.Index(fields=["tenant", "created_at"], name="audit_tenant_created_idx"),
            models.Index(fields=["action", "created_at"], name="audit_action_created_idx"),
            models.Index(fields=["entity_type", "created_at"], name="audit_entity_created_idx"),
        ]

    def __str__(self):
        return f"[{self.created_at}] {self.action} on {self.entity_type} #{self.entity_id}"
