"""Django admin configuration for the tenants app."""
from django.contrib import admin

from tenants.models import AuditLog, Tenant, TenantUser


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "owner_name", "currency", "is_active", "created_at")
    list_filter = ("is_active", "currency")
    search_fields = ("name", "code", "owner_name", "email", "phone")
    readonly_fields = ("id", "created_at", "updated_at")
    list_per_page = 50


@admin.register(TenantUser)
class TenantUserAdmin(admin.ModelAdmin):
    list_display = ("user", "tenant", "is_default")
    list_filter = ("is_default", "tenant")
    search_fields = (
        "user__email",
        "user__first_name",
        "user__last_name",
        "tenant__name",
        "tenant__code",
    )
    raw_id_fields = ("user", "tenant")
    list_select_related = ("user", "tenant")


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "actor", "tenant", "action", "entity_type", "entity_id")
    list_filter = ("action", "entity_type", "tenant")
    search_fields = (
        "entity_id",
        "actor__email",
        "actor__first_name",
        "actor__last_name",
        "action",
        "entity_type",
    )
    readonly_fields = (
        "actor",
        "tenant",
        "action",
        "entity_type",
        "entity_id",
        "before_json",
        "after_json",
        "ip_address",
        "created_at",
    )
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
