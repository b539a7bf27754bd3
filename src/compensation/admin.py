"""Django admin for the compensation module."""
from django.conf import settings
from django.contrib import admin

from compensation.models import (
    PLAN_PARAM_FIELDS,
    CompensationDaySnapshot,
    CompensationPlan,
    SessionCompensation,
)
from compensation.services import recompute_record
from tenants.services import create_audit_log


@admin.register(CompensationPlan)
class CompensationPlanAdmin(admin.ModelAdmin):
    list_display = (
        "plan_code", "name", "version", "pre_camp_stipend_amount",
        "on_site_stipend_amount", "enrollment_threshold", "is_active",
    )
    list_filter = ("is_active",)
    search_fields = ("plan_code", "name")
    readonly_fields = ("version", "created_at", "updated_at")
    fieldsets = (
        (None, {"fields": ("plan_code", "name", "description", "is_active", "version")}),
        ("Fixed stipend", {"fields": ("pre_camp_stipend_amount", "on_site_stipend_amount")}),
        ("Enrollment bonus", {"fields": ("enrollment_threshold", "enrollment_bonus_per_camper")}),
        (
            "Other bonuses",
            {
                "fields": (
                    "csat_required_score", "csat_bonus_amount",
                    "budget_efficiency_rate",
                    "guest_speaker_required_count", "guest_speaker_bonus_amount",
                ),
            },
        ),
        ("Metadata", {"fields": ("created_at", "updated_at")}),
    )

    def save_model(self, request, obj, form, change):
        edited = [field for field in form.changed_data if field in PLAN_PARAM_FIELDS]
        if change and edited:
            obj.version += 1
        super().save_model(request, obj, form, change)
        if change and edited:
            create_audit_log(
                actor=request.user,
                tenant=None,
                action="PLAN_UPDATED",
                entity_type="CompensationPlan",
                entity_id=str(obj.pk),
                after={"version": obj.version, "fields": edited},
            )


@admin.register(SessionCompensation)
class SessionCompensationAdmin(admin.ModelAdmin):
    list_display = (
        "staff_profile", "camp", "tenant", "compensation_plan",
        "total_display", "status", "superseded_at",
    )
    list_filter = ("status", "tenant", "compensation_plan")
    search_fields = ("staff_profile__email", "staff_profile__last_name", "camp__name")
    list_select_related = ("staff_profile", "camp", "tenant", "compensation_plan")
    raw_id_fields = ("camp", "staff_profile", "supersedes")
    actions = ("recompute_selected",)

    def get_readonly_fields(self, request, obj=None):
        # Snapshot, identity and computed fields only change through the
        # compensation services (attach, recompute, finalize, supersede).
        return [field.name for field in SessionCompensation._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description="Total")
    def total_display(self, obj):
        return f"{obj.total_compensation:,.2f} {settings.CURRENCY}"

    @admin.action(description="Recompute selected pending records")
    def recompute_selected(self, request, queryset):
        updated = 0
        for record in queryset.active().pending():
            if recompute_record(record).updated:
                updated += 1
        self.message_user(request, f"{updated} record(s) recomputed.")


@admin.register(CompensationDaySnapshot)
class CompensationDaySnapshotAdmin(admin.ModelAdmin):
    list_display = (
        "staff_profile", "camp", "day_number", "date",
        "day_checked_in_count", "day_guest_speaker_count",
    )
    list_filter = ("camp__tenant",)
    search_fields = ("staff_profile__email", "staff_profile__last_name", "camp__name")
    list_select_related = ("staff_profile", "camp")

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in CompensationDaySnapshot._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
