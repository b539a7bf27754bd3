"""Django admin configuration for the camps app."""
from django.contrib import admin

from camps.models import Camp, CampStaffAssignment


class CampStaffAssignmentInline(admin.TabularInline):
    model = CampStaffAssignment
    extra = 0
    fields = ("user", "role", "compensation_plan", "assigned_by")
    raw_id_fields = ("user", "assigned_by")


@admin.register(Camp)
class CampAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "tenant",
        "start_date",
        "end_date",
        "status",
        "enrolled_campers",
        "csat_avg_score",
    )
    list_filter = ("status", "tenant")
    search_fields = ("name", "tenant__name", "tenant__code")
    readonly_fields = ("id", "created_at", "updated_at")
    list_select_related = ("tenant",)
    date_hierarchy = "start_date"
    inlines = [CampStaffAssignmentInline]
    fieldsets = (
        (None, {"fields": ("tenant", "name", "status", "capacity")}),
        ("Dates", {"fields": ("start_date", "end_date")}),
        (
            "Session results",
            {
                "fields": (
                    "enrolled_campers",
                    "csat_avg_score",
                    "budget_preapproved_total",
                    "budget_actual_total",
                    "guest_speaker_count",
                ),
            },
        ),
        ("Metadata", {"fields": ("id", "created_at", "updated_at")}),
    )

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is not None and obj.has_compensation_records():
            # Records are scoped by the camp's territory.
            readonly.append("tenant")
        return readonly


@admin.register(CampStaffAssignment)
class CampStaffAssignmentAdmin(admin.ModelAdmin):
    list_display = ("user", "camp", "role", "compensation_plan", "created_at")
    list_filter = ("role", "camp__tenant")
    search_fields = ("user__email", "user__last_name", "camp__name")
    raw_id_fields = ("user", "camp", "assigned_by")
    list_select_related = ("user", "camp", "compensation_plan")
