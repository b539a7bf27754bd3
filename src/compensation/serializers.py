"""DRF Serializers for the compensation module."""
from __future__ import annotations

from rest_framework import serializers

from camps.models import CampStaffAssignment
from compensation.models import (
    PLAN_PARAM_FIELDS,
    CompensationDaySnapshot,
    CompensationPlan,
    SessionCompensation,
)


# ────────────────────────────────────────────────────────────
# Plans & records
# ────────────────────────────────────────────────────────────

class CompensationPlanSerializer(serializers.ModelSerializer):
    class Meta:
        model = CompensationPlan
        fields = [
            "id", "plan_code", "name", "description", "version", "is_active",
            *PLAN_PARAM_FIELDS,
            "created_at", "updated_at",
        ]
        read_only_fields = ["id", "version", "is_active", "created_at", "updated_at"]


class SessionCompensationSerializer(serializers.ModelSerializer):
    camp_name = serializers.CharField(source="camp.name", read_only=True)
    staff_name = serializers.SerializerMethodField()
    plan_code = serializers.CharField(source="compensation_plan.plan_code", read_only=True)
    is_finalized = serializers.BooleanField(read_only=True)

    class Meta:
        model = SessionCompensation
        fields = [
            "id", "camp", "camp_name", "tenant", "staff_profile", "staff_name",
            "staff_role", "compensation_plan", "plan_code", "plan_version",
            *PLAN_PARAM_FIELDS,
            "total_enrolled_campers", "csat_avg_score", "budget_variance",
            "guest_speaker_count",
            "fixed_stipend_total", "enrollment_bonus_earned", "csat_bonus_earned",
            "budget_efficiency_bonus_earned", "guest_speaker_bonus_earned",
            "total_variable_bonus", "total_compensation", "calculated_at",
            "status", "is_finalized", "finalized_at", "finalized_by",
            "superseded_at", "superseded_by", "supersedes", "supersede_reason",
            "created_at",
        ]
        read_only_fields = fields

    def get_staff_name(self, obj):
        return obj.staff_profile.get_full_name() or obj.staff_profile.email


class CompensationDaySnapshotSerializer(serializers.ModelSerializer):
    class Meta:
        model = CompensationDaySnapshot
        fields = [
            "id", "session_compensation", "camp", "staff_profile", "day_number", "date",
            "day_enrolled_campers", "day_checked_in_count", "day_checked_out_count",
            "day_no_show_count", "day_csat_avg_score", "day_guest_speaker_count",
            "notes", "created_at",
        ]
        read_only_fields = fields


# ────────────────────────────────────────────────────────────
# Inputs
# ────────────────────────────────────────────────────────────

class AttachPlanSerializer(serializers.Serializer):
    staff_profile = serializers.UUIDField()
    plan_code = serializers.CharField(max_length=30)
    role = serializers.ChoiceField(
        choices=CampStaffAssignment.Role.choices,
        default=CampStaffAssignment.Role.COACH,
    )


class SupersedeSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=2000, allow_blank=False, trim_whitespace=True)


class DaySnapshotCaptureSerializer(serializers.Serializer):
    day_number = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    enrolled_campers = serializers.IntegerField(min_value=0, default=0)
    checked_in_count = serializers.IntegerField(min_value=0, default=0)
    checked_out_count = serializers.IntegerField(min_value=0, default=0)
    no_show_count = serializers.IntegerField(min_value=0, default=0)
    csat_avg_score = serializers.DecimalField(
        max_digits=3, decimal_places=2, min_value=0, max_value=5, required=False, allow_null=True,
    )
    guest_speaker_count = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


# ────────────────────────────────────────────────────────────
# Rollups
# ────────────────────────────────────────────────────────────

class IncentiveLineItemSerializer(serializers.Serializer):
    record_id = serializers.UUIDField()
    camp_id = serializers.UUIDField()
    camp_name = serializers.CharField()
    tenant_id = serializers.UUIDField()
    plan_name = serializers.CharField()
    plan_code = serializers.CharField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    fixed_stipend = serializers.DecimalField(max_digits=18, decimal_places=2)
    variable_bonus = serializers.DecimalField(max_digits=18, decimal_places=2)
    total = serializers.DecimalField(max_digits=18, decimal_places=2)
    is_finalized = serializers.BooleanField()
    calculated_at = serializers.DateTimeField(allow_null=True)
    finalized_at = serializers.DateTimeField(allow_null=True)


class IncentiveSnapshotSerializer(serializers.Serializer):
    total_compensation = serializers.DecimalField(max_digits=18, decimal_places=2)
    pending_compensation = serializers.DecimalField(max_digits=18, decimal_places=2)
    finalized_compensation = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_sessions = serializers.IntegerField()
    avg_csat_score = serializers.DecimalField(max_digits=5, decimal_places=2, allow_null=True)
    avg_enrollment = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    line_items = IncentiveLineItemSerializer(many=True)


class StaffIncentiveSummarySerializer(serializers.Serializer):
    staff_profile_id = serializers.UUIDField()
    staff_name = serializers.CharField()
    email = serializers.EmailField()
    role = serializers.CharField()
    total_sessions = serializers.IntegerField()
    pending_compensation = serializers.DecimalField(max_digits=18, decimal_places=2)
    finalized_compensation = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_compensation = serializers.DecimalField(max_digits=18, decimal_places=2)
    avg_csat_score = serializers.DecimalField(max_digits=5, decimal_places=2, allow_null=True)
    avg_enrollment = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)


class CampIncentiveSummarySerializer(serializers.Serializer):
    camp_id = serializers.UUIDField()
    camp_name = serializers.CharField()
    tenant_id = serializers.UUIDField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    total_sessions = serializers.IntegerField()
    pending_compensation = serializers.DecimalField(max_digits=18, decimal_places=2)
    finalized_compensation = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_compensation = serializers.DecimalField(max_digits=18, decimal_places=2)


class TenantRefSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    name = serializers.CharField()
    code = serializers.CharField()


class TerritoryOverviewSerializer(serializers.Serializer):
    tenant = TenantRefSerializer()
    totals = IncentiveSnapshotSerializer()
    per_staff = StaffIncentiveSummarySerializer(many=True)
    per_camp = CampIncentiveSummarySerializer(many=True)


class GlobalOverviewSerializer(serializers.Serializer):
    totals = IncentiveSnapshotSerializer()
    territories = TerritoryOverviewSerializer(many=True)
    per_camp = CampIncentiveSummarySerializer(many=True)
