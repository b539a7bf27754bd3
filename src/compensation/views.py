"""API views for staff compensation."""
from __future__ import annotations

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.shortcuts import get_object_or_404
from rest_framework import filters, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import User
from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import IsHQAdminOrReadOnly, IsLicenseeOrHQ
from camps.models import Camp
from compensation import aggregator, services
from compensation.exceptions import CompensationConflict, CompensationNotFound
from compensation.models import CompensationPlan, SessionCompensation
from compensation.serializers import (
    AttachPlanSerializer,
    CompensationDaySnapshotSerializer,
    CompensationPlanSerializer,
    DaySnapshotCaptureSerializer,
    GlobalOverviewSerializer,
    IncentiveSnapshotSerializer,
    SessionCompensationSerializer,
    SupersedeSerializer,
    TerritoryOverviewSerializer,
)

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────────────────

def _caller(request) -> aggregator.CallerContext:
    return aggregator.CallerContext.for_user(request.user)


def _validation_error(exc: DjangoValidationError) -> ValidationError:
    if hasattr(exc, "error_dict"):
        return ValidationError(exc.message_dict)
    return ValidationError({"detail": exc.messages})


def _resolve_camp(request, camp_id) -> Camp:
    """Camp the caller may sign off on; other territories look missing."""
    camp = Camp.objects.select_related("tenant").filter(pk=camp_id).first()
    if camp is None or not services.can_sign_off(request.user, camp.tenant_id):
        raise NotFound("Camp not found.")
    return camp


def _conflict(message, record=None) -> Response:
    payload = {"detail": str(message)}
    if record is not None:
        payload["record"] = SessionCompensationSerializer(record).data
    return Response(payload, status=status.HTTP_409_CONFLICT)


# ────────────────────────────────────────────────────────────
# Plan catalog
# ────────────────────────────────────────────────────────────

class CompensationPlanViewSet(viewsets.ModelViewSet):
    """Plan catalog. Everyone authenticated reads, HQ writes; delete retires."""
    serializer_class = CompensationPlanSerializer
    permission_classes = [permissions.IsAuthenticated, IsHQAdminOrReadOnly]
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ["plan_code", "name"]
    ordering_fields = ["plan_code", "name", "version"]
    pagination_class = StandardResultsSetPagination
    queryset = CompensationPlan.objects.all()

    def get_queryset(self):
        qs = super().get_queryset()
        if self.request.query_params.get("active") in ("1", "true", "True"):
            qs = qs.filter(is_active=True)
        return qs

    def perform_create(self, serializer):
        try:
            serializer.instance = services.create_plan(
                actor=self.request.user, **serializer.validated_data,
            )
        except DjangoValidationError as exc:
            raise _validation_error(exc)

    def perform_update(self, serializer):
        changes = dict(serializer.validated_data)
        plan_code = changes.pop("plan_code", None)
        if plan_code is not None and plan_code.strip().upper() != serializer.instance.plan_code:
            raise ValidationError({"plan_code": "The plan code cannot be changed."})
        try:
            serializer.instance = services.update_plan(
                serializer.instance, actor=self.request.user, **changes,
            )
        except DjangoValidationError as exc:
            raise _validation_error(exc)

    def destroy(self, request, *args, **kwargs):
        plan = services.retire_plan(self.get_object(), actor=request.user)
        return Response(self.get_serializer(plan).data, status=status.HTTP_200_OK)


# ────────────────────────────────────────────────────────────
# Session records
# ────────────────────────────────────────────────────────────

class SessionCompensationViewSet(viewsets.ReadOnlyModelViewSet):
    """Compensation records visible to the caller, with the correction action."""
    serializer_class = SessionCompensationSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [filters.OrderingFilter]
    ordering_fields = ["created_at", "total_compensation", "status"]
    pagination_class = StandardResultsSetPagination

    def get_queryset(self):
        qs = aggregator.visible_compensations(_caller(self.request))
        params = self.request.query_params
        if params.get("camp"):
            qs = qs.filter(camp_id=params["camp"])
        if params.get("staff"):
            qs = qs.filter(staff_profile_id=params["staff"])
        if params.get("status") in SessionCompensation.Status.values:
            qs = qs.filter(status=params["status"])
        return qs

    @action(detail=True, methods=["post"], permission_classes=[permissions.IsAuthenticated, IsLicenseeOrHQ])
    def supersede(self, request, pk=None):
        record = self.get_object()
        serializer = SupersedeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            replacement = services.supersede_compensation(
                record, request.user, serializer.validated_data["reason"],
            )
        except CompensationConflict as exc:
            return _conflict(exc, record)
        except CompensationNotFound as exc:
            raise NotFound(str(exc))
        except DjangoPermissionDenied as exc:
            raise PermissionDenied(str(exc))
        except DjangoValidationError as exc:
            raise _validation_error(exc)
        return Response(
            SessionCompensationSerializer(replacement).data,
            status=status.HTTP_201_CREATED,
        )


# ────────────────────────────────────────────────────────────
# Incentive rollups
# ────────────────────────────────────────────────────────────

class MyIncentiveSnapshotView(APIView):
    """GET /api/v1/incentives/me/"""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "incentives"

    def get(self, request):
        snapshot = aggregator.get_my_incentive_snapshot(_caller(request))
        return Response(IncentiveSnapshotSerializer(snapshot).data)


class TerritoryIncentiveOverviewView(APIView):
    """GET /api/v1/incentives/territories/<tenant_id>/"""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "incentives"

    def get(self, request, tenant_id):
        try:
            overview = aggregator.get_territory_incentive_overview(_caller(request), tenant_id)
        except DjangoPermissionDenied as exc:
            raise PermissionDenied(str(exc))
        except CompensationNotFound as exc:
            raise NotFound(str(exc))
        return Response(TerritoryOverviewSerializer(overview).data)


class GlobalIncentiveOverviewView(APIView):
    """GET /api/v1/incentives/overview/"""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "incentives"

    def get(self, request):
        try:
            overview = aggregator.get_global_incentive_overview(_caller(request))
        except DjangoPermissionDenied as exc:
            raise PermissionDenied(str(exc))
        return Response(GlobalOverviewSerializer(overview).data)


class StaffCompensationHistoryView(APIView):
    """GET /api/v1/incentives/staff/<user_id>/history/"""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "incentives"

    def get(self, request, user_id):
        try:
            history = aggregator.get_person_compensation_history(_caller(request), user_id)
        except CompensationNotFound as exc:
            raise NotFound(str(exc))
        return Response(IncentiveSnapshotSerializer(history).data)


# ────────────────────────────────────────────────────────────
# Workflow
# ────────────────────────────────────────────────────────────

class CampRecomputeView(APIView):
    """
    POST /api/v1/incentives/camps/<camp_id>/recompute/
    Recomputes every pending record of the camp from its current facts.
    """
    permission_classes = [permissions.IsAuthenticated, IsLicenseeOrHQ]

    def post(self, request, camp_id):
        camp = _resolve_camp(request, camp_id)
        updated = services.recompute_pending(camp.pk)
        return Response({"camp": str(camp.pk), "updated": updated})


class FinalizeSessionView(APIView):
    """POST /api/v1/incentives/camps/<camp_id>/staff/<user_id>/finalize/"""
    permission_classes = [permissions.IsAuthenticated, IsLicenseeOrHQ]

    def post(self, request, camp_id, user_id):
        try:
            result = services.finalize_session(camp_id, user_id, request.user)
        except CompensationNotFound as exc:
            raise NotFound(str(exc))
        except DjangoPermissionDenied as exc:
            raise PermissionDenied(str(exc))

        if not result.succeeded:
            return _conflict("This compensation is already finalized.", result.record)
        return Response(SessionCompensationSerializer(result.record).data)


class CampAssignmentView(APIView):
    """
    POST /api/v1/incentives/camps/<camp_id>/assignments/
    Body: {"staff_profile": "<uuid>", "plan_code": "MID", "role": "COACH"}
    """
    permission_classes = [permissions.IsAuthenticated, IsLicenseeOrHQ]

    def post(self, request, camp_id):
        camp = _resolve_camp(request, camp_id)
        serializer = AttachPlanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        staff = get_object_or_404(User, pk=data["staff_profile"], is_active=True)
        try:
            plan = services.get_plan_by_code(data["plan_code"])
        except CompensationNotFound as exc:
            raise ValidationError({"plan_code": str(exc)})

        try:
            record = services.attach_plan_to_session(
                camp, staff, plan, role=data["role"], actor=request.user,
            )
        except CompensationConflict as exc:
            return _conflict(exc)
        except DjangoValidationError as exc:
            raise _validation_error(exc)
        return Response(SessionCompensationSerializer(record).data, status=status.HTTP_201_CREATED)


class CampDaySnapshotView(APIView):
    """
    GET  /api/v1/incentives/camps/<camp_id>/staff/<user_id>/days/
    POST /api/v1/incentives/camps/<camp_id>/staff/<user_id>/days/
    Daily snapshots of one staff member's session; POST captures a day.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, camp_id, user_id):
        try:
            snapshots = aggregator.get_day_snapshots(_caller(request), camp_id, user_id)
        except CompensationNotFound as exc:
            raise NotFound(str(exc))
        return Response(CompensationDaySnapshotSerializer(snapshots, many=True).data)

    def post(self, request, camp_id, user_id):
        serializer = DaySnapshotCaptureSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        camp = Camp.objects.select_related("tenant").filter(pk=camp_id).first()
        staff = User.objects.filter(pk=user_id).first()
        if camp is None or staff is None:
            raise NotFound("Compensation record not found.")
        try:
            snapshot = services.capture_day_snapshot(
                camp,
                staff,
                day_number=data["day_number"],
                day_date=data["date"],
                actor=request.user,
                enrolled_campers=data["enrolled_campers"],
                checked_in_count=data["checked_in_count"],
                checked_out_count=data["checked_out_count"],
                no_show_count=data["no_show_count"],
                csat_avg_score=data.get("csat_avg_score"),
                guest_speaker_count=data.get("guest_speaker_count"),
                notes=data.get("notes", ""),
            )
        except CompensationNotFound as exc:
            raise NotFound(str(exc))
        except DjangoPermissionDenied as exc:
            raise PermissionDenied(str(exc))
        except DjangoValidationError as exc:
            raise _validation_error(exc)
        return Response(CompensationDaySnapshotSerializer(snapshot).data, status=status.HTTP_201_CREATED)
