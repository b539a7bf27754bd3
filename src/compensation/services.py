"""Business logic / service layer for staff compensation.

Plan catalog edits, attaching a plan to a staff member's camp session,
recomputation of pending records and the PENDING -> FINALIZED workflow
live here so views, signals and tasks stay thin.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any

from django.conf import settings
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from camps.models import Camp, CampStaffAssignment
from camps.services import get_session_facts
from compensation.calculator import CompensationBreakdown, SessionFacts, calculate
from compensation.exceptions import CompensationConflict, CompensationNotFound
from compensation.models import (
    MAX_COMPUTED_AMOUNT,
    PLAN_PARAM_FIELDS,
    CompensationDaySnapshot,
    CompensationPlan,
    SessionCompensation,
)
from tenants.services import create_audit_log, get_default_tenant

logger = logging.getLogger("campops")

PLAN_EDITABLE_FIELDS = ("name", "description", *PLAN_PARAM_FIELDS)


class RecomputeStatus(str, enum.Enum):
    UPDATED = "UPDATED"
    CONFLICT = "CONFLICT"


class FinalizeStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    ALREADY_FINALIZED = "ALREADY_FINALIZED"


@dataclass(frozen=True)
class RecomputeResult:
    status: RecomputeStatus
    record: SessionCompensation
    breakdown: CompensationBreakdown | None = None

    @property
    def updated(self) -> bool:
        return self.status == RecomputeStatus.UPDATED


@dataclass(frozen=True)
class FinalizeResult:
    status: FinalizeStatus
    record: SessionCompensation

    @property
    def succeeded(self) -> bool:
        return self.status == FinalizeStatus.SUCCESS


# ==================================================================
# Helpers
# ==================================================================

def _plan_payload(plan: CompensationPlan) -> dict[str, Any]:
    payload = {
        "plan_code": plan.plan_code,
        "version": plan.version,
        "is_active": plan.is_active,
    }
    for field in PLAN_EDITABLE_FIELDS:
        value = getattr(plan, field)
        payload[field] = None if value is None else str(value)
    return payload


def _record_payload(record: SessionCompensation) -> dict[str, Any]:
    return {
        "camp": str(record.camp_id),
        "staff_profile": str(record.staff_profile_id),
        "status": record.status,
        "plan_code": record.compensation_plan.plan_code,
        "plan_version": record.plan_version,
        "fixed_stipend_total": str(record.fixed_stipend_total),
        "total_variable_bonus": str(record.total_variable_bonus),
        "total_compensation": str(record.total_compensation),
    }


def can_sign_off(user, tenant_id) -> bool:
    """HQ admins sign off anywhere, licensee owners within their territory.

    A licensee's territory is their default membership, the same one the
    rollups scope them to.
    """
    if getattr(user, "is_hq_admin", False):
        return True
    if getattr(user, "is_licensee_owner", False):
        territory = get_default_tenant(user)
        return territory is not None and str(territory.pk) == str(tenant_id)
    return False


def _require_sign_off(user, tenant_id) -> None:
    if getattr(user, "is_hq_admin", False):
        return
    if not getattr(user, "is_licensee_owner", False):
        raise PermissionDenied("Only licensee owners and HQ can sign off compensation.")
    if not can_sign_off(user, tenant_id):
        # Foreign territories look like missing ones.
        raise CompensationNotFound("Compensation record not found.")


def get_active_record(camp_id, staff_profile_id) -> SessionCompensation:
    record = (
        SessionCompensation.objects
        .active()
        .select_related("camp", "tenant", "compensation_plan", "staff_profile")
        .filter(camp_id=camp_id, staff_profile_id=staff_profile_id)
        .first()
    )
    if record is None:
        raise CompensationNotFound("Compensation record not found.")
    return record


# ==================================================================
# Plan catalog
# ==================================================================

def create_plan(*, actor=None, **data) -> CompensationPlan:
    """Create a compensation plan.

    Raises
    ------
    django.core.exceptions.ValidationError
        If any amount, rate, threshold or count is negative (or otherwise
        invalid). Nothing is saved in that case.
    """
    plan = CompensationPlan(**data)
    plan.full_clean()
    plan.save()

    create_audit_log(
        actor=actor,
        tenant=None,
        action="PLAN_CREATED",
        entity_type="CompensationPlan",
        entity_id=str(plan.pk),
        after=_plan_payload(plan),
    )
    logger.info("Compensation plan created: %s by %s", plan.plan_code, actor)
    return plan


def update_plan(plan: CompensationPlan, *, actor=None, **changes) -> CompensationPlan:
    """Edit a plan and bump its version.

    Session records keep the parameters they were created with; only
    records attached afterwards see the new values.
    """
    unknown = set(changes) - set(PLAN_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError({field: "This field cannot be edited." for field in sorted(unknown)})

    with transaction.atomic():
        plan = CompensationPlan.objects.select_for_update().get(pk=plan.pk)
        before = _plan_payload(plan)
        for field, value in changes.items():
            setattr(plan, field, value)
        plan.full_clean()
        plan.version += 1
        plan.save()

        create_audit_log(
            actor=actor,
            tenant=None,
            action="PLAN_UPDATED",
            entity_type="CompensationPlan",
            entity_id=str(plan.pk),
            before=before,
            after=_plan_payload(plan),
        )

    logger.info("Compensation plan %s updated to v%s by %s", plan.plan_code, plan.version, actor)
    return plan


def retire_plan(plan: CompensationPlan, *, actor=None) -> CompensationPlan:
    """Deactivate a plan so it can no longer be attached to new sessions."""
    if not plan.is_active:
        return plan
    plan.is_active = False
    plan.save(update_fields=["is_active", "updated_at"])
    create_audit_log(
        actor=actor,
        tenant=None,
        action="PLAN_RETIRED",
        entity_type="CompensationPlan",
        entity_id=str(plan.pk),
        after={"plan_code": plan.plan_code, "is_active": False},
    )
    logger.info("Compensation plan retired: %s by %s", plan.plan_code, actor)
    return plan


def get_plan_by_code(plan_code: str) -> CompensationPlan:
    try:
        return CompensationPlan.objects.get(plan_code=(plan_code or "").strip().upper())
    except CompensationPlan.DoesNotExist:
        raise CompensationNotFound(f"Unknown compensation plan '{plan_code}'.")


# ==================================================================
# Session records
# ==================================================================

def attach_plan_to_session(
    camp: Camp,
    staff_profile,
    plan: CompensationPlan,
    *,
    role: str = CampStaffAssignment.Role.COACH,
    actor=None,
) -> SessionCompensation:
    """Assign *staff_profile* to *camp* under *plan* and create the record.

    The plan parameters are copied onto the record. Re-attaching a plan to
    a PENDING record replaces the snapshot; a FINALIZED record cannot be
    changed this way.

    Raises
    ------
    ValidationError
        If the plan is retired.
    CompensationConflict
        If the staff member's record for this camp is already finalized.
    """
    if not plan.is_active:
        raise ValidationError({"compensation_plan": "This plan is retired and cannot be attached."})

    snapshot = {field: getattr(plan, field) for field in PLAN_PARAM_FIELDS}

    with transaction.atomic():
        CampStaffAssignment.objects.update_or_create(
            camp=camp,
            user=staff_profile,
            defaults={"role": role, "compensation_plan": plan, "assigned_by": actor},
        )

        record = (
            SessionCompensation.objects
            .select_for_update()
            .active()
            .filter(camp=camp, staff_profile=staff_profile)
            .first()
        )
        if record is not None and record.is_finalized:
            raise CompensationConflict("This compensation record is finalized; supersede it instead.")

        before = _record_payload(record) if record else None
        if record is None:
            record = SessionCompensation(
                camp=camp,
                tenant_id=camp.tenant_id,
                staff_profile=staff_profile,
            )
        for field, value in snapshot.items():
            setattr(record, field, value)
        record.staff_role = role
        record.compensation_plan = plan
        record.plan_version = plan.version
        record.full_clean(exclude=["camp", "staff_profile"], validate_unique=False)
        record.save()

        recompute_record(record)

        create_audit_log(
            actor=actor,
            tenant=camp.tenant,
            action="COMPENSATION_PLAN_ATTACHED",
            entity_type="SessionCompensation",
            entity_id=str(record.pk),
            before=before,
            after=_record_payload(record),
        )

    logger.info(
        "Plan %s v%s attached to %s for camp %s",
        plan.plan_code, plan.version, staff_profile, camp.pk,
    )
    return record


def _computed_values(breakdown: CompensationBreakdown, facts: SessionFacts, now) -> dict[str, Any]:
    return {
        "total_enrolled_campers": facts.enrollment,
        "csat_avg_score": facts.csat_avg,
        "budget_variance": facts.budget_variance,
        "guest_speaker_count": facts.guest_speaker_count,
        "fixed_stipend_total": breakdown.fixed_stipend,
        "enrollment_bonus_earned": breakdown.enrollment_bonus,
        "csat_bonus_earned": breakdown.csat_bonus,
        "budget_efficiency_bonus_earned": breakdown.budget_bonus,
        "guest_speaker_bonus_earned": breakdown.guest_speaker_bonus,
        "total_variable_bonus": breakdown.variable_bonus,
        "total_compensation": breakdown.total,
        "calculated_at": now,
    }


def _with_day_snapshot_facts(record: SessionCompensation, facts: SessionFacts) -> SessionFacts:
    """Fill the guest speaker count from the day snapshots when the camp has none."""
    if facts.guest_speaker_count is not None:
        return facts
    daily = (
        CompensationDaySnapshot.objects
        .filter(camp_id=record.camp_id, staff_profile_id=record.staff_profile_id)
        .aggregate(days=Count("id"), speakers=Sum("day_guest_speaker_count"))
    )
    if not daily["days"]:
        return facts
    return replace(facts, guest_speaker_count=daily["speakers"] or 0)


def recompute_record(record: SessionCompensation, facts: SessionFacts | None = None) -> RecomputeResult:
    """Recompute one record from its snapshot and the camp's current facts.

    Writes only the facts-used and computed fields, in a single UPDATE
    conditioned on the record still being PENDING. A finalized (or
    superseded) record is left untouched and a CONFLICT result returned.
    """
    if facts is None:
        facts = get_session_facts(Camp.objects.get(pk=record.camp_id))
    facts = _with_day_snapshot_facts(record, facts)

    breakdown = calculate(record.plan_params, facts)
    if breakdown.total > MAX_COMPUTED_AMOUNT:
        raise ValidationError(
            {"total_compensation": "The computed compensation exceeds the storable amount."}
        )
    now = timezone.now()
    values = _computed_values(breakdown, facts, now)

    updated = (
        SessionCompensation.objects
        .filter(pk=record.pk, status=SessionCompensation.Status.PENDING, superseded_at__isnull=True)
        .update(updated_at=now, **values)
    )
    if not updated:
        logger.debug("Recompute skipped for finalized compensation %s", record.pk)
        return RecomputeResult(status=RecomputeStatus.CONFLICT, record=record)

    for field, value in values.items():
        setattr(record, field, value)
    record.updated_at = now
    return RecomputeResult(status=RecomputeStatus.UPDATED, record=record, breakdown=breakdown)


def recompute_pending(camp_id) -> int:
    """Recompute every pending record of a camp; returns how many were updated."""
    try:
        camp = Camp.objects.get(pk=camp_id)
    except Camp.DoesNotExist:
        raise CompensationNotFound("Camp not found.")

    facts = get_session_facts(camp)
    updated = 0
    records = SessionCompensation.objects.active().pending().filter(camp=camp)
    for record in records:
        if recompute_record(record, facts=facts).updated:
            updated += 1

    logger.info("Recomputed %s pending compensation record(s) for camp %s", updated, camp.pk)
    return updated


def camps_with_pending_compensation(today: date | None = None):
    """Camps that still carry pending records and are within the recompute window."""
    today = today or timezone.localdate()
    window_start = today - timedelta(days=settings.COMPENSATION_RECOMPUTE_WINDOW_DAYS)
    return (
        Camp.objects
        .filter(
            compensations__status=SessionCompensation.Status.PENDING,
            compensations__superseded_at__isnull=True,
            end_date__gte=window_start,
        )
        .exclude(status=Camp.Status.CANCELLED)
        .distinct()
    )


def finalize_session(camp_id, staff_profile_id, finalizer) -> FinalizeResult:
    """Freeze one staff member's compensation for a camp.

    The record is recomputed with the latest facts, then moved to
    FINALIZED with a conditional UPDATE so that only one concurrent
    finalizer wins. The losing call gets ``ALREADY_FINALIZED`` and the
    winner's stamp is left as is.

    Raises
    ------
    PermissionDenied
        If *finalizer* is neither a licensee owner nor HQ.
    CompensationNotFound
        If there is no record, or it belongs to another territory.
    """
    if not (getattr(finalizer, "is_hq_admin", False) or getattr(finalizer, "is_licensee_owner", False)):
        raise PermissionDenied("Only licensee owners and HQ can sign off compensation.")
    record = get_active_record(camp_id, staff_profile_id)
    _require_sign_off(finalizer, record.camp.tenant_id)

    with transaction.atomic():
        recompute_record(record)
        now = timezone.now()
        updated = (
            SessionCompensation.objects
            .filter(pk=record.pk, status=SessionCompensation.Status.PENDING, superseded_at__isnull=True)
            .update(
                status=SessionCompensation.Status.FINALIZED,
                finalized_at=now,
                finalized_by=finalizer,
                updated_at=now,
            )
        )
        record.refresh_from_db()
        if not updated:
            return FinalizeResult(status=FinalizeStatus.ALREADY_FINALIZED, record=record)

        create_audit_log(
            actor=finalizer,
            tenant=record.camp.tenant,
            action="COMPENSATION_FINALIZED",
            entity_type="SessionCompensation",
            entity_id=str(record.pk),
            after=_record_payload(record),
        )

    logger.info(
        "Compensation finalized: %s for %s (total %s) by %s",
        record.pk, record.staff_profile, record.total_compensation, finalizer,
    )
    return FinalizeResult(status=FinalizeStatus.SUCCESS, record=record)


def supersede_compensation(record: SessionCompensation, actor, reason: str) -> SessionCompensation:
    """Replace a finalized record with a new PENDING one.

    The old record is kept (marked superseded) for audit. The new record
    carries the same plan snapshot and is recomputed from current facts.

    Raises
    ------
    CompensationConflict
        If the record is still pending or was already superseded.
    """
    _require_sign_off(actor, record.camp.tenant_id)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError({"reason": "A reason is required to correct a finalized record."})
    if not record.is_finalized:
        raise CompensationConflict("Only finalized records can be superseded.")

    with transaction.atomic():
        now = timezone.now()
        marked = (
            SessionCompensation.objects
            .filter(
                pk=record.pk,
                status=SessionCompensation.Status.FINALIZED,
                superseded_at__isnull=True,
            )
            .update(superseded_at=now, superseded_by=actor, updated_at=now)
        )
        if not marked:
            raise CompensationConflict("This record has already been superseded.")

        replacement = SessionCompensation.objects.create(
            camp_id=record.camp_id,
            tenant_id=record.camp.tenant_id,
            staff_profile_id=record.staff_profile_id,
            staff_role=record.staff_role,
            compensation_plan_id=record.compensation_plan_id,
            plan_version=record.plan_version,
            supersedes=record,
            supersede_reason=reason,
            **record.snapshot_values(),
        )
        recompute_record(replacement)
        record.refresh_from_db()

        create_audit_log(
            actor=actor,
            tenant=record.camp.tenant,
            action="COMPENSATION_SUPERSEDED",
            entity_type="SessionCompensation",
            entity_id=str(record.pk),
            before=_record_payload(record),
            after={"replacement": str(replacement.pk), "reason": reason},
        )

    logger.info(
        "Compensation %s superseded by %s (%s) by %s",
        record.pk, replacement.pk, reason, actor,
    )
    return replacement


# ==================================================================
# Day snapshots
# ==================================================================

def capture_day_snapshot(
    camp: Camp,
    staff_profile,
    *,
    day_number: int,
    day_date: date,
    actor,
    enrolled_campers: int = 0,
    checked_in_count: int = 0,
    checked_out_count: int = 0,
    no_show_count: int = 0,
    csat_avg_score=None,
    guest_speaker_count: int | None = None,
    notes: str = "",
) -> CompensationDaySnapshot:
    """Record (or overwrite) one day of a staff member's camp session.

    Re-capturing a day replaces its counts. A guest speaker count left as
    ``None`` keeps the count already captured for that day. The active
    record is recomputed afterwards when it is still pending.

    Raises
    ------
    PermissionDenied
        If *actor* is neither a licensee owner nor HQ.
    CompensationNotFound
        If the staff member has no record for the camp, or the camp is in
        another territory.
    """
    _require_sign_off(actor, camp.tenant_id)
    record = get_active_record(camp.pk, staff_profile.pk)

    values = {
        "session_compensation": record,
        "date": day_date,
        "day_enrolled_campers": enrolled_campers,
        "day_checked_in_count": checked_in_count,
        "day_checked_out_count": checked_out_count,
        "day_no_show_count": no_show_count,
        "day_csat_avg_score": csat_avg_score,
        "notes": notes,
    }
    if guest_speaker_count is not None:
        values["day_guest_speaker_count"] = guest_speaker_count

    with transaction.atomic():
        snapshot, created = CompensationDaySnapshot.objects.select_for_update().get_or_create(
            camp=camp,
            staff_profile=staff_profile,
            day_number=day_number,
            defaults=values,
        )
        if not created:
            for field, value in values.items():
                setattr(snapshot, field, value)
        snapshot.full_clean(exclude=["session_compensation", "camp", "staff_profile"])
        snapshot.save()

        if not record.is_finalized:
            recompute_record(record)

    logger.info(
        "Day %s captured for %s at camp %s (%s guest speaker(s))",
        day_number, staff_profile, camp.pk, snapshot.day_guest_speaker_count,
    )
    return snapshot
