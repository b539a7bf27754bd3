"""Role-scoped compensation rollups.

Every entry point takes an explicit :class:`CallerContext`; nothing is
read from the request. Visibility:

- camp staff (directors, coaches) see their own records
- licensee owners see the records of the camps their territory runs
- HQ admins see everything

Superseded records never count. Results are computed on every call.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from django.core.exceptions import PermissionDenied

from accounts.models import User
from compensation.calculator import ZERO, quantize_money
from compensation.exceptions import CompensationNotFound
from compensation.models import CompensationDaySnapshot, SessionCompensation
from tenants.models import Tenant
from tenants.services import get_default_tenant

logger = logging.getLogger(__name__)

STAFF_ROLES = (User.Role.DIRECTOR, User.Role.COACH)


@dataclass(frozen=True)
class CallerContext:
    user_id: UUID
    role: str
    tenant_id: UUID | None = None

    @classmethod
    def for_user(cls, user) -> "CallerContext":
        """Build the context of an authenticated user (superusers count as HQ)."""
        role = User.Role.HQ_ADMIN if user.is_hq_admin else user.role
        tenant = None if role == User.Role.HQ_ADMIN else get_default_tenant(user)
        return cls(user_id=user.pk, role=role, tenant_id=tenant.pk if tenant else None)

    @property
    def is_hq_admin(self) -> bool:
        return self.role == User.Role.HQ_ADMIN

    @property
    def is_licensee_owner(self) -> bool:
        return self.role == User.Role.LICENSEE_OWNER

    @property
    def is_camp_staff(self) -> bool:
        return self.role in STAFF_ROLES


@dataclass(frozen=True)
class IncentiveLineItem:
    record_id: UUID
    camp_id: UUID
    camp_name: str
    tenant_id: UUID
    plan_name: str
    plan_code: str
    start_date: date
    end_date: date
    fixed_stipend: Decimal
    variable_bonus: Decimal
    total: Decimal
    is_finalized: bool
    calculated_at: datetime | None = None
    finalized_at: datetime | None = None


@dataclass(frozen=True)
class IncentiveSnapshot:
    total_compensation: Decimal = ZERO
    pending_compensation: Decimal = ZERO
    finalized_compensation: Decimal = ZERO
    total_sessions: int = 0
    avg_csat_score: Decimal | None = None
    avg_enrollment: Decimal | None = None
    line_items: list = field(default_factory=list)


@dataclass(frozen=True)
class StaffIncentiveSummary:
    staff_profile_id: UUID
    staff_name: str
    email: str
    role: str
    total_sessions: int
    pending_compensation: Decimal
    finalized_compensation: Decimal
    total_compensation: Decimal
    avg_csat_score: Decimal | None = None
    avg_enrollment: Decimal | None = None


@dataclass(frozen=True)
class CampIncentiveSummary:
    camp_id: UUID
    camp_name: str
    tenant_id: UUID
    start_date: date
    end_date: date
    total_sessions: int
    pending_compensation: Decimal
    finalized_compensation: Decimal
    total_compensation: Decimal


@dataclass(frozen=True)
class TerritoryIncentiveOverview:
    tenant: Tenant
    totals: IncentiveSnapshot
    per_staff: list
    per_camp: list = field(default_factory=list)


@dataclass(frozen=True)
class GlobalIncentiveOverview:
    totals: IncentiveSnapshot
    territories: list
    per_camp: list = field(default_factory=list)


# ------------------------------------------------------------------
# Scoping
# ------------------------------------------------------------------

def visible_compensations(ctx: CallerContext):
    """Non-superseded records the caller may see."""
    qs = (
        SessionCompensation.objects
        .active()
        .select_related("camp", "compensation_plan", "staff_profile")
        .order_by("-camp__start_date", "-created_at")
    )
    if ctx.is_hq_admin:
        return qs
    if ctx.is_licensee_owner:
        if ctx.tenant_id is None:
            return qs.none()
        return qs.filter(camp__tenant_id=ctx.tenant_id)
    if ctx.is_camp_staff:
        return qs.filter(staff_profile_id=ctx.user_id)
    return qs.none()


# ------------------------------------------------------------------
# Rollups
# ------------------------------------------------------------------

def _mean(values: list) -> Decimal | None:
    if not values:
        return None
    return quantize_money(sum((Decimal(v) for v in values), Decimal("0")) / len(values))


def _line_item(record: SessionCompensation) -> IncentiveLineItem:
    return IncentiveLineItem(
        record_id=record.pk,
        camp_id=record.camp_id,
        camp_name=record.camp.name,
        tenant_id=record.camp.tenant_id,
        plan_name=record.compensation_plan.name,
        plan_code=record.compensation_plan.plan_code,
        start_date=record.camp.start_date,
        end_date=record.camp.end_date,
        fixed_stipend=record.fixed_stipend_total,
        variable_bonus=record.total_variable_bonus,
        total=record.total_compensation,
        is_finalized=record.is_finalized,
        calculated_at=record.calculated_at,
        finalized_at=record.finalized_at,
    )


def build_snapshot(records: Iterable[SessionCompensation]) -> IncentiveSnapshot:
    """Sum and average a set of records; ``pending + finalized == total``."""
    pending = ZERO
    finalized = ZERO
    csat_scores = []
    enrollments = []
    line_items = []
    for record in records:
        if record.superseded_at is not None:
            continue
        if record.is_finalized:
            finalized += record.total_compensation
        else:
            pending += record.total_compensation
        if record.csat_avg_score is not None:
            csat_scores.append(record.csat_avg_score)
        if record.total_enrolled_campers is not None:
            enrollments.append(record.total_enrolled_campers)
        line_items.append(_line_item(record))

    return IncentiveSnapshot(
        total_compensation=pending + finalized,
        pending_compensation=pending,
        finalized_compensation=finalized,
        total_sessions=len(line_items),
        avg_csat_score=_mean(csat_scores),
        avg_enrollment=_mean(enrollments),
        line_items=line_items,
    )


def summarize_by_staff(records: Iterable[SessionCompensation]) -> list[StaffIncentiveSummary]:
    """One summary per staff member, highest total first.

    Averages only count sessions that reported the fact.
    """
    buckets: dict = {}
    for record in records:
        if record.superseded_at is not None:
            continue
        bucket = buckets.setdefault(record.staff_profile_id, {
            "staff": record.staff_profile,
            "role": record.staff_role or record.staff_profile.role,
            "sessions": 0,
            "pending": ZERO,
            "finalized": ZERO,
            "csat": [],
            "enrollment": [],
        })
        bucket["sessions"] += 1
        key = "finalized" if record.is_finalized else "pending"
        bucket[key] += record.total_compensation
        if record.csat_avg_score is not None:
            bucket["csat"].append(record.csat_avg_score)
        if record.total_enrolled_campers is not None:
            bucket["enrollment"].append(record.total_enrolled_campers)

    summaries = [
        StaffIncentiveSummary(
            staff_profile_id=staff_id,
            staff_name=b["staff"].get_full_name() or b["staff"].email,
            email=b["staff"].email,
            role=b["role"],
            total_sessions=b["sessions"],
            pending_compensation=b["pending"],
            finalized_compensation=b["finalized"],
            total_compensation=b["pending"] + b["finalized"],
            avg_csat_score=_mean(b["csat"]),
            avg_enrollment=_mean(b["enrollment"]),
        )
        for staff_id, b in buckets.items()
    ]
    summaries.sort(key=lambda s: (-s.total_compensation, s.staff_name))
    return summaries


def summarize_by_camp(records: Iterable[SessionCompensation]) -> list[CampIncentiveSummary]:
    """One summary per camp session, newest camp first."""
    buckets: dict = {}
    for record in records:
        if record.superseded_at is not None:
            continue
        bucket = buckets.setdefault(record.camp_id, {
            "camp": record.camp,
            "sessions": 0,
            "pending": ZERO,
            "finalized": ZERO,
        })
        bucket["sessions"] += 1
        key = "finalized" if record.is_finalized else "pending"
        bucket[key] += record.total_compensation

    summaries = [
        CampIncentiveSummary(
            camp_id=camp_id,
            camp_name=b["camp"].name,
            tenant_id=b["camp"].tenant_id,
            start_date=b["camp"].start_date,
            end_date=b["camp"].end_date,
            total_sessions=b["sessions"],
            pending_compensation=b["pending"],
            finalized_compensation=b["finalized"],
            total_compensation=b["pending"] + b["finalized"],
        )
        for camp_id, b in buckets.items()
    ]
    summaries.sort(key=lambda s: s.camp_name)
    summaries.sort(key=lambda s: s.start_date, reverse=True)
    return summaries


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------

def get_my_incentive_snapshot(ctx: CallerContext) -> IncentiveSnapshot:
    """The caller's own records, newest camp first."""
    records = visible_compensations(ctx).filter(staff_profile_id=ctx.user_id)
    return build_snapshot(records)


def get_territory_incentive_overview(ctx: CallerContext, tenant_id) -> TerritoryIncentiveOverview:
    """Totals plus per-staff and per-camp breakdowns of one territory.

    Raises
    ------
    PermissionDenied
        For camp staff.
    CompensationNotFound
        If the territory does not exist or the licensee does not own it.
    """
    if not (ctx.is_hq_admin or ctx.is_licensee_owner):
        raise PermissionDenied("Territory overviews are restricted to licensee owners and HQ.")
    if ctx.is_licensee_owner and str(ctx.tenant_id) != str(tenant_id):
        raise CompensationNotFound("Territory not found.")

    tenant = Tenant.objects.filter(pk=tenant_id).first()
    if tenant is None:
        raise CompensationNotFound("Territory not found.")

    records = list(visible_compensations(ctx).filter(camp__tenant_id=tenant.pk))
    return TerritoryIncentiveOverview(
        tenant=tenant,
        totals=build_snapshot(records),
        per_staff=summarize_by_staff(records),
        per_camp=summarize_by_camp(records),
    )


def get_global_incentive_overview(ctx: CallerContext) -> GlobalIncentiveOverview:
    """Network-wide totals plus one overview per territory with records (HQ only)."""
    if not ctx.is_hq_admin:
        raise PermissionDenied("The network overview is restricted to HQ.")

    records = list(visible_compensations(ctx))
    by_tenant: dict = {}
    for record in records:
        by_tenant.setdefault(record.camp.tenant_id, []).append(record)

    tenants = Tenant.objects.filter(pk__in=by_tenant.keys()).order_by("name")
    territories = [
        TerritoryIncentiveOverview(
            tenant=tenant,
            totals=build_snapshot(by_tenant[tenant.pk]),
            per_staff=summarize_by_staff(by_tenant[tenant.pk]),
            per_camp=summarize_by_camp(by_tenant[tenant.pk]),
        )
        for tenant in tenants
    ]
    logger.debug("Global overview built for %s territories", len(territories))
    return GlobalIncentiveOverview(
        totals=build_snapshot(records),
        territories=territories,
        per_camp=summarize_by_camp(records),
    )


def get_person_compensation_history(ctx: CallerContext, staff_profile_id) -> IncentiveSnapshot:
    """Visible records of one staff member.

    Staff may only ask for themselves; anyone else's history looks missing.
    """
    if ctx.is_camp_staff and str(staff_profile_id) != str(ctx.user_id):
        raise CompensationNotFound("Staff member not found.")
    records = visible_compensations(ctx).filter(staff_profile_id=staff_profile_id)
    return build_snapshot(records)


def get_day_snapshots(ctx: CallerContext, camp_id, staff_profile_id):
    """Daily snapshots of one staff member's camp session, first day first.

    Uses the same visibility as the compensation records; anything outside
    the caller's scope looks missing.
    """
    if ctx.is_camp_staff and str(staff_profile_id) != str(ctx.user_id):
        raise CompensationNotFound("Compensation record not found.")
    visible = visible_compensations(ctx).filter(camp_id=camp_id, staff_profile_id=staff_profile_id)
    if not visible.exists():
        raise CompensationNotFound("Compensation record not found.")
    return (
        CompensationDaySnapshot.objects
        .filter(camp_id=camp_id, staff_profile_id=staff_profile_id)
        .order_by("day_number")
    )
