"""Models for the staff compensation module."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from compensation.calculator import PlanParams
from compensation.exceptions import CompensationConflict
from core.models import TimeStampedModel


def money_field(verbose_name, max_digits=10, **kwargs):
    kwargs.setdefault("default", Decimal("0.00"))
    return models.DecimalField(
        verbose_name,
        max_digits=max_digits,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
        **kwargs,
    )


COMPUTED_MAX_DIGITS = 16
MAX_COMPUTED_AMOUNT = Decimal("99999999999999.99")

# Plan field -> PlanParams attribute. Also the list of fields a session
# record snapshots from its plan.
PLAN_PARAM_FIELDS = {
    "pre_camp_stipend_amount": "pre_camp_stipend",
    "on_site_stipend_amount": "on_site_stipend",
    "enrollment_threshold": "enrollment_threshold",
    "enrollment_bonus_per_camper": "enrollment_bonus_per_camper",
    "csat_required_score": "csat_required_score",
    "csat_bonus_amount": "csat_bonus_amount",
    "budget_efficiency_rate": "budget_efficiency_rate",
    "guest_speaker_required_count": "guest_speaker_required_count",
    "guest_speaker_bonus_amount": "guest_speaker_bonus_amount",
}


class PlanParameterFields(models.Model):
    """Pay parameters shared by plans and the snapshots records take of them."""

    pre_camp_stipend_amount = money_field("pre-camp stipend")
    on_site_stipend_amount = money_field("on-site stipend")
    enrollment_threshold = models.PositiveIntegerField(
        "enrollment threshold",
        default=0,
        help_text="Campers above this count earn the per-camper bonus.",
    )
    enrollment_bonus_per_camper = money_field("bonus per extra camper")
    csat_required_score = models.DecimalField(
        "required CSAT score",
        max_digits=3,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("5"))],
        help_text="Leave empty for plans without a CSAT bonus.",
    )
    csat_bonus_amount = money_field("CSAT bonus")
    budget_efficiency_rate = models.DecimalField(
        "budget efficiency rate",
        max_digits=5,
        decimal_places=4,
        default=Decimal("0"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
        help_text="Share of the budget savings paid out (0.1000 = 10%).",
    )
    guest_speaker_required_count = models.PositiveIntegerField(
        "required guest speakers",
        default=0,
        help_text="0 disables the guest speaker bonus.",
    )
    guest_speaker_bonus_amount = money_field("guest speaker bonus")

    class Meta:
        abstract = True

    @property
    def plan_params(self) -> PlanParams:
        return PlanParams(**{
            attr: getattr(self, field) for field, attr in PLAN_PARAM_FIELDS.items()
        })


class CompensationPlan(TimeStampedModel, PlanParameterFields):
    """Named pay-plan template staff are assigned to for a camp session.

    Editing a plan bumps ``version``; records already created keep the
    parameters they snapshotted.
    """

    plan_code = models.CharField("code", max_length=30, unique=True)
    name = models.CharField("name", max_length=120)
    description = models.TextField("description", blank=True, default="")
    version = models.PositiveIntegerField("version", default=1)
    is_active = models.BooleanField("active", default=True, db_index=True)

    class Meta:
        verbose_name = "compensation plan"
        verbose_name_plural = "compensation plans"
        ordering = ["plan_code"]

    def __str__(self) -> str:
        return f"{self.name} ({self.plan_code} v{self.version})"

    def clean(self) -> None:
        if self.plan_code:
            self.plan_code = self.plan_code.strip().upper()


class SessionCompensationQuerySet(models.QuerySet):
    def active(self):
        """Records that have not been replaced by a correction."""
        return self.filter(superseded_at__isnull=True)

    def pending(self):
        return self.filter(status=SessionCompensation.Status.PENDING)

    def finalized(self):
        return self.filter(status=SessionCompensation.Status.FINALIZED)

    def delete(self):
        raise CompensationConflict("Compensation records are never deleted.")


class SessionCompensation(TimeStampedModel, PlanParameterFields):
    """What one staff member earns for one camp session.

    The plan parameters are copied onto the record when the staff member
    is assigned; computation only ever reads this copy. While PENDING the
    computed fields follow the camp's facts, once FINALIZED the record is
    frozen. Corrections go through a superseding record.
    """

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        FINALIZED = "FINALIZED", "Finalized"

    camp = models.ForeignKey(
        "camps.Camp",
        on_delete=models.PROTECT,
        related_name="compensations",
    )
    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.PROTECT,
        related_name="compensations",
        verbose_name="territory",
    )
    staff_profile = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="session_compensations",
        verbose_name="staff member",
    )
    staff_role = models.CharField("staff role", max_length=20, blank=True, default="")
    compensation_plan = models.ForeignKey(
        CompensationPlan,
        on_delete=models.PROTECT,
        related_name="session_compensations",
    )
    plan_version = models.PositiveIntegerField("plan version", default=1)

    # Facts used by the last computation
    total_enrolled_campers = models.PositiveIntegerField("enrolled campers", null=True, blank=True)
    csat_avg_score = models.DecimalField(
        "average CSAT", max_digits=3, decimal_places=2, null=True, blank=True,
    )
    budget_variance = models.DecimalField(
        "budget variance", max_digits=10, decimal_places=2, null=True, blank=True,
    )
    guest_speaker_count = models.PositiveIntegerField("guest speakers", null=True, blank=True)

    # Computed amounts. Wider than the plan amounts they add up.
    fixed_stipend_total = money_field("fixed stipend", max_digits=COMPUTED_MAX_DIGITS)
    enrollment_bonus_earned = money_field("enrollment bonus", max_digits=COMPUTED_MAX_DIGITS)
    csat_bonus_earned = money_field("CSAT bonus earned", max_digits=COMPUTED_MAX_DIGITS)
    budget_efficiency_bonus_earned = money_field("budget efficiency bonus", max_digits=COMPUTED_MAX_DIGITS)
    guest_speaker_bonus_earned = money_field("guest speaker bonus earned", max_digits=COMPUTED_MAX_DIGITS)
    total_variable_bonus = money_field("variable bonus", max_digits=COMPUTED_MAX_DIGITS)
    total_compensation = money_field("total compensation", max_digits=COMPUTED_MAX_DIGITS)
    calculated_at = models.DateTimeField("calculated at", null=True, blank=True)

    # Workflow
    status = models.CharField(
        "status",
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    finalized_at = models.DateTimeField("finalized at", null=True, blank=True)
    finalized_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    # Corrections
    superseded_at = models.DateTimeField("superseded at", null=True, blank=True)
    superseded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    supersedes = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="superseding_record",
    )
    supersede_reason = models.TextField("correction reason", blank=True, default="")

    objects = SessionCompensationQuerySet.as_manager()

    class Meta:
        verbose_name = "session compensation"
        verbose_name_plural = "session compensations"
        ordering = ["-camp__start_date", "staff_profile__last_name"]
        constraints = [
            models.UniqueConstraint(
                fields=["camp", "staff_profile"],
                condition=models.Q(superseded_at__isnull=True),
                name="uniq_active_compensation_per_camp_staff",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "status"], name="comp_tenant_status_idx"),
            models.Index(fields=["staff_profile", "status"], name="comp_staff_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.staff_profile} - {self.camp} ({self.get_status_display()})"

    def clean(self) -> None:
        if self.camp_id and self.tenant_id and self.camp.tenant_id != self.tenant_id:
            raise ValidationError({"tenant": "The record must belong to the camp's territory."})

    def delete(self, *args, **kwargs):
        raise CompensationConflict("Compensation records are never deleted; supersede instead.")

    @property
    def is_finalized(self) -> bool:
        return self.status == self.Status.FINALIZED

    @property
    def is_superseded(self) -> bool:
        return self.superseded_at is not None

    def snapshot_values(self) -> dict:
        """Plan parameters as copied onto this record."""
        return {field: getattr(self, field) for field in PLAN_PARAM_FIELDS}


class CompensationDaySnapshot(TimeStampedModel):
    """What happened on one day of a camp session for one staff member.

    Captured day by day while the camp runs. When the camp has no
    session-level guest speaker count, the daily counts are summed instead.
    """

    session_compensation = models.ForeignKey(
        SessionCompensation,
        on_delete=models.PROTECT,
        related_name="day_snapshots",
    )
    camp = models.ForeignKey(
        "camps.Camp",
        on_delete=models.PROTECT,
        related_name="day_snapshots",
    )
    staff_profile = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="day_snapshots",
        verbose_name="staff member",
    )
    day_number = models.PositiveSmallIntegerField(
        "day number", validators=[MinValueValidator(1)],
    )
    date = models.DateField("date")
    day_enrolled_campers = models.PositiveIntegerField("enrolled campers", default=0)
    day_checked_in_count = models.PositiveIntegerField("checked in", default=0)
    day_checked_out_count = models.PositiveIntegerField("checked out", default=0)
    day_no_show_count = models.PositiveIntegerField("no-shows", default=0)
    day_csat_avg_score = models.DecimalField(
        "day CSAT average",
        max_digits=3,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("5"))],
    )
    day_guest_speaker_count = models.PositiveIntegerField("guest speakers", default=0)
    notes = models.TextField("notes", blank=True, default="")

    class Meta:
        verbose_name = "day snapshot"
        verbose_name_plural = "day snapshots"
        ordering = ["camp", "staff_profile", "day_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["camp", "staff_profile", "day_number"],
                name="uniq_day_snapshot_per_camp_staff_day",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.staff_profile} - {self.camp} day {self.day_number}"
