"""Models for the camps app."""
from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class Camp(TimeStampedModel):
    """A camp session run by a territory.

    Besides scheduling data the camp carries the operational results that
    drive staff compensation: enrollment, satisfaction (CSAT), budget and
    guest-speaker activity. Every result is optional until it is reported.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PUBLISHED = "PUBLISHED", "Published"
        REGISTRATION_OPEN = "REGISTRATION_OPEN", "Registration open"
        REGISTRATION_CLOSED = "REGISTRATION_CLOSED", "Registration closed"
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        COMPLETED = "COMPLETED", "Completed"
        CANCELLED = "CANCELLED", "Cancelled"

    # Facts that feed the incentive calculator.
    FACT_FIELDS = (
        "enrolled_campers",
        "csat_avg_score",
        "budget_preapproved_total",
        "budget_actual_total",
        "guest_speaker_count",
    )

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.PROTECT,
        related_name="camps",
        verbose_name="territory",
    )
    name = models.CharField("name", max_length=255)
    start_date = models.DateField("start date")
    end_date = models.DateField("end date")
    capacity = models.PositiveIntegerField("capacity", default=60)
    status = models.CharField(
        "status",
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True,
    )

    enrolled_campers = models.PositiveIntegerField(
        "enrolled campers", null=True, blank=True,
    )
    csat_avg_score = models.DecimalField(
        "average CSAT score",
        max_digits=3,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(5)],
    )
    budget_preapproved_total = models.DecimalField(
        "pre-approved budget",
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    budget_actual_total = models.DecimalField(
        "actual spend",
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
    )
    guest_speaker_count = models.PositiveIntegerField(
        "guest speakers", null=True, blank=True,
    )

    class Meta:
        ordering = ["-start_date", "name"]
        verbose_name = "Camp"
        verbose_name_plural = "Camps"
        indexes = [
            models.Index(fields=["tenant", "start_date"], name="camp_tenant_start_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.start_date})"

    def clean(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError({"end_date": "End date cannot be before start date."})
        if not self._state.adding and self.tenant_id and self.has_compensation_records():
            stored = Camp.objects.filter(pk=self.pk).values_list("tenant_id", flat=True).first()
            if stored is not None and stored != self.tenant_id:
                raise ValidationError(
                    {"tenant": "A camp with compensation records cannot move to another territory."}
                )

    def has_compensation_records(self):
        return self.compensations.exists()

    @property
    def budget_variance(self):
        """Pre-approved minus actual spend; positive means under budget."""
        if self.budget_preapproved_total is None or self.budget_actual_total is None:
            return None
        if self.budget_preapproved_total <= 0:
            return None
        return self.budget_preapproved_total - self.budget_actual_total

    def facts_snapshot(self):
        return {field: getattr(self, field) for field in self.FACT_FIELDS}


class CampStaffAssignment(TimeStampedModel):
    """A staff member working a camp session under a compensation plan."""

    class Role(models.TextChoices):
        DIRECTOR = "DIRECTOR", "Director"
        COACH = "COACH", "Coach"

    camp = models.ForeignKey(
        Camp,
        on_delete=models.CASCADE,
        related_name="staff_assignments",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="camp_assignments",
    )
    role = models.CharField(
        "role",
        max_length=20,
        choices=Role.choices,
        default=Role.COACH,
    )
    compensation_plan = models.ForeignKey(
        "compensation.CompensationPlan",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="assignments",
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        unique_together = [("camp", "user")]
        verbose_name = "Staff assignment"
        verbose_name_plural = "Staff assignments"

    def __str__(self):
        return f"{self.user} @ {self.camp} ({self.get_role_display()})"
