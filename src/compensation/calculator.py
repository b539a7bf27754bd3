"""Incentive calculator.

Turns a camp session's facts and a snapshot of plan parameters into the
amount owed to one staff member:

- a fixed stipend (pre-camp + on-site), always paid
- variable bonuses, one per rule in ``VARIABLE_BONUS_RULES``, added up

The module is pure: no database, no clock, no randomness. The same
``PlanParams`` and ``SessionFacts`` always give the same breakdown.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

from django.core.exceptions import ValidationError

from compensation.exceptions import MissingFactError

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")


def quantize_money(value) -> Decimal:
    """Round *value* to cents, half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass(frozen=True)
class PlanParams:
    """Immutable copy of the plan parameters a record is computed with."""

    pre_camp_stipend: Decimal = ZERO
    on_site_stipend: Decimal = ZERO
    enrollment_threshold: int = 0
    enrollment_bonus_per_camper: Decimal = ZERO
    csat_required_score: Decimal | None = None
    csat_bonus_amount: Decimal = ZERO
    budget_efficiency_rate: Decimal = ZERO
    guest_speaker_required_count: int = 0
    guest_speaker_bonus_amount: Decimal = ZERO

    _INTEGER_FIELDS = ("enrollment_threshold", "guest_speaker_required_count")

    def __post_init__(self):
        errors = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                if f.name != "csat_required_score":
                    errors[f.name] = "This parameter is required."
                continue
            if f.name in self._INTEGER_FIELDS:
                if isinstance(value, bool) or int(value) != value:
                    errors[f.name] = "Must be a whole number."
                    continue
                value = int(value)
            else:
                value = _to_decimal(value)
            if value < 0:
                errors[f.name] = "Must not be negative."
            object.__setattr__(self, f.name, value)
        if errors:
            raise ValidationError(errors)

    @property
    def fixed_stipend(self) -> Decimal:
        return quantize_money(self.pre_camp_stipend + self.on_site_stipend)


@dataclass(frozen=True)
class SessionFacts:
    """Operational results of one camp session; ``None`` means not reported."""

    enrollment: int | None = None
    csat_avg: Decimal | None = None
    budget_variance: Decimal | None = None
    guest_speaker_count: int | None = None


@dataclass(frozen=True)
class CompensationBreakdown:
    fixed_stipend: Decimal
    components: dict = field(default_factory=dict)
    missing_facts: tuple = ()

    @property
    def enrollment_bonus(self) -> Decimal:
        return self.components.get("enrollment", ZERO)

    @property
    def csat_bonus(self) -> Decimal:
        return self.components.get("csat", ZERO)

    @property
    def budget_bonus(self) -> Decimal:
        return self.components.get("budget_efficiency", ZERO)

    @property
    def guest_speaker_bonus(self) -> Decimal:
        return self.components.get("guest_speaker", ZERO)

    @property
    def variable_bonus(self) -> Decimal:
        return quantize_money(sum(self.components.values(), ZERO))

    @property
    def total(self) -> Decimal:
        return self.fixed_stipend + self.variable_bonus


# ---------------------------------------------------------------------------
# Bonus rules
# ---------------------------------------------------------------------------

BonusRule = Callable[[PlanParams, SessionFacts], Decimal]


def enrollment_bonus(plan: PlanParams, facts: SessionFacts) -> Decimal:
    """Per-camper rate for every camper above the plan threshold."""
    if plan.enrollment_bonus_per_camper == 0:
        return ZERO
    if facts.enrollment is None:
        raise MissingFactError("enrollment", "enrollment")
    extra_campers = max(0, facts.enrollment - plan.enrollment_threshold)
    return extra_campers * plan.enrollment_bonus_per_camper


def csat_bonus(plan: PlanParams, facts: SessionFacts) -> Decimal:
    """Flat bonus when the session CSAT average reaches the required score."""
    if plan.csat_required_score is None:
        return ZERO
    if facts.csat_avg is None:
        raise MissingFactError("csat_avg", "csat")
    if _to_decimal(facts.csat_avg) >= plan.csat_required_score:
        return plan.csat_bonus_amount
    return ZERO


def budget_efficiency_bonus(plan: PlanParams, facts: SessionFacts) -> Decimal:
    """Share of the budget savings (pre-approved minus actual spend)."""
    if plan.budget_efficiency_rate == 0:
        return ZERO
    if facts.budget_variance is None:
        raise MissingFactError("budget_variance", "budget_efficiency")
    savings = max(ZERO, _to_decimal(facts.budget_variance))
    return savings * plan.budget_efficiency_rate


def guest_speaker_bonus(plan: PlanParams, facts: SessionFacts) -> Decimal:
    """Flat bonus once the session hosted enough guest speakers."""
    if plan.guest_speaker_required_count == 0:
        return ZERO
    if facts.guest_speaker_count is None:
        raise MissingFactError("guest_speaker_count", "guest_speaker")
    if facts.guest_speaker_count >= plan.guest_speaker_required_count:
        return plan.guest_speaker_bonus_amount
    return ZERO


VARIABLE_BONUS_RULES: tuple[tuple[str, BonusRule], ...] = (
    ("enrollment", enrollment_bonus),
    ("csat", csat_bonus),
    ("budget_efficiency", budget_efficiency_bonus),
    ("guest_speaker", guest_speaker_bonus),
)


def calculate(
    plan: PlanParams,
    facts: SessionFacts,
    rules: tuple[tuple[str, BonusRule], ...] = VARIABLE_BONUS_RULES,
) -> CompensationBreakdown:
    """
    Compute the compensation breakdown for one staff member.

    Parameters
    ----------
    plan : PlanParams
        Snapshot of the plan parameters.
    facts : SessionFacts
        Current facts of the camp session.
    rules : tuple
        ``(component_name, rule)`` pairs. Each rule returns the amount
        for its component; results are rounded to cents and added up.

    Returns
    -------
    CompensationBreakdown
        Never raises for unreported facts: the affected component is
        zero and the fact is listed in ``missing_facts``.
    """
    components = {}
    missing = []
    for name, rule in rules:
        try:
            amount = rule(plan, facts)
        except MissingFactError as exc:
            logger.debug("Bonus component %s skipped: %s", name, exc)
            missing.append(exc.fact)
            amount = ZERO
        components[name] = quantize_money(max(ZERO, amount))

    return CompensationBreakdown(
        fixed_stipend=plan.fixed_stipend,
        components=components,
        missing_facts=tuple(missing),
    )
