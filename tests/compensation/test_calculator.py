"""Tests for the pure incentive calculator."""
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from compensation.calculator import (
    VARIABLE_BONUS_RULES,
    PlanParams,
    SessionFacts,
    calculate,
    quantize_money,
)
from compensation.exceptions import MissingFactError


MID = PlanParams(
    pre_camp_stipend=Decimal("50"),
    on_site_stipend=Decimal("100"),
    enrollment_threshold=30,
    enrollment_bonus_per_camper=Decimal("5"),
)

FULL = PlanParams(
    pre_camp_stipend=Decimal("75.00"),
    on_site_stipend=Decimal("150.00"),
    enrollment_threshold=25,
    enrollment_bonus_per_camper=Decimal("7.50"),
    csat_required_score=Decimal("4.50"),
    csat_bonus_amount=Decimal("50.00"),
    budget_efficiency_rate=Decimal("0.1000"),
    guest_speaker_required_count=2,
    guest_speaker_bonus_amount=Decimal("25.00"),
)


class TestScenarios:
    def test_threshold_exactly_met_pays_fixed_stipend_only(self):
        breakdown = calculate(MID, SessionFacts(enrollment=30))

        assert breakdown.enrollment_bonus == Decimal("0.00")
        assert breakdown.fixed_stipend == Decimal("150.00")
        assert breakdown.total == Decimal("150.00")

    def test_above_threshold_pays_per_extra_camper(self):
        breakdown = calculate(MID, SessionFacts(enrollment=42))

        assert breakdown.enrollment_bonus == Decimal("60.00")
        assert breakdown.total == Decimal("210.00")

    def test_below_threshold_never_goes_negative(self):
        breakdown = calculate(MID, SessionFacts(enrollment=3))

        assert breakdown.enrollment_bonus == Decimal("0.00")
        assert breakdown.total == Decimal("150.00")

    def test_missing_csat_degrades_component_to_zero(self):
        with_csat_rule = PlanParams(
            pre_camp_stipend=Decimal("50"),
            on_site_stipend=Decimal("100"),
            enrollment_threshold=30,
            enrollment_bonus_per_camper=Decimal("5"),
            csat_required_score=Decimal("4.00"),
            csat_bonus_amount=Decimal("40"),
        )

        missing = calculate(with_csat_rule, SessionFacts(enrollment=42, csat_avg=None))
        no_rule = calculate(MID, SessionFacts(enrollment=42))

        assert missing.csat_bonus == Decimal("0.00")
        assert missing.enrollment_bonus == Decimal("60.00")
        assert missing.total == no_rule.total == Decimal("210.00")
        assert missing.missing_facts == ("csat_avg",)

    def test_all_rules_compose_additively(self):
        facts = SessionFacts(
            enrollment=35,
            csat_avg=Decimal("4.60"),
            budget_variance=Decimal("420.00"),
            guest_speaker_count=2,
        )

        breakdown = calculate(FULL, facts)

        assert breakdown.fixed_stipend == Decimal("225.00")
        assert breakdown.enrollment_bonus == Decimal("75.00")
        assert breakdown.csat_bonus == Decimal("50.00")
        assert breakdown.budget_bonus == Decimal("42.00")
        assert breakdown.guest_speaker_bonus == Decimal("25.00")
        assert breakdown.variable_bonus == Decimal("192.00")
        assert breakdown.total == Decimal("417.00")
        assert breakdown.missing_facts == ()

    def test_rules_not_met_pay_nothing(self):
        facts = SessionFacts(
            enrollment=20,
            csat_avg=Decimal("4.49"),
            budget_variance=Decimal("-150.00"),
            guest_speaker_count=1,
        )

        breakdown = calculate(FULL, facts)

        assert breakdown.variable_bonus == Decimal("0.00")
        assert breakdown.total == Decimal("225.00")

    def test_budget_bonus_rounds_half_up_to_cents(self):
        plan = PlanParams(budget_efficiency_rate=Decimal("0.0125"))

        breakdown = calculate(plan, SessionFacts(budget_variance=Decimal("10.20")))

        # 10.20 x 0.0125 = 0.1275
        assert breakdown.budget_bonus == Decimal("0.13")

    def test_guest_speaker_rule_disabled_when_required_count_is_zero(self):
        plan = PlanParams(guest_speaker_bonus_amount=Decimal("25"))

        breakdown = calculate(plan, SessionFacts(guest_speaker_count=5))

        assert breakdown.guest_speaker_bonus == Decimal("0.00")


class TestProperties:
    def test_calculation_is_deterministic(self):
        facts = SessionFacts(
            enrollment=37,
            csat_avg=Decimal("4.75"),
            budget_variance=Decimal("333.33"),
            guest_speaker_count=3,
        )

        results = {repr(calculate(FULL, facts)) for _ in range(5)}

        assert len(results) == 1

    @pytest.mark.parametrize("enrollment", [None, 0, 10, 25, 26, 100])
    @pytest.mark.parametrize("variance", [None, Decimal("-500"), Decimal("0"), Decimal("99.99")])
    def test_components_are_never_negative(self, enrollment, variance):
        breakdown = calculate(
            FULL,
            SessionFacts(enrollment=enrollment, budget_variance=variance),
        )

        for amount in breakdown.components.values():
            assert amount >= 0
        assert breakdown.total >= breakdown.fixed_stipend

    def test_every_rule_produces_a_component(self):
        breakdown = calculate(FULL, SessionFacts())

        assert list(breakdown.components) == [name for name, _rule in VARIABLE_BONUS_RULES]
        assert set(breakdown.missing_facts) == {
            "enrollment", "csat_avg", "budget_variance", "guest_speaker_count",
        }

    def test_custom_rule_table(self):
        def flat_bonus(plan, facts):
            return Decimal("12.345")

        def needs_facts(plan, facts):
            raise MissingFactError("weather")

        breakdown = calculate(MID, SessionFacts(), rules=(("flat", flat_bonus), ("weather", needs_facts)))

        assert breakdown.components == {"flat": Decimal("12.35"), "weather": Decimal("0.00")}
        assert breakdown.total == Decimal("162.35")
        assert breakdown.missing_facts == ("weather",)


class TestPlanParams:
    def test_rejects_negative_amounts(self):
        with pytest.raises(ValidationError) as excinfo:
            PlanParams(pre_camp_stipend=Decimal("-1"), enrollment_threshold=-5)

        assert set(excinfo.value.message_dict) == {"pre_camp_stipend", "enrollment_threshold"}

    def test_rejects_fractional_counts(self):
        with pytest.raises(ValidationError):
            PlanParams(guest_speaker_required_count=Decimal("1.5"))

    def test_coerces_numbers_to_decimal(self):
        params = PlanParams(pre_camp_stipend=50, on_site_stipend=100.5)

        assert params.pre_camp_stipend == Decimal("50")
        assert params.fixed_stipend == Decimal("150.50")

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            MID.pre_camp_stipend = Decimal("0")


def test_quantize_money_rounds_half_up():
    assert quantize_money(Decimal("2.345")) == Decimal("2.35")
    assert quantize_money(Decimal("2.344")) == Decimal("2.34")
