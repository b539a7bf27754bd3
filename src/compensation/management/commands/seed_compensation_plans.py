"""Seed the standard compensation plans and, optionally, a demo camp."""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from accounts.models import User
from camps.models import Camp
from compensation.models import CompensationPlan
from compensation.services import attach_plan_to_session, create_plan
from tenants.models import Tenant, TenantUser


PLAN_DEFINITIONS = [
    {
        "plan_code": "HIGH",
        "name": "High Range",
        "pre_camp_stipend_amount": Decimal("75.00"),
        "on_site_stipend_amount": Decimal("150.00"),
        "enrollment_threshold": 25,
        "enrollment_bonus_per_camper": Decimal("7.50"),
        "csat_required_score": Decimal("4.50"),
        "csat_bonus_amount": Decimal("50.00"),
        "budget_efficiency_rate": Decimal("0.1000"),
        "guest_speaker_required_count": 2,
        "guest_speaker_bonus_amount": Decimal("25.00"),
    },
    {
        "plan_code": "MID",
        "name": "Mid Range",
        "pre_camp_stipend_amount": Decimal("50.00"),
        "on_site_stipend_amount": Decimal("100.00"),
        "enrollment_threshold": 30,
        "enrollment_bonus_per_camper": Decimal("5.00"),
    },
    {
        "plan_code": "ENTRY",
        "name": "Entry Level",
        "pre_camp_stipend_amount": Decimal("25.00"),
        "on_site_stipend_amount": Decimal("75.00"),
        "enrollment_threshold": 35,
        "enrollment_bonus_per_camper": Decimal("2.50"),
    },
    {
        "plan_code": "FIXED",
        "name": "Fixed Stipend",
        "pre_camp_stipend_amount": Decimal("50.00"),
        "on_site_stipend_amount": Decimal("150.00"),
    },
]


class Command(BaseCommand):
    help = "Seed the HIGH / MID / ENTRY / FIXED compensation plans and an optional demo camp."

    def add_arguments(self, parser):
        parser.add_argument(
            "--demo",
            action="store_true",
            help="Also create a demo territory, coach and camp on the MID plan.",
        )
        parser.add_argument(
            "--tenant-code",
            type=str,
            default="DEMO",
            help="Code of the demo territory (default: DEMO).",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        plans = self._seed_plans()
        if options.get("demo"):
            tenant_code = (options.get("tenant_code") or "").strip().upper()
            if not tenant_code:
                raise CommandError("--tenant-code cannot be empty.")
            self._seed_demo(plans["MID"], tenant_code)
        self.stdout.write(self.style.SUCCESS("Compensation plan seeding complete."))

    def _seed_plans(self) -> dict[str, CompensationPlan]:
        plans: dict[str, CompensationPlan] = {}
        for definition in PLAN_DEFINITIONS:
            plan = CompensationPlan.objects.filter(plan_code=definition["plan_code"]).first()
            if plan is None:
                plan = create_plan(**definition)
                self.stdout.write(f"Plan created: {plan}")
            plans[plan.plan_code] = plan
        self.stdout.write(f"Plans available: {len(plans)}")
        return plans

    def _seed_demo(self, plan: CompensationPlan, tenant_code: str) -> None:
        tenant, _created = Tenant.objects.get_or_create(
            code=tenant_code,
            defaults={"name": f"{tenant_code.title()} Territory"},
        )
        coach = User.objects.filter(email="coach@example.com").first()
        if coach is None:
            coach = User.objects.create_user(
                email="coach@example.com",
                password=None,
                first_name="Demo",
                last_name="Coach",
                role=User.Role.COACH,
            )
        TenantUser.objects.get_or_create(tenant=tenant, user=coach, defaults={"is_default": True})

        start = date.today() + timedelta(days=14)
        camp, _created = Camp.objects.get_or_create(
            tenant=tenant,
            name="Demo Summer Camp",
            defaults={
                "start_date": start,
                "end_date": start + timedelta(days=4),
                "status": Camp.Status.REGISTRATION_OPEN,
                "enrolled_campers": 42,
            },
        )
        record = attach_plan_to_session(camp, coach, plan)
        self.stdout.write(
            f"Demo record: {record.staff_profile} at {camp.name} -> {record.total_compensation}"
        )
