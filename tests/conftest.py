from datetime import date
from decimal import Decimal

import pytest

from accounts.models import User
from camps.models import Camp
from compensation.services import create_plan
from tenants.models import Tenant, TenantUser


def _make_user(email, role, first_name, last_name="User"):
    return User.objects.create_user(
        email=email,
        password="testpass123",
        first_name=first_name,
        last_name=last_name,
        role=role,
    )


@pytest.fixture
def hq_user(db):
    return _make_user("hq@test.com", User.Role.HQ_ADMIN, "Hq")


@pytest.fixture
def licensee_user(db):
    return _make_user("licensee@test.com", User.Role.LICENSEE_OWNER, "Licensee")


@pytest.fixture
def other_licensee_user(db):
    return _make_user("licensee2@test.com", User.Role.LICENSEE_OWNER, "Other", "Licensee")


@pytest.fixture
def coach_user(db):
    return _make_user("coach@test.com", User.Role.COACH, "Coach", "Alpha")


@pytest.fixture
def other_coach_user(db):
    return _make_user("coach2@test.com", User.Role.COACH, "Coach", "Bravo")


@pytest.fixture
def director_user(db):
    return _make_user("director@test.com", User.Role.DIRECTOR, "Director")


@pytest.fixture
def tenant(db):
    return Tenant.objects.create(name="North Territory", code="NORTH")


@pytest.fixture
def other_tenant(db):
    return Tenant.objects.create(name="South Territory", code="SOUTH")


@pytest.fixture
def licensee_membership(tenant, licensee_user):
    return TenantUser.objects.create(tenant=tenant, user=licensee_user, is_default=True)


@pytest.fixture
def other_licensee_membership(other_tenant, other_licensee_user):
    return TenantUser.objects.create(tenant=other_tenant, user=other_licensee_user, is_default=True)


@pytest.fixture
def camp(tenant):
    return Camp.objects.create(
        tenant=tenant,
        name="Summer Camp North",
        start_date=date(2026, 7, 6),
        end_date=date(2026, 7, 10),
        status=Camp.Status.IN_PROGRESS,
        enrolled_campers=42,
    )


@pytest.fixture
def other_camp(other_tenant):
    return Camp.objects.create(
        tenant=other_tenant,
        name="Summer Camp South",
        start_date=date(2026, 7, 13),
        end_date=date(2026, 7, 17),
        status=Camp.Status.IN_PROGRESS,
        enrolled_campers=30,
    )


@pytest.fixture
def mid_plan(db):
    return create_plan(
        plan_code="MID",
        name="Mid Range",
        pre_camp_stipend_amount=Decimal("50.00"),
        on_site_stipend_amount=Decimal("100.00"),
        enrollment_threshold=30,
        enrollment_bonus_per_camper=Decimal("5.00"),
    )


@pytest.fixture
def high_plan(db):
    return create_plan(
        plan_code="HIGH",
        name="High Range",
        pre_camp_stipend_amount=Decimal("75.00"),
        on_site_stipend_amount=Decimal("150.00"),
        enrollment_threshold=25,
        enrollment_bonus_per_camper=Decimal("7.50"),
        csat_required_score=Decimal("4.50"),
        csat_bonus_amount=Decimal("50.00"),
        budget_efficiency_rate=Decimal("0.1000"),
        guest_speaker_required_count=2,
        guest_speaker_bonus_amount=Decimal("25.00"),
    )
