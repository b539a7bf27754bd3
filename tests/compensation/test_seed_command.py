import pytest
from django.core.management import call_command

from compensation.models import CompensationPlan, SessionCompensation
from tenants.models import Tenant


@pytest.mark.django_db
def test_seed_creates_standard_plans_once():
    call_command("seed_compensation_plans")
    call_command("seed_compensation_plans")

    codes = sorted(CompensationPlan.objects.values_list("plan_code", flat=True))
    assert codes == ["ENTRY", "FIXED", "HIGH", "MID"]
    assert CompensationPlan.objects.get(plan_code="MID").version == 1


@pytest.mark.django_db
def test_seed_demo_creates_pending_record():
    call_command("seed_compensation_plans", "--demo", "--tenant-code", "west")

    tenant = Tenant.objects.get(code="WEST")
    record = SessionCompensation.objects.get(tenant=tenant)
    assert record.compensation_plan.plan_code == "MID"
    assert record.status == SessionCompensation.Status.PENDING
    assert str(record.total_compensation) == "210.00"
