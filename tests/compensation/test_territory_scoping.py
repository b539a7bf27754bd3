"""Territory scoping follows the camp's current territory and the licensee's default one."""
import pytest
from django.contrib import admin as django_admin
from django.core.exceptions import ValidationError
from django.test import RequestFactory

from camps.models import Camp
from compensation.aggregator import (
    CallerContext,
    get_territory_incentive_overview,
    visible_compensations,
)
from compensation.exceptions import CompensationNotFound
from compensation.services import (
    FinalizeStatus,
    attach_plan_to_session,
    can_sign_off,
    finalize_session,
)
from tenants.models import TenantUser


@pytest.fixture
def moved_record(camp, coach_user, mid_plan, other_tenant):
    record = attach_plan_to_session(camp, coach_user, mid_plan)
    Camp.objects.filter(pk=camp.pk).update(tenant=other_tenant)
    return record


@pytest.mark.django_db
class TestMovedCamp:
    def test_records_follow_the_camp_to_its_new_territory(
        self, moved_record, licensee_user, licensee_membership,
        other_licensee_user, other_licensee_membership, other_tenant,
    ):
        previous_owner = CallerContext.for_user(licensee_user)
        new_owner = CallerContext.for_user(other_licensee_user)

        assert list(visible_compensations(previous_owner)) == []
        assert [r.pk for r in visible_compensations(new_owner)] == [moved_record.pk]
        overview = get_territory_incentive_overview(new_owner, other_tenant.pk)
        assert overview.totals.total_sessions == 1
        assert overview.per_camp[0].tenant_id == other_tenant.pk

    def test_previous_licensee_cannot_finalize(
        self, moved_record, camp, coach_user, licensee_user, licensee_membership,
    ):
        with pytest.raises(CompensationNotFound):
            finalize_session(camp.pk, coach_user.pk, licensee_user)

    def test_new_licensee_can_finalize(
        self, moved_record, camp, coach_user, other_licensee_user, other_licensee_membership,
    ):
        result = finalize_session(camp.pk, coach_user.pk, other_licensee_user)

        assert result.status == FinalizeStatus.SUCCESS


@pytest.mark.django_db
class TestCampTerritoryGuard:
    def test_camp_with_records_cannot_change_territory(self, camp, coach_user, mid_plan, other_tenant):
        attach_plan_to_session(camp, coach_user, mid_plan)
        camp.tenant = other_tenant

        with pytest.raises(ValidationError) as excinfo:
            camp.full_clean()

        assert "tenant" in excinfo.value.message_dict

    def test_camp_without_records_can_change_territory(self, camp, other_tenant):
        camp.tenant = other_tenant

        camp.full_clean()

    def test_admin_locks_territory_once_records_exist(self, camp, coach_user, mid_plan, hq_user):
        model_admin = django_admin.site._registry[Camp]
        request = RequestFactory().get("/")
        request.user = hq_user

        assert "tenant" not in model_admin.get_readonly_fields(request, camp)
        attach_plan_to_session(camp, coach_user, mid_plan)
        assert "tenant" in model_admin.get_readonly_fields(request, camp)


@pytest.mark.django_db
class TestLicenseeTerritory:
    @pytest.fixture
    def second_membership(self, other_tenant, licensee_user, licensee_membership):
        return TenantUser.objects.create(tenant=other_tenant, user=licensee_user, is_default=False)

    def test_sign_off_matches_visibility(self, second_membership, licensee_user, tenant, other_tenant):
        ctx = CallerContext.for_user(licensee_user)

        assert ctx.tenant_id == tenant.pk
        assert can_sign_off(licensee_user, tenant.pk) is True
        assert can_sign_off(licensee_user, other_tenant.pk) is False

    def test_cannot_finalize_in_secondary_territory(
        self, second_membership, other_camp, coach_user, mid_plan, licensee_user,
    ):
        attach_plan_to_session(other_camp, coach_user, mid_plan)

        assert list(visible_compensations(CallerContext.for_user(licensee_user))) == []
        with pytest.raises(CompensationNotFound):
            finalize_session(other_camp.pk, coach_user.pk, licensee_user)
