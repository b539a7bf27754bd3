"""Role-scoped rollups: visibility isolation, conservation and averages."""
from decimal import Decimal

import pytest
from django.core.exceptions import PermissionDenied

from accounts.models import User
from camps.models import Camp
from compensation.aggregator import (
    CallerContext,
    get_global_incentive_overview,
    get_my_incentive_snapshot,
    get_person_compensation_history,
    get_territory_incentive_overview,
    summarize_by_camp,
    summarize_by_staff,
    visible_compensations,
)
from compensation.exceptions import CompensationNotFound
from compensation.services import (
    attach_plan_to_session,
    finalize_session,
    recompute_record,
    supersede_compensation,
)


@pytest.fixture
def records(camp, other_camp, coach_user, other_coach_user, director_user, mid_plan, hq_user):
    """North: coach (finalized) + director (pending). South: coach + other coach."""
    north_coach = attach_plan_to_session(camp, coach_user, mid_plan)
    north_director = attach_plan_to_session(camp, director_user, mid_plan, role="DIRECTOR")
    south_coach = attach_plan_to_session(other_camp, coach_user, mid_plan)
    south_other = attach_plan_to_session(other_camp, other_coach_user, mid_plan)
    finalize_session(camp.pk, coach_user.pk, hq_user)
    return {
        "north_coach": north_coach,
        "north_director": north_director,
        "south_coach": south_coach,
        "south_other": south_other,
    }


def _ctx(user, tenant=None):
    return CallerContext(user_id=user.pk, role=user.role, tenant_id=tenant.pk if tenant else None)


@pytest.mark.django_db
class TestCallerContext:
    def test_for_licensee_uses_default_membership(self, licensee_user, licensee_membership, tenant):
        ctx = CallerContext.for_user(licensee_user)

        assert ctx.is_licensee_owner
        assert ctx.tenant_id == tenant.pk

    def test_superuser_counts_as_hq(self, db):
        admin = User.objects.create_superuser(
            email="root@test.com", password="x", first_name="Root", last_name="User",
        )
        admin.role = User.Role.COACH

        assert CallerContext.for_user(admin).is_hq_admin


@pytest.mark.django_db
class TestVisibility:
    def test_staff_only_sees_own_records_across_territories(self, records, coach_user):
        visible = list(visible_compensations(_ctx(coach_user)))

        assert {r.pk for r in visible} == {records["north_coach"].pk, records["south_coach"].pk}
        assert all(r.staff_profile_id == coach_user.pk for r in visible)

    def test_licensee_only_sees_own_territory(self, records, licensee_user, tenant):
        visible = list(visible_compensations(_ctx(licensee_user, tenant)))

        assert {r.pk for r in visible} == {records["north_coach"].pk, records["north_director"].pk}
        assert all(r.tenant_id == tenant.pk for r in visible)

    def test_licensee_without_territory_sees_nothing(self, records, licensee_user):
        assert not visible_compensations(_ctx(licensee_user)).exists()

    def test_hq_sees_everything(self, records, hq_user):
        assert visible_compensations(_ctx(hq_user)).count() == 4

    def test_superseded_records_are_excluded(self, records, camp, coach_user, hq_user):
        old = records["north_coach"]
        old.refresh_from_db()
        replacement = supersede_compensation(old, hq_user, "Correction")

        visible_ids = set(visible_compensations(_ctx(hq_user)).values_list("pk", flat=True))

        assert old.pk not in visible_ids
        assert replacement.pk in visible_ids


@pytest.mark.django_db
class TestSnapshots:
    def test_my_snapshot_totals_and_conservation(self, records, coach_user):
        snapshot = get_my_incentive_snapshot(_ctx(coach_user))

        # North: 42 campers -> 210 (finalized); South: 30 campers -> 150 (pending)
        assert snapshot.total_sessions == 2
        assert snapshot.finalized_compensation == Decimal("210.00")
        assert snapshot.pending_compensation == Decimal("150.00")
        assert snapshot.total_compensation == Decimal("360.00")
        assert snapshot.pending_compensation + snapshot.finalized_compensation == snapshot.total_compensation
        assert snapshot.avg_enrollment == Decimal("36.00")
        assert snapshot.avg_csat_score is None

    def test_line_items_newest_camp_first(self, records, coach_user, other_camp):
        snapshot = get_my_incentive_snapshot(_ctx(coach_user))

        assert [item.camp_id for item in snapshot.line_items][0] == other_camp.pk
        assert snapshot.line_items[1].is_finalized is True
        assert snapshot.line_items[1].plan_code == "MID"

    def test_averages_ignore_missing_facts(self, records, camp, other_camp, hq_user):
        Camp.objects.filter(pk=camp.pk).update(csat_avg_score=Decimal("4.20"))
        Camp.objects.filter(pk=other_camp.pk).update(enrolled_campers=None)
        for record in records.values():
            record.refresh_from_db()
            if not record.is_finalized:
                recompute_record(record)

        snapshot = get_global_incentive_overview(_ctx(hq_user)).totals

        # Only the pending north director picked up the CSAT score.
        assert snapshot.avg_csat_score == Decimal("4.20")
        # Finalized north coach (42) + pending north director (42); south has none.
        assert snapshot.avg_enrollment == Decimal("42.00")

    def test_empty_snapshot(self, coach_user):
        snapshot = get_my_incentive_snapshot(_ctx(coach_user))

        assert snapshot.total_sessions == 0
        assert snapshot.total_compensation == Decimal("0.00")
        assert snapshot.avg_enrollment is None


@pytest.mark.django_db
class TestTerritoryOverview:
    def test_licensee_overview_per_staff_sorted(self, records, licensee_user, tenant):
        overview = get_territory_incentive_overview(_ctx(licensee_user, tenant), tenant.pk)

        assert overview.tenant == tenant
        assert overview.totals.total_compensation == Decimal("420.00")
        assert overview.totals.finalized_compensation == Decimal("210.00")
        assert len(overview.per_staff) == 2
        totals = [s.total_compensation for s in overview.per_staff]
        assert totals == sorted(totals, reverse=True)
        director = next(s for s in overview.per_staff if s.role == "DIRECTOR")
        assert director.pending_compensation == Decimal("210.00")

    def test_foreign_territory_is_not_found(self, records, licensee_user, tenant, other_tenant):
        with pytest.raises(CompensationNotFound):
            get_territory_incentive_overview(_ctx(licensee_user, tenant), other_tenant.pk)

    def test_missing_territory_is_not_found(self, hq_user):
        with pytest.raises(CompensationNotFound):
            get_territory_incentive_overview(_ctx(hq_user), "00000000-0000-0000-0000-000000000000")

    def test_staff_are_denied(self, records, coach_user, tenant):
        with pytest.raises(PermissionDenied):
            get_territory_incentive_overview(_ctx(coach_user, tenant), tenant.pk)


@pytest.mark.django_db
class TestGlobalOverview:
    def test_hq_gets_one_overview_per_territory(self, records, hq_user, tenant, other_tenant):
        overview = get_global_incentive_overview(_ctx(hq_user))

        assert [t.tenant for t in overview.territories] == [tenant, other_tenant]
        assert overview.totals.total_compensation == sum(
            t.totals.total_compensation for t in overview.territories
        )

    def test_licensee_is_denied(self, licensee_user, tenant):
        with pytest.raises(PermissionDenied):
            get_global_incentive_overview(_ctx(licensee_user, tenant))


@pytest.mark.django_db
class TestPersonHistory:
    def test_staff_can_read_own_history(self, records, coach_user):
        history = get_person_compensation_history(_ctx(coach_user), coach_user.pk)

        assert history.total_sessions == 2

    def test_staff_cannot_read_someone_else(self, records, coach_user, other_coach_user):
        with pytest.raises(CompensationNotFound):
            get_person_compensation_history(_ctx(coach_user), other_coach_user.pk)

    def test_licensee_history_limited_to_territory(self, records, licensee_user, tenant, coach_user):
        history = get_person_compensation_history(_ctx(licensee_user, tenant), coach_user.pk)

        assert history.total_sessions == 1
        assert history.line_items[0].tenant_id == tenant.pk


@pytest.mark.django_db
class TestStaffAverages:
    def test_staff_averages_skip_missing_facts(self, records, other_camp, coach_user, hq_user):
        Camp.objects.filter(pk=other_camp.pk).update(csat_avg_score=Decimal("4.00"))
        recompute_record(records["south_coach"])

        summaries = summarize_by_staff(visible_compensations(_ctx(hq_user)))

        coach = next(s for s in summaries if s.staff_profile_id == coach_user.pk)
        # North has no CSAT score yet; only the south session counts.
        assert coach.avg_csat_score == Decimal("4.00")
        assert coach.avg_enrollment == Decimal("36.00")

    def test_staff_without_reported_facts_have_no_averages(self, records, director_user, hq_user):
        summaries = summarize_by_staff(visible_compensations(_ctx(hq_user)))

        director = next(s for s in summaries if s.staff_profile_id == director_user.pk)
        assert director.avg_csat_score is None
        assert director.avg_enrollment == Decimal("42.00")


@pytest.mark.django_db
class TestCampRollups:
    def test_global_per_camp_conservation(self, records, camp, other_camp, hq_user):
        overview = get_global_incentive_overview(_ctx(hq_user))

        assert [c.camp_id for c in overview.per_camp] == [other_camp.pk, camp.pk]
        south, north = overview.per_camp
        assert (north.total_sessions, north.pending_compensation, north.finalized_compensation) == (
            2, Decimal("210.00"), Decimal("210.00"),
        )
        assert north.total_compensation == Decimal("420.00")
        assert south.total_compensation == south.pending_compensation == Decimal("300.00")
        for summary in overview.per_camp:
            assert summary.pending_compensation + summary.finalized_compensation == summary.total_compensation
        assert sum(c.total_compensation for c in overview.per_camp) == overview.totals.total_compensation

    def test_territory_per_camp_only_lists_its_camps(self, records, camp, licensee_user, tenant):
        overview = get_territory_incentive_overview(_ctx(licensee_user, tenant), tenant.pk)

        assert [c.camp_id for c in overview.per_camp] == [camp.pk]
        assert overview.per_camp[0].tenant_id == tenant.pk
        assert overview.per_camp[0].total_compensation == overview.totals.total_compensation

    def test_each_territory_carries_its_camps(self, records, hq_user, other_camp):
        overview = get_global_incentive_overview(_ctx(hq_user))

        south = overview.territories[1]
        assert [c.camp_id for c in south.per_camp] == [other_camp.pk]

    def test_superseded_records_leave_the_camp_rollup(self, records, camp, hq_user):
        old = records["north_coach"]
        old.refresh_from_db()
        supersede_compensation(old, hq_user, "Correction")

        north = next(
            c for c in summarize_by_camp(visible_compensations(_ctx(hq_user)))
            if c.camp_id == camp.pk
        )
        assert north.total_sessions == 2
        assert north.finalized_compensation == Decimal("0.00")
        assert north.pending_compensation == Decimal("420.00")
