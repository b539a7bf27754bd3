"""Main API URL router for /api/v1/."""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from compensation import views as compensation_views

router = DefaultRouter()
router.register(r'compensation-plans', compensation_views.CompensationPlanViewSet, basename='compensation-plan')
router.register(r'session-compensations', compensation_views.SessionCompensationViewSet, basename='session-compensation')

urlpatterns = [
    path('', include(router.urls)),

    # Auth (tokens issued by simplejwt)
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Incentives
    path('incentives/me/', compensation_views.MyIncentiveSnapshotView.as_view(), name='incentive-me'),
    path('incentives/overview/', compensation_views.GlobalIncentiveOverviewView.as_view(), name='incentive-overview'),
    path('incentives/territories/<uuid:tenant_id>/', compensation_views.TerritoryIncentiveOverviewView.as_view(), name='incentive-territory'),
    path('incentives/staff/<uuid:user_id>/history/', compensation_views.StaffCompensationHistoryView.as_view(), name='incentive-staff-history'),
    path('incentives/camps/<uuid:camp_id>/recompute/', compensation_views.CampRecomputeView.as_view(), name='incentive-camp-recompute'),
    path('incentives/camps/<uuid:camp_id>/assignments/', compensation_views.CampAssignmentView.as_view(), name='incentive-camp-assign'),
    path(
        'incentives/camps/<uuid:camp_id>/staff/<uuid:user_id>/finalize/',
        compensation_views.FinalizeSessionView.as_view(),
        name='incentive-finalize',
    ),
    path(
        'incentives/camps/<uuid:camp_id>/staff/<uuid:user_id>/days/',
        compensation_views.CampDaySnapshotView.as_view(),
        name='incentive-day-snapshots',
    ),
]
