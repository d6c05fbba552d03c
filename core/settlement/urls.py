from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import SettlementFailureViewSet, SettlementPeriodViewSet, run_daily

router = DefaultRouter()
router.register(r'periods', SettlementPeriodViewSet, basename='settlement-period')
router.register(r'failures', SettlementFailureViewSet, basename='settlement-failure')

urlpatterns = [
    path('run-daily/', run_daily, name='settlement-run-daily'),
    path('', include(router.urls)),
]
