from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import DistributorViewSet, PairMatchEventViewSet, compensation_event

router = DefaultRouter()
router.register(r'distributors', DistributorViewSet, basename='distributor')
router.register(r'pairs', PairMatchEventViewSet, basename='pair-match')

urlpatterns = [
    path('events/', compensation_event, name='compensation-event'),
    path('', include(router.urls)),
]
