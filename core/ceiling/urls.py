from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import LevelStateViewSet

router = DefaultRouter()
router.register(r'levels', LevelStateViewSet, basename='level-state')

urlpatterns = [
    path('', include(router.urls)),
]
