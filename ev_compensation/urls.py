"""
URL configuration for ev_compensation project.
"""
from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('api/settings/', include('core.settings.urls')),
    path('api/binary/', include('core.binary.urls')),
    path('api/commission/', include('core.commission.urls')),
    path('api/wallet/', include('core.wallet.urls')),
    path('api/ceiling/', include('core.ceiling.urls')),
    path('api/settlement/', include('core.settlement.urls')),
]
