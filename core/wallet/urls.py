from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import WalletViewSet, WalletTransactionViewSet

router = DefaultRouter()
# Registered first so 'transactions' is not taken for a distributor id
router.register(r'transactions', WalletTransactionViewSet, basename='wallet-transaction')
router.register(r'', WalletViewSet, basename='wallet')

urlpatterns = [
    path('', include(router.urls)),
]
