from rest_framework import viewsets
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAdminUser

from .models import Wallet, WalletTransaction
from .serializers import WalletSerializer, WalletTransactionSerializer


class WalletTransactionPagination(PageNumberPagination):
    """Custom pagination for wallet transaction list with page_size support"""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100
    page_query_param = 'page'


class WalletViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Distributor wallets (admin only), looked up by distributor id
    """
    queryset = Wallet.objects.all().order_by('distributor_id')
    lookup_field = 'distributor'
    lookup_value_regex = '[^/]+'
    serializer_class = WalletSerializer
    permission_classes = [IsAdminUser]


class WalletTransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Wallet transactions, filterable by ?distributor= and ?transaction_type=
    """
    serializer_class = WalletTransactionSerializer
    permission_classes = [IsAdminUser]
    pagination_class = WalletTransactionPagination

    def get_queryset(self):
        queryset = WalletTransaction.objects.select_related('ledger_entry')
        params = self.request.query_params
        if params.get('distributor'):
            queryset = queryset.filter(distributor_id=params['distributor'])
        if params.get('transaction_type'):
            queryset = queryset.filter(transaction_type=params['transaction_type'])
        return queryset
