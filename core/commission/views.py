from django.db.models import Count, Sum
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from .models import LedgerEntry
from .serializers import LedgerEntrySerializer


class LedgerEntryViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Commission ledger, filterable by ?distributor=, ?kind= and ?period=
    """
    serializer_class = LedgerEntrySerializer
    permission_classes = [IsAdminUser]

    def get_queryset(self):
        queryset = LedgerEntry.objects.all()
        params = self.request.query_params
        if params.get('distributor'):
            queryset = queryset.filter(distributor_id=params['distributor'])
        if params.get('kind'):
            queryset = queryset.filter(kind=params['kind'])
        if params.get('period'):
            queryset = queryset.filter(period_id=params['period'])
        return queryset

    @action(detail=False, methods=['get'])
    def totals(self, request):
        """Gross, TDS, extra deduction and net per kind for the filtered entries"""
        rows = (
            self.get_queryset()
            .order_by()
            .values('kind')
            .annotate(
                entries=Count('id'),
                gross_amount=Sum('gross_amount'),
                tds_amount=Sum('tds_amount'),
                extra_deduction_amount=Sum('extra_deduction_amount'),
                net_amount=Sum('net_amount'),
            )
            .order_by('kind')
        )
        return Response(list(rows))
