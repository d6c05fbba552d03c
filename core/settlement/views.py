import logging

from rest_framework import status, viewsets
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from .models import SettlementFailure, SettlementPeriod
from .serializers import RunDailySerializer, SettlementFailureSerializer, SettlementPeriodSerializer
from .utils import previous_day, run_daily_cycle

logger = logging.getLogger(__name__)


class SettlementPeriodViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Settlement periods, filterable by ?type= and ?status=
    """
    serializer_class = SettlementPeriodSerializer
    permission_classes = [IsAdminUser]

    def get_queryset(self):
        queryset = SettlementPeriod.objects.all()
        params = self.request.query_params
        if params.get('type'):
            queryset = queryset.filter(type=params['type'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        return queryset


class SettlementFailureViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Per-distributor settlement failures; ?pending=true for unresolved only
    """
    serializer_class = SettlementFailureSerializer
    permission_classes = [IsAdminUser]

    def get_queryset(self):
        queryset = SettlementFailure.objects.all()
        if self.request.query_params.get('pending') == 'true':
            queryset = queryset.filter(resolved_at__isnull=True)
        return queryset


@api_view(['POST'])
@permission_classes([IsAdminUser])
def run_daily(request):
    """
    Run the daily settlement cycle now (default: yesterday).

    POST /api/settlement/run-daily/
    """
    serializer = RunDailySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    run_date = serializer.validated_data.get('run_date') or previous_day()

    try:
        summary = run_daily_cycle(run_date=run_date)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)

    logger.info(f"Daily settlement for {run_date} run manually by {request.user.username}")
    return Response(summary, status=status.HTTP_200_OK)
