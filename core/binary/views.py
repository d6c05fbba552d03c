import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from .exceptions import PlacementError
from .models import Distributor, PairMatchEvent
from .serializers import CompensationEventSerializer, DistributorSerializer, PairMatchEventSerializer
from .tasks import direct_referral_count_changed, purchase_activated, referral_placed
from .utils import get_ancestor_chain, get_subtree_size, get_weak_leg_report

logger = logging.getLogger(__name__)


class DistributorViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Tree nodes with their counters (admin only)
    """
    queryset = Distributor.objects.select_related('counters').prefetch_related('children').order_by('id')
    serializer_class = DistributorSerializer
    permission_classes = [IsAdminUser]

    def retrieve(self, request, *args, **kwargs):
        distributor = self.get_object()
        data = self.get_serializer(distributor).data
        data['left_subtree_size'] = get_subtree_size(distributor.id, 'left')
        data['right_subtree_size'] = get_subtree_size(distributor.id, 'right')
        return Response(data)

    @action(detail=True, methods=['get'])
    def ancestors(self, request, pk=None):
        distributor = self.get_object()
        try:
            chain = get_ancestor_chain(distributor.id)
        except PlacementError as e:
            logger.error(f"Ancestor chain for {distributor.id} is broken: {e}")
            return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response({'distributor_id': distributor.id, 'ancestors': chain})

    @action(detail=True, methods=['get'], url_path='weak-leg')
    def weak_leg(self, request, pk=None):
        distributor = self.get_object()
        return Response(get_weak_leg_report(distributor.id))


class PairMatchEventViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Pair matching history, filterable by ?distributor= and ?period=
    """
    serializer_class = PairMatchEventSerializer
    permission_classes = [IsAdminUser]

    def get_queryset(self):
        queryset = PairMatchEvent.objects.all()
        distributor_id = self.request.query_params.get('distributor')
        if distributor_id:
            queryset = queryset.filter(distributor_id=distributor_id)
        period_id = self.request.query_params.get('period')
        if period_id:
            queryset = queryset.filter(period_id=period_id)
        return queryset


@api_view(['POST'])
@permission_classes([IsAdminUser])
def compensation_event(request):
    """
    Accept one inbound event and queue it for processing.

    POST /api/binary/events/
    """
    serializer = CompensationEventSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    event_type = data['type']

    if event_type == CompensationEventSerializer.REFERRAL_PLACED:
        if data.get('referrer_id') and not Distributor.objects.filter(pk=data['referrer_id']).exists():
            raise NotFound(f"Referrer {data['referrer_id']} does not exist")
        task = referral_placed.delay(data['distributor_id'], data.get('referrer_id'), data.get('preferred_side'))
    elif event_type == CompensationEventSerializer.PURCHASE_ACTIVATED:
        amount_paid = data.get('amount_paid')
        task = purchase_activated.delay(data['distributor_id'], str(amount_paid) if amount_paid is not None else None)
    else:
        task = direct_referral_count_changed.delay(data['distributor_id'], data['new_count'])

    logger.info(f"Queued {event_type} for {data['distributor_id']} (task {task.id})")
    return Response({'type': event_type, 'task_id': task.id}, status=status.HTTP_202_ACCEPTED)
