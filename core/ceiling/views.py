from rest_framework import viewsets
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from .models import LevelChangeEvent, LevelState
from .serializers import LevelChangeEventSerializer, LevelStateSerializer


class LevelStateViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Level state per distributor; the detail view includes its change history
    """
    queryset = LevelState.objects.all().order_by('distributor_id')
    serializer_class = LevelStateSerializer
    permission_classes = [IsAdminUser]

    def retrieve(self, request, *args, **kwargs):
        state = self.get_object()
        data = self.get_serializer(state).data
        history = LevelChangeEvent.objects.filter(distributor_id=state.distributor_id)
        data['history'] = LevelChangeEventSerializer(history, many=True).data
        return Response(data)
