from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from .models import CommissionSettings
from .serializers import CommissionSettingsSerializer


@api_view(['GET', 'PATCH'])
@permission_classes([IsAdminUser])
def settings_endpoint(request):
    """
    Handle requests to /api/settings/ for singleton pattern.
    GET: Retrieve commission settings
    PATCH: Update commission settings (validated before save)
    """
    settings = CommissionSettings.get_settings()
    
    if request.method == 'GET':
        serializer = CommissionSettingsSerializer(settings)
        return Response(serializer.data)
    
    serializer = CommissionSettingsSerializer(settings, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    serializer.save(updated_by=request.user)
    return Response(serializer.data)
