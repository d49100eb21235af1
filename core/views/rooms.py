"""
Room browsing and the student's own allocation.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.serializers.room_requests import RoomListQuerySerializer
from core.services.rooms import format_allocation, get_my_allocation, list_rooms


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def rooms(request):
    """List active rooms; ``available=true`` hides full rooms."""
    q = RoomListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = list_rooms(
        available=q.validated_data.get('available', False),
        page=q.validated_data.get('page', 1),
        limit=q.validated_data.get('limit'),
    )
    return Response({'ok': True, **data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_allocation(request):
    allocation = get_my_allocation(request.user)
    return Response({'ok': True, 'allocation': format_allocation(allocation)})
