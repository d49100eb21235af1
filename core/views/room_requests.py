"""
Room request endpoints.

Students submit requests and list their own; administrators list every
request and approve or reject pending ones.  Role checks, validation of
the workflow preconditions and all writes live in
:mod:`core.services.room_requests`; these views only parse input and
shape the responses.  Failures are rendered by
:func:`core.exceptions.api_exception_handler`.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle

from core.serializers.room_requests import (
    RoomRequestCreateSerializer,
    RoomRequestListQuerySerializer,
    RoomRequestRejectSerializer,
)
from core.services.room_requests import (
    approve_request,
    format_request,
    list_own_requests,
    list_requests,
    reject_request,
    submit_request,
)
from core.services.rooms import format_allocation


class RoomRequestWriteThrottle(UserRateThrottle):
    """Throttle request submission only; the admin listing shares the URL."""
    scope = 'room_request_write'

    def allow_request(self, request, view):
        if request.method != 'POST':
            return True
        return super().allow_request(request, view)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([RoomRequestWriteThrottle])
def room_requests(request):
    """``POST`` submits a request (student); ``GET`` lists all requests (admin)."""
    if request.method == 'POST':
        s = RoomRequestCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        room_request = submit_request(request.user, s.validated_data['roomId'], s.validated_data.get('notes'))
        return Response(
            {'ok': True, 'message': 'Request submitted', 'request': format_request(room_request)},
            status=status.HTTP_201_CREATED,
        )

    q = RoomRequestListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = list_requests(
        request.user,
        status=q.validated_data.get('status') or None,
        page=q.validated_data.get('page', 1),
        limit=q.validated_data.get('limit'),
    )
    return Response({'ok': True, **data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_room_requests(request):
    """The caller's own requests, newest first."""
    return Response(list_own_requests(request.user))


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated])
def approve_room_request(request, pk: int):
    allocation, room_request = approve_request(request.user, pk)
    return Response({
        'ok': True,
        'message': 'Request approved and allocation created',
        'allocation': format_allocation(allocation),
        'request': format_request(room_request, with_student=True),
    })


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated])
def reject_room_request(request, pk: int):
    s = RoomRequestRejectSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    room_request = reject_request(request.user, pk, notes=s.validated_data.get('notes'))
    return Response({
        'ok': True,
        'message': 'Request rejected',
        'request': format_request(room_request, with_student=True),
    })
