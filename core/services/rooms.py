from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import F
from rest_framework.exceptions import NotFound

from core.models import Allocation, Room
from core.permissions import VIEW_OWN_ALLOCATION, ensure_capability
from core.services.pagination import paginate

User = get_user_model()


def format_room_summary(room: Room) -> dict:
    return {
        'id': room.id,
        'roomNumber': room.room_number,
        'floor': room.floor,
        'roomType': room.room_type,
        'capacity': room.capacity,
        'currentOccupancy': room.current_occupancy,
    }


def format_room(room: Room) -> dict:
    return {
        **format_room_summary(room),
        'monthlyRent': str(room.monthly_rent),
        'amenities': room.amenities or [],
        'isActive': room.is_active,
    }


def format_user_summary(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        'id': user.id,
        'name': user.get_full_name() or user.username,
        'email': user.email,
        'studentId': user.student_id,
    }


def format_allocation(allocation: Allocation) -> dict:
    room = allocation.room
    admin = allocation.allocated_by
    return {
        'id': allocation.id,
        'student': format_user_summary(allocation.student),
        'room': {
            **format_room(room),
            'residents': list(room.residents.order_by('id').values_list('id', flat=True)),
        },
        'allocatedBy': {'id': admin.id, 'name': admin.get_full_name() or admin.username} if admin else None,
        'status': allocation.status,
        'startDate': allocation.start_date.isoformat() if allocation.start_date else None,
        'endDate': allocation.end_date.isoformat() if allocation.end_date else None,
        'monthlyRent': str(allocation.monthly_rent),
        'notes': allocation.notes,
    }


def list_rooms(*, available: bool = False, page: int = 1, limit: Optional[int] = None) -> dict:
    """Active rooms for browsing; ``available`` keeps rooms with a free seat."""
    qs = Room.objects.filter(is_active=True)
    if available:
        qs = qs.filter(current_occupancy__lt=F('capacity'))
    rooms, meta = paginate(
        qs.order_by('floor', 'room_number'), page, limit,
        default=settings.ROOMS_PAGE_SIZE, maximum=settings.ROOM_REQUESTS_MAX_PAGE_SIZE,
    )
    return {'rooms': [format_room(r) for r in rooms], **meta}


def get_my_allocation(user) -> Allocation:
    ensure_capability(user, VIEW_OWN_ALLOCATION)
    allocation = (
        Allocation.objects.select_related('student', 'room', 'allocated_by')
        .filter(student=user, status=Allocation.STATUS_ACTIVE)
        .first()
    )
    if allocation is None:
        raise NotFound('No active allocation')
    return allocation
