"""Audit trail for logins and room request decisions."""
from typing import Optional, Any, Dict

from django.contrib.auth import get_user_model

from core.models import AuditEvent, RoomRequest

User = get_user_model()

SUBMIT = 'room_request_submit'
APPROVE = 'room_request_approve'
AUTO_REJECT = 'room_request_auto_reject'
REJECT = 'room_request_reject'


def log_action(*, user: Optional[User], action: str, object_type: Optional[str]=None, object_id: Optional[int]=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    return AuditEvent.objects.create(
        user=user if isinstance(user, User) and user.pk else None,
        action=action,
        object_type=object_type, object_id=object_id,
        detail=detail or {},
    )


def log_request_event(user: User, action: str, room_request: RoomRequest, **detail: Any) -> AuditEvent:
    """Record a room request event with the request's current status."""
    return log_action(
        user=user,
        action=action,
        object_type='room_request',
        object_id=room_request.id,
        detail={
            'studentId': room_request.student_id,
            'roomId': room_request.room_id,
            'status': room_request.status,
            **detail,
        },
    )
