"""
Push room request changes to connected WebSocket clients.

Events are sent once the surrounding transaction commits so clients
never see a decision that was rolled back.  Admins share one group;
each student has a private group keyed by user id.
"""
from __future__ import annotations

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)

ADMINS_GROUP = 'room_requests.admins'


def student_group(user_id: int) -> str:
    return f'room_requests.student.{user_id}'


def _send(groups: list[str], payload: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    event = {'type': 'room_request.update', 'payload': payload}
    for group in groups:
        async_to_sync(channel_layer.group_send)(group, event)


def publish_request_update(event: str, room_request, **extra) -> None:
    """Schedule an ``event`` about ``room_request`` for its student and the admins."""
    payload = {
        'event': event,
        'requestId': room_request.id,
        'roomId': room_request.room_id,
        'studentId': room_request.student_id,
        'status': room_request.status,
        **extra,
    }
    groups = [ADMINS_GROUP, student_group(room_request.student_id)]

    def _on_commit() -> None:
        try:
            _send(groups, payload)
        except Exception:
            # already committed; push failures are logged only
            logger.exception('failed to publish %s for request %s', event, room_request.id)

    transaction.on_commit(_on_commit)
