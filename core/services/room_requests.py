"""
Room request workflow.

Students submit requests for a room; administrators approve or reject
them.  Approval provisions an :class:`~core.models.Allocation` and keeps
three things consistent: room occupancy, the student's single active
allocation, and the request's terminal status.

Every precondition is re-checked at decision time.  Approval locks the
request and room rows and takes the seat with
:meth:`Room.claim_seat <core.models.Room.claim_seat>`, so capacity can't
be exceeded even when two admins approve requests for the last seat at
once.  When approval fails because the room filled up or the student
was placed elsewhere, the request is closed as rejected and that
rejection is committed before the ``Conflict`` reaches the caller.
Per-student checks (one active allocation, one pending request per
room) run under a lock on the student's row, so they hold even where the
database can't enforce the matching partial unique index.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from core.exceptions import Conflict
from core.models import Allocation, Room, RoomRequest
from core.permissions import (
    APPROVE_REQUEST,
    LIST_OWN_REQUESTS,
    LIST_REQUESTS,
    REJECT_REQUEST,
    SUBMIT_REQUEST,
    ensure_capability,
)
from core.services import audit
from core.services.notify import publish_request_update
from core.services.pagination import paginate
from core.services.request_states import APPROVED, PENDING, REJECTED, transition
from core.services.rooms import format_room_summary, format_user_summary

logger = logging.getLogger(__name__)
User = get_user_model()

ROOM_FULL = 'room_full'
ALREADY_ALLOCATED = 'already_allocated'
DUPLICATE_PENDING = 'duplicate_pending'

AUTO_REJECT_MESSAGES = {
    ROOM_FULL: 'Room is now full. Request auto-rejected.',
    ALREADY_ALLOCATED: 'Student already has an active allocation. Request rejected.',
}


def format_request(room_request: RoomRequest, *, with_student: bool = False) -> dict:
    data = {
        'id': room_request.id,
        'studentId': room_request.student_id,
        'room': format_room_summary(room_request.room),
        'status': room_request.status,
        'decisionBy': room_request.decision_by_id,
        'decisionDate': room_request.decision_date.isoformat() if room_request.decision_date else None,
        'notes': room_request.notes,
        'createdAt': room_request.created_at.isoformat() if room_request.created_at else None,
        'updatedAt': room_request.updated_at.isoformat() if room_request.updated_at else None,
    }
    if with_student:
        data['student'] = format_user_summary(room_request.student)
    return data


def _has_active_allocation(student_id: int) -> bool:
    return Allocation.objects.filter(student_id=student_id, status=Allocation.STATUS_ACTIVE).exists()


def _lock_request(request_id: int) -> RoomRequest:
    room_request = RoomRequest.objects.select_for_update().filter(pk=request_id).first()
    if room_request is None:
        raise NotFound('Request not found')
    return room_request


def _lock_student(student_id: int) -> None:
    """Lock the student row so allocation and duplicate checks for one student run one at a time."""
    User.objects.select_for_update().only('pk').get(pk=student_id)


# ---------------------------------------------------------------------
# Student operations
# ---------------------------------------------------------------------
def submit_request(user: User, room_id: int, notes: Optional[str] = None) -> RoomRequest:
    ensure_capability(user, SUBMIT_REQUEST)

    duplicate = Conflict('You already have a pending request for this room', code=DUPLICATE_PENDING)
    try:
        with transaction.atomic():
            _lock_student(user.id)
            room = Room.objects.filter(pk=room_id, is_active=True).first()
            if room is None:
                raise NotFound('Room not found or inactive')
            if not room.has_space:
                raise Conflict('Room is full', code=ROOM_FULL)
            if _has_active_allocation(user.id):
                raise Conflict('You already have a room allocated', code=ALREADY_ALLOCATED)
            if RoomRequest.objects.filter(student=user, room=room, status=PENDING).exists():
                raise duplicate
            room_request = RoomRequest.objects.create(student=user, room=room, notes=notes or '')
            audit.log_request_event(user, audit.SUBMIT, room_request)
    except IntegrityError:
        # lost a race with an identical submission
        raise duplicate

    publish_request_update('submitted', room_request)
    logger.info('room request %s submitted by user %s for room %s', room_request.id, user.id, room.id)
    return room_request


def list_own_requests(user: User) -> list[dict]:
    ensure_capability(user, LIST_OWN_REQUESTS)
    qs = RoomRequest.objects.filter(student=user).select_related('room').order_by('-created_at', '-id')
    return [format_request(r) for r in qs]


# ---------------------------------------------------------------------
# Administrator operations
# ---------------------------------------------------------------------
def list_requests(user: User, *, status: Optional[str] = None, page: int = 1, limit: Optional[int] = None) -> dict:
    ensure_capability(user, LIST_REQUESTS)
    qs = RoomRequest.objects.select_related('student', 'room')
    if status:
        qs = qs.filter(status=status)
    items, meta = paginate(
        qs.order_by('-created_at', '-id'), page, limit,
        default=settings.ROOM_REQUESTS_PAGE_SIZE, maximum=settings.ROOM_REQUESTS_MAX_PAGE_SIZE,
    )
    return {'requests': [format_request(r, with_student=True) for r in items], **meta}


def _auto_reject(room_request: RoomRequest, admin: User, reason: str) -> Conflict:
    room_request.decide(REJECTED, admin)
    audit.log_request_event(admin, audit.AUTO_REJECT, room_request, reason=reason)
    publish_request_update('rejected', room_request, reason=reason)
    logger.warning('room request %s auto-rejected by admin %s: %s', room_request.id, admin.id, reason)
    return Conflict(AUTO_REJECT_MESSAGES[reason], code=reason, auto_rejected=True)


def _claim_and_allocate(room_request: RoomRequest, room: Room, admin: User) -> tuple[Optional[Allocation], Optional[str]]:
    """Take a seat in ``room`` and create the allocation as one unit.

    Returns ``(allocation, None)`` or ``(None, reason)`` when the seat or
    the student's single active allocation was taken concurrently.
    """
    try:
        with transaction.atomic():
            if not Room.claim_seat(room.pk):
                return None, ROOM_FULL
            allocation = Allocation.objects.create(
                student_id=room_request.student_id,
                room=room,
                allocated_by=admin,
                start_date=timezone.now(),
                monthly_rent=room.monthly_rent,
                notes='Approved via request',
            )
    except IntegrityError:
        return None, ALREADY_ALLOCATED
    return allocation, None


def approve_request(user: User, request_id: int) -> tuple[Allocation, RoomRequest]:
    """Approve a pending request and allocate the room to its student."""
    ensure_capability(user, APPROVE_REQUEST)

    rejection: Optional[Conflict] = None
    allocation: Optional[Allocation] = None
    with transaction.atomic():
        room_request = _lock_request(request_id)
        transition(room_request.status, APPROVED)
        _lock_student(room_request.student_id)
        room = Room.objects.select_for_update().get(pk=room_request.room_id)

        if not room.has_space:
            rejection = _auto_reject(room_request, user, ROOM_FULL)
        elif _has_active_allocation(room_request.student_id):
            rejection = _auto_reject(room_request, user, ALREADY_ALLOCATED)
        else:
            allocation, reason = _claim_and_allocate(room_request, room, user)
            if allocation is None:
                rejection = _auto_reject(room_request, user, reason)
            else:
                room.residents.add(room_request.student_id)
                User.objects.filter(pk=room_request.student_id).update(room_allocation=room)
                room_request.decide(APPROVED, user)
                audit.log_request_event(user, audit.APPROVE, room_request, allocationId=allocation.id)
                publish_request_update('approved', room_request, allocationId=allocation.id)

    if rejection is not None:
        raise rejection

    logger.info(
        'room request %s approved by admin %s; allocation %s in room %s',
        room_request.id, user.id, allocation.id, room_request.room_id,
    )
    allocation = Allocation.objects.select_related('student', 'room', 'allocated_by').get(pk=allocation.pk)
    room_request = RoomRequest.objects.select_related('student', 'room').get(pk=room_request.pk)
    return allocation, room_request


def reject_request(user: User, request_id: int, notes: Optional[str] = None) -> RoomRequest:
    ensure_capability(user, REJECT_REQUEST)
    with transaction.atomic():
        room_request = _lock_request(request_id)
        room_request.decide(REJECTED, user, notes=notes)
        audit.log_request_event(user, audit.REJECT, room_request)
        publish_request_update('rejected', room_request)
    logger.info('room request %s rejected by admin %s', room_request.id, user.id)
    return RoomRequest.objects.select_related('student', 'room').get(pk=room_request.pk)
