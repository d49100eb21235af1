"""
Workflow tests for room requests at the service layer.

These cover submission preconditions, approval with seat accounting,
automatic rejection when approval can no longer succeed, and the
consistency of occupancy, residents and the student's current room.
"""
import pytest
from django.db import connection, transaction
from django.test.utils import CaptureQueriesContext
from rest_framework.exceptions import NotFound, PermissionDenied

from core.exceptions import Conflict
from core.models import Allocation, AuditEvent, Room, RoomRequest
from core.services import notify
from core.services import room_requests as svc
from core.services.request_states import InvalidTransition

pytestmark = pytest.mark.django_db


# ---------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------
def test_submit_creates_pending_request(student, make_room):
    room = make_room()
    rr = svc.submit_request(student, room.id, 'near the stairs please')
    assert rr.status == RoomRequest.STATUS_PENDING
    assert rr.student_id == student.id
    assert rr.notes == 'near the stairs please'
    assert rr.decision_by is None and rr.decision_date is None
    assert AuditEvent.objects.filter(action='room_request_submit', object_id=rr.id).exists()


def test_admin_cannot_submit(admin_user, make_room):
    room = make_room()
    with pytest.raises(PermissionDenied) as exc:
        svc.submit_request(admin_user, room.id)
    assert str(exc.value.detail) == 'Only students can request rooms'
    assert RoomRequest.objects.count() == 0


def test_submit_unknown_or_inactive_room(student, make_room):
    inactive = make_room(is_active=False)
    with pytest.raises(NotFound):
        svc.submit_request(student, 9999)
    with pytest.raises(NotFound):
        svc.submit_request(student, inactive.id)


def test_submit_full_room(student, make_room):
    room = make_room(capacity=1, occupancy=1)
    with pytest.raises(Conflict) as exc:
        svc.submit_request(student, room.id)
    assert exc.value.reason == 'room_full'
    assert RoomRequest.objects.count() == 0


def test_submit_with_active_allocation(student, admin_user, make_room):
    home = make_room()
    other = make_room()
    svc.approve_request(admin_user, svc.submit_request(student, home.id).id)
    with pytest.raises(Conflict) as exc:
        svc.submit_request(student, other.id)
    assert exc.value.reason == 'already_allocated'


def test_duplicate_pending_request(student, admin_user, make_room):
    room = make_room()
    first = svc.submit_request(student, room.id)
    with pytest.raises(Conflict) as exc:
        svc.submit_request(student, room.id)
    assert exc.value.reason == 'duplicate_pending'

    # once decided, the same room may be requested again
    svc.reject_request(admin_user, first.id)
    again = svc.submit_request(student, room.id)
    assert again.id != first.id


def test_pending_requests_for_different_rooms_coexist(student, make_room):
    a, b = make_room(), make_room()
    svc.submit_request(student, a.id)
    svc.submit_request(student, b.id)
    assert RoomRequest.objects.filter(student=student, status='pending').count() == 2


# ---------------------------------------------------------------------
# Approval
# ---------------------------------------------------------------------
def test_approve_allocates_room(student, admin_user, make_room):
    room = make_room(capacity=2)
    rr = svc.submit_request(student, room.id)

    allocation, decided = svc.approve_request(admin_user, rr.id)

    assert decided.status == RoomRequest.STATUS_APPROVED
    assert decided.decision_by_id == admin_user.id
    assert decided.decision_date is not None
    assert allocation.status == Allocation.STATUS_ACTIVE
    assert allocation.student_id == student.id
    assert allocation.allocated_by_id == admin_user.id
    assert allocation.monthly_rent == room.monthly_rent
    assert allocation.notes == 'Approved via request'

    room.refresh_from_db()
    student.refresh_from_db()
    assert room.current_occupancy == 1
    assert list(room.residents.values_list('id', flat=True)) == [student.id]
    assert student.room_allocation_id == room.id
    assert AuditEvent.objects.filter(action='room_request_approve', object_id=rr.id).exists()


def test_approve_twice_is_rejected_without_side_effects(student, admin_user, make_room):
    room = make_room()
    rr = svc.submit_request(student, room.id)
    svc.approve_request(admin_user, rr.id)

    with pytest.raises(InvalidTransition) as exc:
        svc.approve_request(admin_user, rr.id)
    assert exc.value.reason == 'already_processed'

    room.refresh_from_db()
    assert room.current_occupancy == 1
    assert Allocation.objects.filter(student=student).count() == 1


def test_approve_when_room_filled_auto_rejects(student, other_student, admin_user, make_room):
    room = make_room(capacity=1)
    first = svc.submit_request(student, room.id)
    second = svc.submit_request(other_student, room.id)
    svc.approve_request(admin_user, first.id)

    with pytest.raises(Conflict) as exc:
        svc.approve_request(admin_user, second.id)
    assert exc.value.reason == 'room_full'
    assert exc.value.auto_rejected is True
    assert str(exc.value.detail) == 'Room is now full. Request auto-rejected.'

    second.refresh_from_db()
    room.refresh_from_db()
    assert second.status == RoomRequest.STATUS_REJECTED
    assert second.decision_by_id == admin_user.id
    assert room.current_occupancy == 1
    assert not Allocation.objects.filter(student=other_student).exists()
    assert AuditEvent.objects.filter(action='room_request_auto_reject', object_id=second.id).exists()


def test_approve_when_student_placed_elsewhere_auto_rejects(student, admin_user, make_room):
    a, b = make_room(), make_room()
    req_a = svc.submit_request(student, a.id)
    req_b = svc.submit_request(student, b.id)
    svc.approve_request(admin_user, req_a.id)

    with pytest.raises(Conflict) as exc:
        svc.approve_request(admin_user, req_b.id)
    assert exc.value.reason == 'already_allocated'
    assert exc.value.auto_rejected is True

    req_b.refresh_from_db()
    b.refresh_from_db()
    assert req_b.status == RoomRequest.STATUS_REJECTED
    assert b.current_occupancy == 0
    assert Allocation.objects.filter(student=student, status='active').count() == 1


def test_auto_rejected_request_cannot_be_decided_again(student, other_student, admin_user, make_room):
    room = make_room(capacity=1)
    first = svc.submit_request(student, room.id)
    second = svc.submit_request(other_student, room.id)
    svc.approve_request(admin_user, first.id)
    with pytest.raises(Conflict):
        svc.approve_request(admin_user, second.id)

    with pytest.raises(InvalidTransition):
        svc.approve_request(admin_user, second.id)
    with pytest.raises(InvalidTransition):
        svc.reject_request(admin_user, second.id)


def test_lost_seat_race_auto_rejects(student, admin_user, make_room, monkeypatch):
    room = make_room(capacity=1)
    rr = svc.submit_request(student, room.id)
    monkeypatch.setattr(Room, 'claim_seat', classmethod(lambda cls, room_id: False))

    with pytest.raises(Conflict) as exc:
        svc.approve_request(admin_user, rr.id)
    assert exc.value.reason == 'room_full'

    rr.refresh_from_db()
    assert rr.status == RoomRequest.STATUS_REJECTED
    assert not Allocation.objects.exists()


def test_concurrent_allocation_rolls_back_seat(student, admin_user, make_room, monkeypatch):
    a, b = make_room(), make_room()
    req_a = svc.submit_request(student, a.id)
    req_b = svc.submit_request(student, b.id)
    svc.approve_request(admin_user, req_a.id)
    # pretend the active allocation was committed after the pre-check ran
    monkeypatch.setattr(svc, '_has_active_allocation', lambda student_id: False)

    with pytest.raises(Conflict) as exc:
        svc.approve_request(admin_user, req_b.id)
    assert exc.value.reason == 'already_allocated'

    b.refresh_from_db()
    req_b.refresh_from_db()
    assert b.current_occupancy == 0
    assert req_b.status == RoomRequest.STATUS_REJECTED


def test_student_cannot_approve_or_reject(student, make_room):
    rr = svc.submit_request(student, make_room().id)
    with pytest.raises(PermissionDenied):
        svc.approve_request(student, rr.id)
    with pytest.raises(PermissionDenied):
        svc.reject_request(student, rr.id)
    rr.refresh_from_db()
    assert rr.status == RoomRequest.STATUS_PENDING


def test_decide_unknown_request(admin_user):
    with pytest.raises(NotFound):
        svc.approve_request(admin_user, 424242)
    with pytest.raises(NotFound):
        svc.reject_request(admin_user, 424242)


# ---------------------------------------------------------------------
# Rejection
# ---------------------------------------------------------------------
def test_reject_records_decision(student, admin_user, make_room):
    room = make_room()
    rr = svc.submit_request(student, room.id, 'original note')
    decided = svc.reject_request(admin_user, rr.id, notes='No pets allowed')
    assert decided.status == RoomRequest.STATUS_REJECTED
    assert decided.decision_by_id == admin_user.id
    assert decided.notes == 'No pets allowed'

    room.refresh_from_db()
    student.refresh_from_db()
    assert room.current_occupancy == 0
    assert not room.residents.exists()
    assert Allocation.objects.count() == 0
    assert student.room_allocation_id is None


def test_reject_without_notes_keeps_existing_notes(student, admin_user, make_room):
    rr = svc.submit_request(student, make_room().id, 'original note')
    decided = svc.reject_request(admin_user, rr.id)
    assert decided.notes == 'original note'


def test_reject_approved_request(student, admin_user, make_room):
    rr = svc.submit_request(student, make_room().id)
    svc.approve_request(admin_user, rr.id)
    with pytest.raises(InvalidTransition):
        svc.reject_request(admin_user, rr.id)
    rr.refresh_from_db()
    assert rr.status == RoomRequest.STATUS_APPROVED


# ---------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------
def test_list_own_requests_newest_first(student, other_student, make_room):
    a, b = make_room(), make_room()
    first = svc.submit_request(student, a.id)
    second = svc.submit_request(student, b.id)
    svc.submit_request(other_student, a.id)

    data = svc.list_own_requests(student)
    assert [r['id'] for r in data] == [second.id, first.id]
    assert data[0]['room']['roomNumber'] == b.room_number


def test_list_requests_filters_and_paginates(student, admin_user, make_room):
    rooms = [make_room() for _ in range(12)]
    for room in rooms:
        svc.submit_request(student, room.id)
    svc.reject_request(admin_user, RoomRequest.objects.order_by('id').first().id)

    page1 = svc.list_requests(admin_user)
    assert page1['total'] == 12
    assert page1['limit'] == 10
    assert page1['totalPages'] == 2
    assert page1['currentPage'] == 1
    assert len(page1['requests']) == 10
    assert page1['requests'][0]['student']['studentId'] == 'S1001'

    pending = svc.list_requests(admin_user, status='pending', page=2, limit=5)
    assert pending['total'] == 11
    assert pending['totalPages'] == 3
    assert len(pending['requests']) == 5
    assert pending['limit'] == 5

    clamped = svc.list_requests(admin_user, limit=500)
    assert clamped['limit'] == 100
    assert len(clamped['requests']) == 12


def test_list_requests_requires_admin(student):
    with pytest.raises(PermissionDenied):
        svc.list_requests(student)


def test_admin_has_no_own_requests(admin_user):
    with pytest.raises(PermissionDenied):
        svc.list_own_requests(admin_user)


# ---------------------------------------------------------------------
# Seat accounting and notifications
# ---------------------------------------------------------------------
def test_claim_seat_respects_capacity(make_room):
    room = make_room(capacity=1)
    assert Room.claim_seat(room.id) is True
    assert Room.claim_seat(room.id) is False
    room.refresh_from_db()
    assert room.current_occupancy == 1


def test_student_row_locked_before_per_student_checks(student, admin_user, make_room, monkeypatch):
    calls = []
    lock_student = svc._lock_student
    has_active_allocation = svc._has_active_allocation

    def recording_lock(student_id):
        calls.append(('lock', student_id))
        lock_student(student_id)

    def recording_check(student_id):
        calls.append(('check', student_id))
        return has_active_allocation(student_id)

    monkeypatch.setattr(svc, '_lock_student', recording_lock)
    monkeypatch.setattr(svc, '_has_active_allocation', recording_check)

    rr = svc.submit_request(student, make_room().id)
    assert calls == [('lock', student.id), ('check', student.id)]

    calls.clear()
    svc.approve_request(admin_user, rr.id)
    assert calls == [('lock', student.id), ('check', student.id)]


def test_student_lock_uses_select_for_update(student):
    if not connection.features.has_select_for_update:
        pytest.skip('database backend ignores SELECT ... FOR UPDATE')
    with transaction.atomic(), CaptureQueriesContext(connection) as ctx:
        svc._lock_student(student.id)
    assert any('FOR UPDATE' in q['sql'] for q in ctx.captured_queries)


def test_updates_published_after_commit(student, admin_user, make_room, monkeypatch, django_capture_on_commit_callbacks):
    sent = []
    monkeypatch.setattr(notify, '_send', lambda groups, payload: sent.append((groups, payload)))
    room = make_room()

    with django_capture_on_commit_callbacks(execute=True):
        rr = svc.submit_request(student, room.id)
    with django_capture_on_commit_callbacks(execute=True):
        allocation, _ = svc.approve_request(admin_user, rr.id)

    assert [payload['event'] for _, payload in sent] == ['submitted', 'approved']
    groups, payload = sent[-1]
    assert groups == [notify.ADMINS_GROUP, notify.student_group(student.id)]
    assert payload['status'] == 'approved'
    assert payload['allocationId'] == allocation.id


def test_nothing_published_for_failed_approval(student, admin_user, make_room, monkeypatch, django_capture_on_commit_callbacks):
    sent = []
    monkeypatch.setattr(notify, '_send', lambda groups, payload: sent.append(payload))
    rr = svc.submit_request(student, make_room().id)
    svc.approve_request(admin_user, rr.id)

    with django_capture_on_commit_callbacks(execute=True):
        with pytest.raises(InvalidTransition):
            svc.approve_request(admin_user, rr.id)
    assert sent == []
