"""
Database models for the hostel backend.

These models capture the records the room request workflow keeps
consistent: rooms with their occupancy, allocations binding a student
to a room, and the requests students raise for a room.  Users carry a
role (student or admin) and a reference to the room they currently
live in.
"""
from __future__ import annotations

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class User(AbstractUser):
    """Custom user model with a role and a current-room reference.

    ``room_allocation`` mirrors the student's active :class:`Allocation`
    and is maintained by the approval workflow.
    """
    ROLE_STUDENT = 'student'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_STUDENT, 'Student'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_STUDENT, db_index=True)
    student_id = models.CharField(max_length=32, blank=True)
    room_allocation = models.ForeignKey(
        'Room', null=True, blank=True, on_delete=models.SET_NULL, related_name='allocated_students'
    )

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Room(models.Model):
    """A hostel room with a fixed capacity.

    ``current_occupancy`` is a counter kept equal to the number of active
    allocations for the room.  It is only ever incremented through
    :meth:`claim_seat` so the capacity check and the write
    happen in one statement.
    """
    TYPE_SINGLE = 'single'
    TYPE_DOUBLE = 'double'
    TYPE_TRIPLE = 'triple'
    TYPE_DORMITORY = 'dormitory'
    TYPE_CHOICES = (
        (TYPE_SINGLE, 'single'),
        (TYPE_DOUBLE, 'double'),
        (TYPE_TRIPLE, 'triple'),
        (TYPE_DORMITORY, 'dormitory'),
    )

    room_number = models.CharField(max_length=20, unique=True)
    floor = models.IntegerField(default=0)
    room_type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_DOUBLE)
    capacity = models.PositiveIntegerField(default=1)
    current_occupancy = models.PositiveIntegerField(default=0)
    monthly_rent = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    amenities = models.JSONField(default=list, blank=True)
    residents = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name='residences')
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['floor', 'room_number']
        constraints = [
            models.CheckConstraint(condition=Q(capacity__gte=1), name='room_capacity_positive'),
            models.CheckConstraint(
                condition=Q(current_occupancy__lte=F('capacity')),
                name='room_occupancy_within_capacity',
            ),
        ]

    def __str__(self) -> str:
        return f"Room {self.room_number} ({self.current_occupancy}/{self.capacity})"

    @property
    def has_space(self) -> bool:
        return self.current_occupancy < self.capacity

    @classmethod
    def claim_seat(cls, room_id: int) -> bool:
        """Increment occupancy by one if the room is still below capacity.

        Returns ``False`` when no seat was left.  The comparison and the
        increment are a single ``UPDATE`` so two concurrent approvals can
        never both take the last seat.
        """
        updated = cls.objects.filter(pk=room_id, current_occupancy__lt=F('capacity')).update(
            current_occupancy=F('current_occupancy') + 1,
            updated_at=timezone.now(),
        )
        return updated == 1


class Allocation(models.Model):
    """Binds one student to one room.

    Created only as a side effect of approving a :class:`RoomRequest`.
    The rent is copied from the room at creation time.
    """
    STATUS_ACTIVE = 'active'
    STATUS_ENDED = 'ended'
    STATUS_CHOICES = ((STATUS_ACTIVE, 'active'), (STATUS_ENDED, 'ended'))

    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='allocations')
    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name='allocations')
    allocated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name='allocations_made',
    )
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)
    monthly_rent = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['student'],
                condition=Q(status='active'),
                name='one_active_allocation_per_student',
            ),
        ]
        indexes = [
            models.Index(fields=['room', 'status'], name='alloc_room_status_idx'),
        ]

    def __str__(self) -> str:
        return f"allocation s={self.student_id} r={self.room_id} ({self.status})"


class RoomRequest(models.Model):
    """A student's request to be placed in a specific room.

    Starts ``pending`` and is closed exactly once by an administrator's
    decision.  Status changes go through :meth:`decide`, which consults
    the transition table in :mod:`core.services.request_states`.
    """
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'pending'),
        (STATUS_APPROVED, 'approved'),
        (STATUS_REJECTED, 'rejected'),
    )

    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='room_requests')
    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name='requests')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    decision_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
        related_name='room_request_decisions',
    )
    decision_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'room'],
                condition=Q(status='pending'),
                name='one_pending_request_per_student_room',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'created_at'], name='roomreq_status_created_idx'),
            models.Index(fields=['student', 'created_at'], name='roomreq_student_created_idx'),
        ]

    def __str__(self) -> str:
        return f"request s={self.student_id} r={self.room_id} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status == self.STATUS_PENDING

    def decide(self, status: str, admin, notes: str | None = None) -> None:
        """Move the request to a terminal ``status`` and persist it."""
        from core.services.request_states import transition

        self.status = transition(self.status, status)
        self.decision_by = admin
        self.decision_date = timezone.now()
        if notes:
            self.notes = notes
        self.save(update_fields=['status', 'decision_by', 'decision_date', 'notes', 'updated_at'])


class AuditEvent(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
