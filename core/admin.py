"""
Django admin registrations for the core models.

Superusers can inspect rooms, requests and allocations via ``/admin/``.
Occupancy and request status are read-only here; they only change
through the request workflow or ``manage.py reconcile_occupancy``.
"""

from django.contrib import admin

from .models import (
    User,
    Room,
    Allocation,
    RoomRequest,
    AuditEvent,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'student_id', 'room_allocation', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name', 'student_id')


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ('room_number', 'floor', 'room_type', 'capacity', 'current_occupancy', 'is_active')
    list_filter = ('room_type', 'floor', 'is_active')
    search_fields = ('room_number',)
    readonly_fields = ('current_occupancy',)


@admin.register(Allocation)
class AllocationAdmin(admin.ModelAdmin):
    list_display = ('id', 'student', 'room', 'status', 'start_date', 'end_date', 'allocated_by')
    list_filter = ('status',)
    search_fields = ('student__username', 'student__student_id', 'room__room_number')


@admin.register(RoomRequest)
class RoomRequestAdmin(admin.ModelAdmin):
    list_display = ('id', 'student', 'room', 'status', 'decision_by', 'decision_date', 'created_at')
    list_filter = ('status',)
    search_fields = ('id', 'student__username', 'room__room_number')
    readonly_fields = ('status', 'decision_by', 'decision_date')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'action', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'user__username')
