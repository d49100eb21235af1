"""Core application for the hostel backend.

This package contains models, serializers, views and route registrations
implementing the room request and allocation API used by the front-end.
"""
