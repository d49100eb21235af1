"""
URL mappings for the hostel backend API.

Paths mirror those used by the front-end client.  Trailing slashes are
omitted on purpose.
"""
from django.urls import path, include

from .views import health
from .views import room_requests
from .views import rooms

# login_view lives in auth_views to avoid circular imports with
# core.authentication.
from .auth_views import login_view, jwt_refresh_view, jwt_logout_view


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view),
    path('api/auth/logout', jwt_logout_view),
    # Room requests
    path('api/room-requests', room_requests.room_requests, name='room_requests'),
    path('api/room-requests/mine', room_requests.my_room_requests, name='my_room_requests'),
    path('api/room-requests/<int:pk>/approve', room_requests.approve_room_request, name='approve_room_request'),
    path('api/room-requests/<int:pk>/reject', room_requests.reject_room_request, name='reject_room_request'),
    # Rooms and allocations
    path('api/rooms', rooms.rooms, name='rooms'),
    path('api/allocations/my-allocation', rooms.my_allocation, name='my_allocation'),
]
