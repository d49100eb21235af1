"""
Role based access control for the hostel API.

Every workflow operation names a capability; :func:`ensure_capability`
is called once when the operation starts and raises ``PermissionDenied``
if the caller's role does not grant it.
"""
from rest_framework.exceptions import PermissionDenied

ROLE_STUDENT = 'student'
ROLE_ADMIN = 'admin'

SUBMIT_REQUEST = 'room_request.submit'
LIST_OWN_REQUESTS = 'room_request.list_own'
LIST_REQUESTS = 'room_request.list_all'
APPROVE_REQUEST = 'room_request.approve'
REJECT_REQUEST = 'room_request.reject'
VIEW_OWN_ALLOCATION = 'allocation.view_own'

CAPABILITIES: dict[str, frozenset[str]] = {
    SUBMIT_REQUEST: frozenset({ROLE_STUDENT}),
    LIST_OWN_REQUESTS: frozenset({ROLE_STUDENT}),
    VIEW_OWN_ALLOCATION: frozenset({ROLE_STUDENT}),
    LIST_REQUESTS: frozenset({ROLE_ADMIN}),
    APPROVE_REQUEST: frozenset({ROLE_ADMIN}),
    REJECT_REQUEST: frozenset({ROLE_ADMIN}),
}

DENIED_MESSAGES = {
    SUBMIT_REQUEST: 'Only students can request rooms',
}


def has_capability(user, capability: str) -> bool:
    if not (user and getattr(user, 'is_authenticated', False)):
        return False
    return getattr(user, 'role', None) in CAPABILITIES.get(capability, frozenset())


def ensure_capability(user, capability: str) -> None:
    if not has_capability(user, capability):
        raise PermissionDenied(DENIED_MESSAGES.get(capability, 'Access denied'))
