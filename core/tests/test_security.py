import pytest
from django.urls import reverse
from rest_framework.test import APIClient
from core.models import AuditEvent, User

pytestmark = pytest.mark.django_db


def login(client, username, password, **extra):
    r = client.post(reverse('login_view'), {'username': username, 'password': password, **extra}, format='json')
    assert r.status_code in (200, 400, 401)
    return r


def test_no_role_bypass_in_login():
    client = APIClient()
    u = User.objects.create_user(username='u1', password='P@ssw0rd1', role='student')
    # sending a role must not escalate
    r = login(client, 'u1', 'P@ssw0rd1', role='admin')
    assert r.status_code == 200
    assert r.data['role'] == 'student'
    u.refresh_from_db()
    assert u.role == 'student'


def test_login_returns_jwt_and_legacy_token():
    client = APIClient()
    User.objects.create_user(username='u_jwt', password='P@ssw0rd1', role='student', student_id='S42')
    r = login(client, 'u_jwt', 'P@ssw0rd1')
    assert r.status_code == 200
    assert r.data['jwt_access'] and r.data['jwt_refresh'] and r.data['token']
    assert r.data['user']['studentId'] == 'S42'
    assert AuditEvent.objects.filter(action='login', detail__result='ok').exists()


def test_bad_password_is_rejected():
    client = APIClient()
    User.objects.create_user(username='u2', password='P@ssw0rd1', role='student')
    r = login(client, 'u2', 'wrong')
    assert r.status_code == 400
    assert r.data['ok'] is False
    assert AuditEvent.objects.filter(action='login', detail__result='fail').exists()


def test_legacy_token_and_jwt_both_authenticate():
    client = APIClient()
    User.objects.create_user(username='u3', password='P@ssw0rd1', role='student')
    r = login(client, 'u3', 'P@ssw0rd1')

    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    assert client.get(reverse('my_room_requests')).status_code == 200

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    assert client.get(reverse('my_room_requests')).status_code == 200


def test_refresh_and_logout_blacklists_token():
    client = APIClient()
    User.objects.create_user(username='u4', password='P@ssw0rd1', role='admin')
    r = login(client, 'u4', 'P@ssw0rd1')
    refresh = r.data['jwt_refresh']

    resp = client.post('/api/auth/refresh', {'refresh': refresh}, format='json')
    assert resp.status_code == 200
    assert resp.data['jwt_access']

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    resp = client.post('/api/auth/logout', {'refresh': refresh}, format='json')
    assert resp.status_code == 200
    assert resp.data['blacklisted'] == 1

    client.credentials()
    resp = client.post('/api/auth/refresh', {'refresh': refresh}, format='json')
    assert resp.status_code == 401


def test_submission_is_throttled(monkeypatch):
    from core.models import Room
    from core.views.room_requests import RoomRequestWriteThrottle

    monkeypatch.setattr(RoomRequestWriteThrottle, 'THROTTLE_RATES', {'room_request_write': '2/min'})
    student = User.objects.create_user(username='u5', password='P@ssw0rd1', role='student')
    rooms = [Room.objects.create(room_number=f'T{i}', capacity=2) for i in range(3)]
    client = APIClient()
    client.force_authenticate(user=student)

    codes = [
        client.post(reverse('room_requests'), {'roomId': room.id}, format='json').status_code
        for room in rooms
    ]
    assert codes == [201, 201, 429]
    # listing shares the URL but is not write-throttled
    assert client.get(reverse('my_room_requests')).status_code == 200
