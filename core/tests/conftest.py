from decimal import Decimal

import pytest
from django.core.cache import cache

from core.models import Room, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle history lives in the default cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='warden', password='P@ssw0rd1', role='admin', first_name='Wendy')


@pytest.fixture
def student(db):
    return User.objects.create_user(
        username='alice', password='P@ssw0rd1', role='student', student_id='S1001', email='alice@example.com',
    )


@pytest.fixture
def other_student(db):
    return User.objects.create_user(username='bob', password='P@ssw0rd1', role='student', student_id='S1002')


@pytest.fixture
def make_room(db):
    counter = {'n': 0}

    def _make(capacity=2, occupancy=0, is_active=True, **kwargs):
        counter['n'] += 1
        defaults = {
            'room_number': f'R{counter["n"]:03d}',
            'floor': 1,
            'room_type': Room.TYPE_DOUBLE,
            'monthly_rent': Decimal('300.00'),
        }
        defaults.update(kwargs)
        return Room.objects.create(capacity=capacity, current_occupancy=occupancy, is_active=is_active, **defaults)

    return _make
