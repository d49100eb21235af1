"""
Management command to populate the database with test data.
"""
import random
from decimal import Decimal

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand

from core.models import Room, RoomRequest, User


ROOM_TYPES = {
    Room.TYPE_SINGLE: (1, Decimal('450.00'), ['desk', 'wardrobe', 'private bathroom']),
    Room.TYPE_DOUBLE: (2, Decimal('320.00'), ['desk', 'wardrobe']),
    Room.TYPE_TRIPLE: (3, Decimal('260.00'), ['desk', 'wardrobe']),
    Room.TYPE_DORMITORY: (6, Decimal('150.00'), ['lockers']),
}


class Command(BaseCommand):
    help = 'Populate database with test data'

    def add_arguments(self, parser):
        parser.add_argument('--floors', type=int, default=3)
        parser.add_argument('--students', type=int, default=12)

    def handle(self, *args, **options):
        self.stdout.write('Creating test data...')

        admin_users = self.create_admin_users()
        students = self.create_students(options['students'])
        rooms = self.create_rooms(options['floors'])
        self.create_requests(students, rooms)

        self.stdout.write(self.style.SUCCESS(
            f'Test data ready: {len(admin_users)} admins, {len(students)} students, {len(rooms)} rooms.'
        ))

    def create_admin_users(self):
        admin_users = []
        for username in ('admin1', 'admin2'):
            user, created = User.objects.get_or_create(
                username=username,
                defaults={
                    'email': f'{username}@hostel.example.com',
                    'password': make_password('123456'),
                    'role': User.ROLE_ADMIN,
                    'first_name': username.capitalize(),
                    'last_name': 'Warden',
                },
            )
            admin_users.append(user)
            self.stdout.write(f'admin: {user.username}')
        return admin_users

    def create_students(self, count):
        students = []
        for i in range(1, count + 1):
            username = f'student{i}'
            user, created = User.objects.get_or_create(
                username=username,
                defaults={
                    'email': f'{username}@example.com',
                    'password': make_password('123456'),
                    'role': User.ROLE_STUDENT,
                    'student_id': f'S{i:04d}',
                    'first_name': username.capitalize(),
                    'last_name': 'Student',
                },
            )
            students.append(user)
        self.stdout.write(f'students: {len(students)}')
        return students

    def create_rooms(self, floors):
        rooms = []
        types = list(ROOM_TYPES)
        for floor in range(1, floors + 1):
            for n, room_type in enumerate(types, start=1):
                capacity, rent, amenities = ROOM_TYPES[room_type]
                room, created = Room.objects.get_or_create(
                    room_number=f'{floor}{n:02d}',
                    defaults={
                        'floor': floor,
                        'room_type': room_type,
                        'capacity': capacity,
                        'monthly_rent': rent,
                        'amenities': amenities,
                    },
                )
                rooms.append(room)
                self.stdout.write(f'room: {room}')
        return rooms

    def create_requests(self, students, rooms):
        # pending only; allocations come from approving these through the API
        created_count = 0
        for student in students[: len(students) // 2]:
            room = random.choice(rooms)
            _, created = RoomRequest.objects.get_or_create(
                student=student,
                room=room,
                status=RoomRequest.STATUS_PENDING,
                defaults={'notes': 'Seeded request'},
            )
            created_count += int(created)
        self.stdout.write(f'pending requests created: {created_count}')
