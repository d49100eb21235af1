"""
Compare each room's occupancy counter and resident list with its active
allocations.

Without ``--fix`` the command only reports drift.  With ``--fix`` the
counter, the resident list and every student's ``room_allocation`` are
rewritten from the active allocations.
"""
import logging

from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Count, Q

from core.models import Allocation, Room, User

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Check (and optionally repair) room occupancy against active allocations.'

    def add_arguments(self, parser):
        parser.add_argument('--fix', action='store_true', help='Rewrite occupancy and residents from allocations')

    def handle(self, *args, **opts):
        fix = opts['fix']
        drift = 0
        rooms = Room.objects.annotate(
            active_count=Count('allocations', filter=Q(allocations__status=Allocation.STATUS_ACTIVE)),
        ).order_by('id')

        for room in rooms:
            active_students = set(
                Allocation.objects.filter(room=room, status=Allocation.STATUS_ACTIVE)
                .values_list('student_id', flat=True)
            )
            residents = set(room.residents.values_list('id', flat=True))
            if room.current_occupancy == room.active_count and residents == active_students:
                continue

            drift += 1
            self.stdout.write(self.style.WARNING(
                f'room {room.room_number}: occupancy={room.current_occupancy} '
                f'active={room.active_count} residents={sorted(residents)} expected={sorted(active_students)}'
            ))
            if not fix:
                continue
            if room.active_count > room.capacity:
                self.stderr.write(self.style.ERROR(
                    f'room {room.room_number}: {room.active_count} active allocations exceed capacity '
                    f'{room.capacity}; skipped'
                ))
                continue
            with transaction.atomic():
                Room.objects.filter(pk=room.pk).update(current_occupancy=room.active_count)
                room.residents.set(active_students)
                User.objects.filter(pk__in=active_students).update(room_allocation=room)
                User.objects.filter(room_allocation=room).exclude(pk__in=active_students).update(room_allocation=None)
            logger.info('reconciled room %s occupancy to %s', room.pk, room.active_count)

        if drift == 0:
            self.stdout.write(self.style.SUCCESS('All rooms consistent.'))
        elif fix:
            self.stdout.write(self.style.SUCCESS(f'Reconciled {drift} room(s).'))
        else:
            self.stdout.write(self.style.WARNING(f'{drift} room(s) out of sync; rerun with --fix to repair.'))
