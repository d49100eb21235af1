import logging

from django.db import DatabaseError, connections
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def healthz(request):
    """Liveness probe: answers 200 when the default database responds."""
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except DatabaseError:
        logger.exception('health check failed')
        return JsonResponse({'ok': False, 'db': False}, status=500)
    return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1)})
