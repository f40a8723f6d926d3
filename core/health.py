"""
Liveness and readiness probes for the dashboard process.

/health/        the process answers
/health/ready/  the Tumble backend and the cache answer too
"""

import time
import logging
from django.http import JsonResponse
from django.core.cache import cache
from django.views.decorators.http import require_GET
from django.views.decorators.csrf import csrf_exempt
from django.utils import timezone

from .backend import BackendClient

logger = logging.getLogger('tumble.monitoring')

SERVICE_NAME = 'tumble-dashboard'
CACHE_PROBE_KEY = 'tumble:health:probe'


def _backend_reachable():
    return BackendClient.anonymous().ping(), None


def _cache_roundtrip():
    cache.set(CACHE_PROBE_KEY, 'ok', 10)
    if cache.get(CACHE_PROBE_KEY) != 'ok':
        return False, 'Value written to the cache could not be read back'
    return True, None


PROBES = (
    ('backend', _backend_reachable),
    ('cache', _cache_roundtrip),
)


def _run_probe(name, probe):
    started = time.monotonic()
    try:
        ok, error = probe()
    except Exception as e:
        ok, error = False, str(e)

    result = {
        'status': 'healthy' if ok else 'unhealthy',
        'response_time_ms': round((time.monotonic() - started) * 1000, 2),
    }
    if error:
        result['error'] = error
    if not ok:
        logger.error(f"Readiness probe '{name}' failed: {error or 'unreachable'}")
    return result


@csrf_exempt
@require_GET
def health_check(request):
    """The process is up; nothing else is checked."""
    return JsonResponse({
        'status': 'ok',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
    })


@csrf_exempt
@require_GET
def readiness_check(request):
    """503 unless every probe in PROBES is healthy."""
    checks = {name: _run_probe(name, probe) for name, probe in PROBES}
    ready = all(check['status'] == 'healthy' for check in checks.values())

    return JsonResponse({
        'status': 'healthy' if ready else 'unhealthy',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }, status=200 if ready else 503)
