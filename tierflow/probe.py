# tierflow/probe.py
"""
Cache reachability probe.
Connects the way the backend does: REDIS_HOST / REDIS_PORT from the environment.
"""
import time
import logging

import redis

from .config import settings
from .errors import TierflowError

logger = logging.getLogger("tierflow")


def _port_number(value) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        port = 0
    if not 0 < port < 65536:
        raise TierflowError(f"REDIS_PORT must be a port number, got {value!r}")
    return port


def probe_cache(host=None, port=None, attempts=5, max_wait=30, sleep=time.sleep) -> bool:
    """PING the cache with exponential backoff. Returns True once it answers."""
    host = host or settings.REDIS_HOST
    port = _port_number(port or settings.REDIS_PORT)
    attempts = max(attempts, 1)

    wait_time = 1
    for attempt in range(1, attempts + 1):
        try:
            r = redis.Redis(
                host=host,
                port=port,
                socket_timeout=5,
                socket_connect_timeout=5
            )
            r.ping()
            logger.info(f"✅ Redis Connected: {host}:{port}")
            return True
        except (redis.ConnectionError, redis.TimeoutError) as e:
            if attempt == attempts:
                logger.error(f"❌ Redis unreachable at {host}:{port} after {attempts} attempt(s): {e}")
                break
            logger.warning(f"⚠️ Redis Connection Failed ({host}:{port}). Retrying in {wait_time}s...")
            sleep(wait_time)
            wait_time = min(wait_time * 2, max_wait)
    return False
