"""
Caching utilities for expensive queries.

Keys are namespaced by prefix with a version counter, so a whole namespace
can be invalidated on any cache backend. With Redis the stale keys are also
removed with SCAN.
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
DASHBOARD_CACHE_TTL = 300  # 5 minutes
DASHBOARD_TODAY_CACHE_TTL = 60  # 1 minute for ranges ending today
BLACKLIST_CACHE_TTL = 600  # 10 minutes
DRIVERS_CACHE_TTL = 600  # 10 minutes

DASHBOARD_PREFIX = 'dashboard'
BLACKLIST_PREFIX = 'blacklist_phones'
DRIVERS_PREFIX = 'drivers_active'


def _version_key(prefix):
    return f"{prefix}:__version__"


def get_namespace_version(prefix):
    version = cache.get(_version_key(prefix))
    if version is None:
        cache.add(_version_key(prefix), 1, None)
        version = cache.get(_version_key(prefix)) or 1
    return version


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:v{get_namespace_version(prefix)}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="drivers_active")
        def get_active_drivers():
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def invalidate_cache_pattern(pattern):
    """Invalidate every key in the `pattern` namespace"""
    try:
        cache.incr(_version_key(pattern))
    except ValueError:
        cache.set(_version_key(pattern), 2, None)

    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")
    except (ImportError, NotImplementedError):
        logger.debug(f"Cache backend has no pattern delete; bumped version for {pattern}")
        return
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")
        return

    try:
        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}:v*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break
        if keys:
            redis_conn.delete(*keys)
        logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def invalidate_dashboard_cache():
    invalidate_cache_pattern(DASHBOARD_PREFIX)


def invalidate_blacklist_cache():
    invalidate_cache_pattern(BLACKLIST_PREFIX)


def invalidate_drivers_cache():
    invalidate_cache_pattern(DRIVERS_PREFIX)
