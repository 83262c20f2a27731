"""
Caching utilities for dashboard aggregates.

Keys embed a global version number; bumping the version invalidates every
cached aggregate at once on any cache backend (LocMem or Redis).
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
DASHBOARD_SUMMARY_CACHE_TTL = 60  # 1 minute

DASHBOARD_VERSION_KEY = 'dashboard:version'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def get_dashboard_version():
    version = cache.get(DASHBOARD_VERSION_KEY)
    if version is None:
        version = 1
        cache.add(DASHBOARD_VERSION_KEY, version, None)
    return version


def bump_dashboard_version():
    try:
        cache.incr(DASHBOARD_VERSION_KEY)
    except ValueError:
        # Key missing or evicted
        cache.set(DASHBOARD_VERSION_KEY, 2, None)
    logger.debug("Dashboard cache version bumped")


def dashboard_cache_key(name, tenant_id):
    return make_cache_key(f"dashboard_{name}", str(tenant_id), version=get_dashboard_version())


def cached_dashboard_value(name, tenant_id, compute, ttl=DASHBOARD_SUMMARY_CACHE_TTL):
    """Return a cached aggregate for the tenant, computing it on a miss"""
    cache_key = dashboard_cache_key(name, tenant_id)
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        logger.debug(f"Cache HIT for dashboard_{name}: {cache_key}")
        return cached_data

    logger.debug(f"Cache MISS for dashboard_{name}: {cache_key}")
    result = compute()
    cache.set(cache_key, result, ttl)
    return result
