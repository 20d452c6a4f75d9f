import json
import logging
from collections import namedtuple

import redis

from .errors import BackingStoreUnavailable

logger = logging.getLogger(__name__)

SAMPLE_DATA_REGION = "sampleData"
REGIONS_KEY = "cacheperf:regions"

CacheLookup = namedtuple("CacheLookup", ["hit", "value"])
MISS = CacheLookup(False, None)


class RegionCache:
    """
    Named cache regions on top of a Redis client.

    Entries live under "<region>::<key>" and hold JSON. A cached JSON null is
    a hit with value None, which is how absent lookups are remembered.
    """

    def __init__(self, client, regions=(SAMPLE_DATA_REGION,)):
        self.client = client
        self.regions = set(regions)

    @staticmethod
    def _make_key(region, key):
        return f"{region}::{key}"

    def get(self, region, key):
        cache_key = self._make_key(region, key)
        try:
            cached_data = self.client.get(cache_key)
        except redis.exceptions.RedisError as e:
            logger.error(f"Redis GET error for key {cache_key}: {e}")
            raise BackingStoreUnavailable(f"Cache unavailable: {e}") from e

        if cached_data is None:
            return MISS
        try:
            return CacheLookup(True, json.loads(cached_data))
        except json.JSONDecodeError as e:
            logger.error(f"Error decoding JSON from cache key {cache_key}: {e}")
            self.evict(region, key)
            return MISS

    def put(self, region, key, value):
        cache_key = self._make_key(region, key)
        try:
            self.client.set(cache_key, json.dumps(value))
            self.client.sadd(REGIONS_KEY, region)
        except redis.exceptions.RedisError as e:
            logger.error(f"Redis SET error for key {cache_key}: {e}")
            raise BackingStoreUnavailable(f"Cache unavailable: {e}") from e
        self.regions.add(region)
        logger.debug(f"Saved {cache_key} to cache.")

    def evict(self, region, key):
        cache_key = self._make_key(region, key)
        try:
            deleted_count = self.client.delete(cache_key)
        except redis.exceptions.RedisError as e:
            logger.error(f"Redis DELETE error for key {cache_key}: {e}")
            raise BackingStoreUnavailable(f"Cache unavailable: {e}") from e
        logger.debug(f"Invalidated cache key {cache_key}. Deleted: {deleted_count > 0}")
        return deleted_count > 0

    def list_regions(self):
        try:
            known = {
                name.decode() if isinstance(name, bytes) else name
                for name in self.client.smembers(REGIONS_KEY)
            }
        except redis.exceptions.RedisError as e:
            logger.error(f"Redis SMEMBERS error for key {REGIONS_KEY}: {e}")
            raise BackingStoreUnavailable(f"Cache unavailable: {e}") from e
        return self.regions | known

    def clear_region(self, name):
        """Delete every entry of a region. Returns the number of keys removed."""
        try:
            keys = list(self.client.scan_iter(match=self._make_key(name, "*")))
            deleted = self.client.delete(*keys) if keys else 0
        except redis.exceptions.RedisError as e:
            logger.error(f"Redis error while clearing region {name}: {e}")
            raise BackingStoreUnavailable(f"Cache unavailable: {e}") from e
        return deleted

    def clear_all(self):
        cleared = {}
        for name in sorted(self.list_regions()):
            cleared[name] = self.clear_region(name)
            logger.info(f"Cache '{name}' cleared ({cleared[name]} entries)")
        return cleared
