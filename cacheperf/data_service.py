import logging
import random
import time
from collections import namedtuple

from .cache import SAMPLE_DATA_REGION
from .errors import InvalidArgument
from .models import SampleItem

logger = logging.getLogger(__name__)

AccessResult = namedtuple("AccessResult", ["value", "cache_hit"])


def validate_category(category):
    if not isinstance(category, str) or not category.strip():
        raise InvalidArgument("Category must be a non-empty string")
    return category


def parse_item_id(raw):
    """Parse an id coming from a query string or URL; must be a non-negative integer."""
    if isinstance(raw, bool):
        raise InvalidArgument(f"Invalid id: {raw!r}")
    try:
        item_id = int(raw)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid id: {raw!r}") from None
    if isinstance(raw, float) and raw != item_id:
        raise InvalidArgument(f"Invalid id: {raw!r}")
    if item_id < 0:
        raise InvalidArgument(f"Invalid id: {raw!r}")
    return item_id


def _encode(value):
    if value is None:
        return None
    if isinstance(value, list):
        return [item.to_dict() for item in value]
    return value.to_dict()


def _decode(value):
    if value is None:
        return None
    if isinstance(value, list):
        return [SampleItem.from_dict(item) for item in value]
    return SampleItem.from_dict(value)


class DataService:
    """
    Sample data lookups, with and without the cache.

    Every backing-store read sleeps for a random delay so the benefit of a
    cache hit is visible. A cached lookup that misses runs the same read and
    stores the result, empty lists and absent items included.
    """

    def __init__(self, items, cache, delay_range_ms=(100, 500), sleep=time.sleep, rng=None):
        self.items = items
        self.cache = cache
        self.delay_min_ms, self.delay_max_ms = delay_range_ms
        self.sleep = sleep
        self.rng = rng or random.Random()

    def simulate_database_delay(self):
        if self.delay_max_ms <= 0:
            return 0.0
        if self.delay_max_ms == self.delay_min_ms:
            delay_ms = float(self.delay_min_ms)
        else:
            delay_ms = self.rng.uniform(self.delay_min_ms, self.delay_max_ms)
            # uniform() may return the upper bound; keep the range half-open
            if delay_ms >= self.delay_max_ms:
                delay_ms = float(self.delay_min_ms)
        self.sleep(delay_ms / 1000.0)
        return delay_ms

    def _load(self, query, *args):
        self.simulate_database_delay()
        return query(*args)

    def _cached(self, key, query, *args):
        lookup = self.cache.get(SAMPLE_DATA_REGION, key)
        if lookup.hit:
            logger.debug(f"Cache hit for {SAMPLE_DATA_REGION}::{key}")
            return AccessResult(_decode(lookup.value), True)

        logger.info(f"Cache miss for {SAMPLE_DATA_REGION}::{key}. Reading from DB.")
        value = self._load(query, *args)
        self.cache.put(SAMPLE_DATA_REGION, key, _encode(value))
        return AccessResult(value, False)

    def get_all(self, cached):
        if cached:
            return self._cached("all", self.items.find_all)
        return AccessResult(self._load(self.items.find_all), False)

    def get_by_category(self, category, cached):
        category = validate_category(category)
        if cached:
            return self._cached(f"category:{category}", self.items.find_by_category, category)
        return AccessResult(self._load(self.items.find_by_category, category), False)

    def get_by_id(self, item_id, cached):
        item_id = parse_item_id(item_id)
        if cached:
            return self._cached(f"id:{item_id}", self.items.find_by_id, item_id)
        return AccessResult(self._load(self.items.find_by_id, item_id), False)
