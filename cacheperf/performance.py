import logging
import time
from datetime import datetime

from .data_service import AccessResult
from .errors import BackingStoreUnavailable, MeasuredCallFailed
from .models import Measurement

logger = logging.getLogger(__name__)


class PerformanceService:
    """Records measurements and summarizes them per API and cache mode."""

    def __init__(self, measurements):
        self.measurements = measurements

    def record_performance_metrics(self, api_name, cache_enabled, response_time_ms, cache_hit):
        measurement = self.measurements.insert(Measurement(
            api_name=api_name,
            cache_enabled=cache_enabled,
            response_time_ms=response_time_ms,
            cache_hit=cache_hit,
            request_count=1,
        ))
        logger.info(
            f"Performance metrics recorded: API={api_name}, Cache={cache_enabled}, "
            f"ResponseTime={response_time_ms}ms, Hit={cache_hit}"
        )
        return measurement

    def get_performance_statistics(self, api_name):
        avg_with_cache = self.measurements.average_response_time(api_name, True)
        cache_hits = self.measurements.count_cache_hits(api_name, True)
        total_with_cache = self.measurements.count_total_requests(api_name, True)

        avg_without_cache = self.measurements.average_response_time(api_name, False)
        total_without_cache = self.measurements.count_total_requests(api_name, False)

        avg_with_cache = float(avg_with_cache) if avg_with_cache is not None else 0.0
        avg_without_cache = float(avg_without_cache) if avg_without_cache is not None else 0.0
        cache_hit_rate = cache_hits / total_with_cache * 100 if total_with_cache > 0 else 0.0

        speedup = None
        if avg_with_cache > 0 and avg_without_cache > 0:
            speedup = avg_without_cache / avg_with_cache

        return {
            "apiName": api_name,
            "withCache": {
                "avgResponseTime": avg_with_cache,
                "totalRequests": total_with_cache,
                "cacheHits": cache_hits,
                "cacheHitRate": cache_hit_rate,
            },
            "withoutCache": {
                "avgResponseTime": avg_without_cache,
                "totalRequests": total_without_cache,
            },
            "speedup": speedup,
        }

    def get_recent_metrics(self, api_name, limit=10):
        return self.measurements.find_recent(api_name, True, limit)


class MeasurementHarness:
    """
    Times one data-access call and records it.

    With "explicit" detection the hit flag comes from the AccessResult the
    call returns; "latency" detection (or a call that returns no flag)
    counts a cached call as a hit when it finished under the threshold.
    Failed calls are not recorded.
    """

    def __init__(self, recorder, detection="explicit", threshold_ms=100, clock=time.monotonic):
        self.recorder = recorder
        self.detection = detection
        self.threshold_ms = threshold_ms
        self.clock = clock

    def _is_cache_hit(self, cache_enabled, result, response_time_ms):
        if not cache_enabled:
            return False
        if self.detection == "explicit" and isinstance(result, AccessResult):
            return bool(result.cache_hit)
        return response_time_ms < self.threshold_ms

    def measure(self, api_name, cache_enabled, func, *args, **kwargs):
        start_time = self.clock()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            response_time_ms = int((self.clock() - start_time) * 1000)
            logger.error(
                f"Measured call {api_name} failed after {response_time_ms}ms "
                f"(cache={cache_enabled}): {e}"
            )
            raise MeasuredCallFailed(api_name, e, response_time_ms, cache_enabled) from e
        response_time_ms = int((self.clock() - start_time) * 1000)

        cache_hit = self._is_cache_hit(cache_enabled, result, response_time_ms)
        try:
            self.recorder.record_performance_metrics(api_name, cache_enabled, response_time_ms, cache_hit)
        except BackingStoreUnavailable as e:
            logger.error(f"Could not record {api_name} measurement ({response_time_ms}ms): {e}")
            raise MeasuredCallFailed(api_name, e, response_time_ms, cache_enabled) from e

        response = {
            "data": result.value if isinstance(result, AccessResult) else result,
            "responseTimeMs": response_time_ms,
            "cacheEnabled": cache_enabled,
            "timestamp": datetime.now().isoformat(),
        }
        if cache_enabled:
            response["cacheHit"] = cache_hit
        return response
