import os
from functools import lru_cache

DETECTION_MODES = ("explicit", "latency")


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(self):
        self.port: int = int(os.getenv("PORT", "5000"))

        self.redis_host: str = os.getenv("REDIS_HOST", "localhost")
        self.redis_port: int = int(os.getenv("REDIS_PORT", "6379"))
        self.redis_db: int = int(os.getenv("REDIS_DB", "0"))

        self.database_path: str = os.getenv("DATABASE_PATH", "performance.db")
        self.seed_sample_data: bool = _env_bool("SEED_SAMPLE_DATA", True)

        # Simulated backing-store latency, drawn from [min, max)
        self.db_delay_min_ms: int = int(os.getenv("DB_DELAY_MIN_MS", "100"))
        self.db_delay_max_ms: int = int(os.getenv("DB_DELAY_MAX_MS", "500"))

        self.cache_hit_detection: str = os.getenv("CACHE_HIT_DETECTION", "explicit").strip().lower()
        self.cache_hit_threshold_ms: int = int(os.getenv("CACHE_HIT_THRESHOLD_MS", "100"))

        self.validate()

    def validate(self):
        if self.db_delay_min_ms < 0 or self.db_delay_max_ms < self.db_delay_min_ms:
            raise ValueError(
                f"Invalid delay range: [{self.db_delay_min_ms}, {self.db_delay_max_ms})"
            )
        if self.cache_hit_detection not in DETECTION_MODES:
            raise ValueError(
                f"CACHE_HIT_DETECTION must be one of {DETECTION_MODES}, got {self.cache_hit_detection!r}"
            )
        if self.cache_hit_threshold_ms <= 0:
            raise ValueError("CACHE_HIT_THRESHOLD_MS must be positive")


@lru_cache()
def get_settings():
    return Settings()
