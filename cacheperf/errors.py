class CachePerfError(Exception):
    """Base class for errors raised by the service."""


class InvalidArgument(CachePerfError, ValueError):
    """Raised for a malformed id, a blank category or an unknown mode."""


class BackingStoreUnavailable(CachePerfError):
    """Raised when the database or the cache cannot be reached."""


class MeasuredCallFailed(CachePerfError):
    """A measured call raised; carries what the harness observed before it failed."""

    def __init__(self, api_name, error, response_time_ms, cache_enabled):
        super().__init__(str(error))
        self.api_name = api_name
        self.error = error
        self.response_time_ms = response_time_ms
        self.cache_enabled = cache_enabled
