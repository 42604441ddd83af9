from functools import lru_cache

from rpay.services.atlantic.client import AtlanticClient


@lru_cache
def get_atlantic_client() -> AtlanticClient:
    """Process-wide upstream client (shares the httpx pool and circuit breaker)."""
    return AtlanticClient.from_settings()
