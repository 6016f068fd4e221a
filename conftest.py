import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def _no_ratelimit(settings):
    settings.RATELIMIT_ENABLE = False


@pytest.fixture(autouse=True)
def _fresh_cache():
    # DRF throttles count requests in the cache
    cache.clear()
    yield
    cache.clear()
