import django
import pytest
from django.conf import settings


def pytest_configure(config):
    if settings.configured:
        return
    settings.configure(
        DEBUG=False,
        SECRET_KEY="scoring-tests",
        INSTALLED_APPS=["rest_framework", "scoring"],
        CACHES={
            "default": {
                "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
                "LOCATION": "scoring-tests",
            }
        },
        # enrichment stays off unless a test injects a client
        SCORING_ENRICHMENT={"API_KEY": ""},
        USE_TZ=True,
    )
    django.setup()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import caches

    caches["default"].clear()
    yield
    caches["default"].clear()


@pytest.fixture
def engine():
    from scoring.cache import AnalysisCache, DjangoCacheStore
    from scoring.enrichment import EnrichmentClient
    from scoring.engine import ScoringEngine

    return ScoringEngine(
        cache=AnalysisCache(DjangoCacheStore("default")),
        enrichment=EnrichmentClient(api_key=""),
    )
