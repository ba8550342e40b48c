"""
Prometheus metrics for the pricing and geofence engine.

Counters are module-level so every service shares one registry. In
multi-process mode (Gunicorn workers importing the engine) the samples are
written to PROMETHEUS_MULTIPROC_DIR and aggregated by render_metrics().
"""
from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import os

# Check if running in multi-process mode (Gunicorn)
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

geofence_cache_requests_total = Counter(
    'geofence_cache_requests_total',
    'Parsed geofence lookups by cache result',
    ['result'],
    registry=registry if not MULTIPROCESS_MODE else None
)

geofence_invalid_total = Counter(
    'geofence_invalid_total',
    'Geofence descriptions rejected as unparseable',
    registry=registry if not MULTIPROCESS_MODE else None
)

promotions_applied_total = Counter(
    'promotions_applied_total',
    'Cart lines priced with a promotion, by promotion type',
    ['promotion_type'],
    registry=registry if not MULTIPROCESS_MODE else None
)

ambiguous_bundles_total = Counter(
    'ambiguous_bundles_total',
    'Promotion sets rejected because a line matched several bundle specials',
    registry=registry if not MULTIPROCESS_MODE else None
)

cart_pricing_duration_seconds = Histogram(
    'cart_pricing_duration_seconds',
    'Time spent pricing a cart',
    registry=registry if not MULTIPROCESS_MODE else None,
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0)
)


def render_metrics():
    """Return (payload, content_type) in the Prometheus exposition format."""
    return generate_latest(registry), CONTENT_TYPE_LATEST
