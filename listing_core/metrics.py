"""
Prometheus metrics for the listing data-access core.

Tracks gateway operations, storage operations and image saga outcomes.
"""

from prometheus_client import Counter, Histogram

# Gateway metrics
gateway_operations_total = Counter(
    "listing_gateway_operations_total",
    "Total remote data gateway operations",
    ["operation", "status"],
)

gateway_operation_duration_seconds = Histogram(
    "listing_gateway_operation_duration_seconds",
    "Remote data gateway operation duration in seconds",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Storage metrics
storage_operations_total = Counter(
    "listing_storage_operations_total",
    "Total object storage operations",
    ["operation", "status"],
)

# Image saga metrics
image_promotions_total = Counter(
    "listing_image_promotions_total",
    "Image promotions from the temporary namespace",
    ["status"],
)

orphaned_images_total = Counter(
    "listing_orphaned_images_total",
    "Image assets left behind by a failed best-effort step",
    ["namespace"],
)

favorite_toggles_total = Counter(
    "listing_favorite_toggles_total",
    "Favorite toggle operations",
    ["action"],
)


def track_gateway_operation(operation: str, status: str, duration: float):
    """Track a remote data gateway call."""
    gateway_operations_total.labels(operation=operation, status=status).inc()
    gateway_operation_duration_seconds.labels(operation=operation).observe(duration)


def track_storage_operation(operation: str, status: str):
    """Track an object storage call."""
    storage_operations_total.labels(operation=operation, status=status).inc()
