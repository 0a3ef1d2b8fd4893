"""
Prometheus Metrics Registry

Provides Prometheus-compatible metrics for:
- Real-time feed packet routing outcomes
- Motion debounce outcomes
- LED optimistic write results
- Inventory reconciliation passes and exposed device counts
"""
import time
import logging
from prometheus_client import (
    Counter, Gauge, Info,
    CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
)

logger = logging.getLogger(__name__)

# Create a custom registry to avoid conflicts with default registry
REGISTRY = CollectorRegistry()

app_info = Info(
    'app',
    'Application information',
    registry=REGISTRY
)

uptime_seconds = Gauge(
    'app_uptime_seconds',
    'Seconds since metrics were initialized',
    registry=REGISTRY
)

# ============================================================================
# Feed Routing Metrics
# ============================================================================

feed_packets_total = Counter(
    'protect_feed_packets_total',
    'Feed packets seen by the event router',
    ['outcome'],  # dispatched, dropped_shape, dropped_filter, dropped_unknown
    registry=REGISTRY
)

handler_errors_total = Counter(
    'protect_handler_errors_total',
    'Device handler invocations that raised',
    ['handler'],
    registry=REGISTRY
)

# ============================================================================
# Device State Metrics
# ============================================================================

motion_events_total = Counter(
    'protect_motion_events_total',
    'Motion events by debounce outcome',
    ['outcome'],  # triggered, suppressed, duplicate
    registry=REGISTRY
)

led_writes_total = Counter(
    'protect_led_writes_total',
    'Local LED toggle results',
    ['result'],  # success, failure, stale
    registry=REGISTRY
)

# ============================================================================
# Inventory Metrics
# ============================================================================

exposed_devices = Gauge(
    'protect_exposed_devices',
    'Exposed devices per controller',
    ['controller'],
    registry=REGISTRY
)

reconcile_total = Counter(
    'protect_reconcile_total',
    'Reconciliation passes per controller',
    ['outcome'],  # success, auth_error, api_error
    registry=REGISTRY
)

_start_time = time.time()


def init_metrics(version: str = "1.0.0"):
    """
    Initialize metrics with application info.

    Args:
        version: Application version string
    """
    global _start_time
    _start_time = time.time()

    app_info.info({
        'version': version,
        'name': 'protect-motion-bridge'
    })

    logger.info("Prometheus metrics initialized", extra={"version": version})


def record_feed_packet(outcome: str):
    feed_packets_total.labels(outcome=outcome).inc()


def record_handler_error(handler: str):
    handler_errors_total.labels(handler=handler).inc()


def record_motion_event(outcome: str):
    motion_events_total.labels(outcome=outcome).inc()


def record_led_write(result: str):
    led_writes_total.labels(result=result).inc()


def record_reconcile(outcome: str):
    reconcile_total.labels(outcome=outcome).inc()


def update_exposed_devices(controller: str, count: int):
    exposed_devices.labels(controller=controller).set(count)


def get_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format metrics
    """
    uptime_seconds.set(time.time() - _start_time)
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
