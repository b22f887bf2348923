"""
Prometheus metrics for FBR submissions
"""

import logging

from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest

logger = logging.getLogger(__name__)

# Own registry; prometheus_client's global one is left untouched
REGISTRY = CollectorRegistry()

SUBMISSIONS_COUNTER = Counter(
    'fbr_submissions_total',
    'Total number of FBR submission attempts by outcome',
    ['outcome', 'environment'],
    registry=REGISTRY
)

GATEWAY_LATENCY_HISTOGRAM = Histogram(
    'fbr_gateway_request_duration_seconds',
    'Duration of calls to the FBR gateway in seconds',
    ['operation', 'environment', 'result'],
    buckets=[0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY
)


class MetricsCollector:
    """Records submission and gateway metrics. Metric failures never break a submission."""

    def record_submission(self, outcome: str, environment: str):
        try:
            SUBMISSIONS_COUNTER.labels(outcome=outcome, environment=environment).inc()
        except Exception as e:
            logger.error(f"Error recording submission metric: {e}")

    def record_gateway_call(self, operation: str, environment: str, result: str, duration: float):
        try:
            GATEWAY_LATENCY_HISTOGRAM.labels(
                operation=operation,
                environment=environment,
                result=result
            ).observe(duration)
        except Exception as e:
            logger.error(f"Error recording gateway latency: {e}")

    def get_metrics_output(self) -> bytes:
        return generate_latest(REGISTRY)


metrics_collector = MetricsCollector()
