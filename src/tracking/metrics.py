"""
Prometheus metrics for monitoring API performance and behavior.
"""
from prometheus_client import Counter, Histogram

# Request metrics
location_requests_total = Counter(
    'location_requests_total',
    'Total number of location reports received',
    ['status']
)

query_requests_total = Counter(
    'query_requests_total',
    'Total number of device and trackee query requests',
    ['endpoint', 'status']
)

# Latency metrics
request_duration_seconds = Histogram(
    'request_duration_seconds',
    'Request latency in seconds',
    ['endpoint']
)

# Business metrics
location_records_persisted_total = Counter(
    'location_records_persisted_total',
    'Number of per-device location records written to history'
)

derived_notifications_total = Counter(
    'derived_notifications_total',
    'Location update notifications sent to the derived computation',
    ['status']
)

# Redis metrics
redis_operations_total = Counter(
    'redis_operations_total',
    'Total Redis operations',
    ['operation', 'status']
)
