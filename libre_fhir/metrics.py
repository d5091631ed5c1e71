from prometheus_client import Counter, Histogram

# Counter for LibreLinkUp API calls, labeled by endpoint and status
# endpoint: login, connections, graph
# status: success, error, empty
libre_api_call_total = Counter(
    'libre_api_call_total',
    'Total LibreLinkUp API calls',
    ['endpoint', 'status']
)

# Histogram for LibreLinkUp API call latency (seconds)
libre_api_call_latency_seconds = Histogram(
    'libre_api_call_latency_seconds',
    'Latency of LibreLinkUp API calls in seconds',
    ['endpoint']
)

# Identity provider token requests
identity_token_requests_total = Counter(
    'identity_token_requests_total',
    'Total client-credentials token requests',
    ['status']
)

# FHIR uploads (one transaction bundle each)
fhir_upload_total = Counter(
    'fhir_upload_total',
    'Total FHIR transaction bundle uploads',
    ['status']
)

observations_uploaded_total = Counter(
    'observations_uploaded_total',
    'Total glucose observations uploaded to the FHIR server'
)

bundles_saved_total = Counter(
    'bundles_saved_total',
    'Total bundles written to local files'
)

# Sync tick completion rates and durations
sync_tick_total = Counter(
    'sync_tick_total',
    'Total number of sync ticks run',
    ['status']  # status: completed, partial, failed
)
sync_tick_skipped_total = Counter(
    'sync_tick_skipped_total',
    'Ticks skipped because the previous tick was still running'
)
sync_tick_duration_seconds = Histogram(
    'sync_tick_duration_seconds',
    'Duration of sync ticks in seconds',
    ['mode']
)

__all__ = [
    'libre_api_call_total',
    'libre_api_call_latency_seconds',
    'identity_token_requests_total',
    'fhir_upload_total',
    'observations_uploaded_total',
    'bundles_saved_total',
    'sync_tick_total',
    'sync_tick_skipped_total',
    'sync_tick_duration_seconds',
]
