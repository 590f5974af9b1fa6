from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

LOGIN_ATTEMPTS = Counter(
    "socialauth_login_attempts_total",
    "Login attempts by provider and outcome",
    ["provider", "outcome"],
)

# operation: exchange/profile/extra
PROVIDER_REQUEST_DURATION = Histogram(
    "socialauth_provider_request_duration_seconds",
    "Identity provider call latency",
    ["provider", "operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


def generate_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
