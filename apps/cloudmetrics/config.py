import os


def _positive_float(name: str, default: float) -> float:
    try:
        value = float(os.getenv(name, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


class Settings:
    """
    Centralized cloud metrics exporter configuration.

    Backed by environment variables so we can tune behavior per environment
    (dev / stage / prod) without changing code.

    Fields:
      - WATCH_DURATION_SECONDS: fixed requeue interval between full resyncs
      - SCRAPE_TIMEOUT_SECONDS: upper bound for a single provider scrape call
      - METRIC_WINDOW_SECONDS / METRIC_PERIOD_SECONDS: CloudWatch query window
      - CLUSTER_ID: overrides the cluster ID read from the infrastructure CR
      - CRD_GROUP / CRD_VERSION: API coordinates of the redis/postgres CRs
    """

    # ------------------------------------------------------------------
    # Reconcile cadence
    # ------------------------------------------------------------------
    # Every pass re-lists every redis and postgres CR, so this is a
    # "sync the world" period rather than a per-object resync.
    WATCH_DURATION_SECONDS: float = _positive_float(
        "CLOUDMETRICS_WATCH_DURATION_SECONDS", 600
    )

    SCRAPE_TIMEOUT_SECONDS: float = _positive_float(
        "CLOUDMETRICS_SCRAPE_TIMEOUT_SECONDS", 60
    )

    # ------------------------------------------------------------------
    # Provider query window
    # ------------------------------------------------------------------
    METRIC_WINDOW_SECONDS: int = int(
        _positive_float("CLOUDMETRICS_METRIC_WINDOW_SECONDS", 300)
    )
    METRIC_PERIOD_SECONDS: int = int(
        _positive_float("CLOUDMETRICS_METRIC_PERIOD_SECONDS", 60)
    )
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")

    # ------------------------------------------------------------------
    # Kubernetes
    # ------------------------------------------------------------------
    CLUSTER_ID: str = os.getenv("CLOUDMETRICS_CLUSTER_ID", "")
    CRD_GROUP: str = os.getenv("CLOUDMETRICS_CRD_GROUP", "integreatly.org")
    CRD_VERSION: str = os.getenv("CLOUDMETRICS_CRD_VERSION", "v1alpha1")

    # ------------------------------------------------------------------
    # Logging / tracing
    # ------------------------------------------------------------------
    LOG_LEVEL: str = os.getenv("CLOUDMETRICS_LOG_LEVEL", "INFO")
    OTel_Endpoint: str = os.getenv(
        "OTEL_EXPORTER_OTLP_ENDPOINT",
        "http://smartops-otelcol:4317",
    )

    def __init__(self) -> None:
        # A period shorter than the window would return several datapoints;
        # a window shorter than the period returns none at all.
        if self.METRIC_WINDOW_SECONDS < self.METRIC_PERIOD_SECONDS:
            self.METRIC_WINDOW_SECONDS = self.METRIC_PERIOD_SECONDS


settings = Settings()
