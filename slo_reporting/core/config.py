from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: Optional[str] = None

    # Log Level
    LOG_LEVEL: str = "INFO"  # e.g., DEBUG, INFO, WARNING, ERROR

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "SLO-Reporting"
    VERSION: str = "1.0.0"

    # Sync defaults (used when a trigger does not carry its own values)
    GCP_PROJECT: Optional[str] = None
    SLO_DATASET: str = "slo_reporting"
    SLO_TABLE: str = "data"
    SLO_TIMEZONE: str = "Europe/London"
    BACKFILL_DAYS: int = (
        40  # Monitoring retention is 42 days; stay inside it
    )
    BATCH_WRITE_SIZE: int = 100  # Rows per BigQuery insertAll call
    LEASE_DURATION_SECONDS: int = (
        600  # Must exceed the maximum run time of the invoking environment
    )
    LEASE_LABEL_NAME: str = "slo_reporting_lease_expiration"

    # Google APIs
    MONITORING_API_BASE_URL: str = "https://monitoring.googleapis.com"
    BIGQUERY_API_BASE_URL: str = "https://bigquery.googleapis.com/bigquery/v2"
    CATALOG_PAGE_SIZE: int = 1000
    BIGQUERY_QUERY_TIMEOUT_MS: int = 60000
    BIGQUERY_MAX_RESULTS: int = 10000
    BIGQUERY_MAX_POLLS: int = 10  # getQueryResults calls before an unfinished job is abandoned

    # Google credentials
    GCP_ACCESS_TOKEN: Optional[str] = (
        None  # Static bearer token; metadata server is used when unset
    )
    GCP_METADATA_TOKEN_URL: str = (
        "http://metadata.google.internal/computeMetadata/v1/"
        "instance/service-accounts/default/token"
    )
    TOKEN_REFRESH_THRESHOLD_SECONDS: int = 60  # Refresh token N seconds before expiry

    # HTTP Settings
    HTTP_REQUEST_TIMEOUT_SECONDS: float = 30.0

    # External API Retry Configuration (Monitoring, BigQuery, metadata server)
    EXTERNAL_API_RETRY_ATTEMPTS: int = (
        4  # Total attempts (3 retries + 1 initial = 4 total)
    )
    EXTERNAL_API_RETRY_MIN_WAIT: float = (
        0.5  # Minimum wait time between retries (seconds)
    )
    EXTERNAL_API_RETRY_MAX_WAIT: float = (
        2.0  # Maximum wait time between retries (seconds)
    )
    EXTERNAL_API_RETRY_MULTIPLIER: float = 1.0  # Exponential backoff multiplier

    # Scheduler Authentication
    SCHEDULER_SECRET_TOKEN: Optional[str] = None  # Secret token for scheduler endpoints

    # AWS SQS (sync trigger queue)
    AWS_REGION: Optional[str] = None
    SQS_QUEUE_URL: Optional[str] = None
    AWS_ENDPOINT_URL: Optional[str] = None
    SQS_WAIT_TIME_SECONDS: int = 20  # Long-poll wait time

    # Sentry Configuration
    SENTRY_DSN: Optional[str] = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    # Prometheus Pushgateway (batch job metrics)
    PUSHGATEWAY_URL: Optional[str] = None
    HOSTNAME: Optional[str] = None

    # Logging Configuration
    LOGGING_FRAME_DEPTH: int = (
        6  # Frame depth for finding logging call origin in stack trace
    )

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    # --------- Properties ---------
    @property
    def is_local(self) -> bool:
        """
        Check if running in local development environment.

        Supported values:
        - "local" or "local_dev" → True (local development)
        - "dev", "staging", "prod", or anything else → False (deployed)
        """
        if not self.ENVIRONMENT:
            return False
        return self.ENVIRONMENT.lower() in ["local", "local_dev"]


settings = Settings()
