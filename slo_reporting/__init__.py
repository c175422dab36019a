"""Daily SLO compliance sync from Cloud Monitoring into BigQuery."""
