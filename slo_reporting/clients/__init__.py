"""
Collaborators of the sync engine: abstract interfaces and Google REST clients.
"""

from slo_reporting.clients.bigquery.client import BigQueryClient
from slo_reporting.clients.monitoring.catalog import ServiceMonitoringClient
from slo_reporting.clients.monitoring.metrics import TimeSeriesClient

__all__ = ["BigQueryClient", "ServiceMonitoringClient", "TimeSeriesClient"]
