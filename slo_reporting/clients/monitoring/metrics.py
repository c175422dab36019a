"""
Cloud Monitoring time series client.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from slo_reporting.clients.base import MetricsClient
from slo_reporting.clients.http import GoogleAPIClient
from slo_reporting.clients.schemas import (
    Aligner,
    Point,
    Reducer,
    TimeInterval,
    TimeSeries,
    ValueType,
)
from slo_reporting.core.config import settings
from slo_reporting.sync.exceptions import MetricsQueryError

logger = logging.getLogger(__name__)


def format_timestamp(value: datetime) -> str:
    """RFC 3339 in UTC with a Z suffix, as the Monitoring API expects."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _point_value(value: Dict[str, Any]):
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "int64Value" in value:
        # int64 is encoded as a JSON string
        return int(value["int64Value"])
    if "boolValue" in value:
        return int(bool(value["boolValue"]))
    return 0


def parse_time_series(data: Dict[str, Any]) -> TimeSeries:
    """Build a TimeSeries from a timeSeries resource."""
    raw_type = data.get("valueType", ValueType.VALUE_TYPE_UNSPECIFIED.value)
    try:
        value_type = ValueType(raw_type)
    except ValueError:
        value_type = ValueType.VALUE_TYPE_UNSPECIFIED

    points = [
        Point(
            timestamp=point.get("interval", {}).get("endTime"),
            value=_point_value(point.get("value", {})),
        )
        for point in data.get("points", [])
    ]
    return TimeSeries(
        labels=data.get("metric", {}).get("labels", {}),
        value_type=value_type,
        points=points,
    )


class TimeSeriesClient(GoogleAPIClient, MetricsClient):
    service_name = "CloudMonitoring"
    error_class = MetricsQueryError

    def __init__(self, project: str, base_url: str = None, **kwargs):
        super().__init__(project, **kwargs)
        self.base_url = (base_url or settings.MONITORING_API_BASE_URL).rstrip("/")

    async def query(
        self,
        filter_expression: str,
        interval: TimeInterval,
        alignment_period: timedelta,
        aligner: Aligner,
        reducer: Optional[Reducer] = None,
    ) -> List[TimeSeries]:
        url = f"{self.base_url}/v3/projects/{self.project}/timeSeries"
        params = {
            "filter": filter_expression,
            "interval.startTime": format_timestamp(interval.start_time),
            "interval.endTime": format_timestamp(interval.end_time),
            "aggregation.alignmentPeriod": f"{int(alignment_period.total_seconds())}s",
            "aggregation.perSeriesAligner": aligner.value,
        }
        if reducer is not None:
            params["aggregation.crossSeriesReducer"] = reducer.value

        series: List[TimeSeries] = []
        page_token = None
        while True:
            if page_token:
                params["pageToken"] = page_token
            data = await self._request("GET", url, params=params)
            series.extend(parse_time_series(item) for item in data.get("timeSeries", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Got {len(series)} time series for '{filter_expression}'")
        return series
