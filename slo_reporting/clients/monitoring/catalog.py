"""
Service Monitoring catalog client: lists services and their SLOs.
"""

import logging
from typing import Any, Dict, List

from slo_reporting.clients.base import CatalogClient
from slo_reporting.clients.http import GoogleAPIClient
from slo_reporting.clients.schemas import SLO, Indicator, RatioFilters, Service
from slo_reporting.core.config import settings
from slo_reporting.sync.exceptions import CatalogQueryError

logger = logging.getLogger(__name__)


def parse_slo(data: Dict[str, Any]) -> SLO:
    """Build an SLO from a serviceLevelObjectives resource."""
    request_based = data.get("serviceLevelIndicator", {}).get("requestBased", {})

    ratio = None
    good_total = request_based.get("goodTotalRatio")
    if good_total is not None:
        ratio = RatioFilters(
            good=good_total.get("goodServiceFilter"),
            bad=good_total.get("badServiceFilter"),
            total=good_total.get("totalServiceFilter"),
        )

    return SLO(
        name=data["name"],
        display_name=data.get("displayName"),
        goal=data.get("goal", 0.0),
        indicator=Indicator(
            combined_filter=request_based.get("combinedFilter"),
            ratio=ratio,
        ),
    )


class ServiceMonitoringClient(GoogleAPIClient, CatalogClient):
    service_name = "ServiceMonitoring"
    error_class = CatalogQueryError

    def __init__(self, project: str, base_url: str = None, **kwargs):
        super().__init__(project, **kwargs)
        self.base_url = (base_url or settings.MONITORING_API_BASE_URL).rstrip("/")

    async def _list(self, url: str, key: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page_token = None
        while True:
            params = {"pageSize": settings.CATALOG_PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            data = await self._request("GET", url, params=params)
            items.extend(data.get(key, []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return items

    async def list_services(self) -> List[Service]:
        items = await self._list(
            f"{self.base_url}/v3/projects/{self.project}/services", "services"
        )
        services = [Service.model_validate(item) for item in items]
        logger.info(f"Found {len(services)} services in project {self.project}")
        return services

    async def list_slos(self, service: Service) -> List[SLO]:
        items = await self._list(
            f"{self.base_url}/v3/{service.name}/serviceLevelObjectives",
            "serviceLevelObjectives",
        )
        slos = [parse_slo(item) for item in items]
        logger.info(f"Found {len(slos)} SLOs for service {service.human_name}")
        return slos
