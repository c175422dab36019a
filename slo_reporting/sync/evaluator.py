"""
SLI evaluation: turns an SLO indicator and a day window into (good, total).

All queries use a single alignment period spanning the whole window, so a
well-formed response holds exactly one point per series with the sum of the
counter over the day.
"""

import logging
from typing import List, Tuple, Union

from slo_reporting.clients.base import MetricsClient
from slo_reporting.clients.schemas import (
    Aligner,
    Indicator,
    IndicatorShape,
    RatioFilters,
    Reducer,
    TimeInterval,
    TimeSeries,
    ValueType,
)
from slo_reporting.core.metrics import sync_metric_queries_total
from slo_reporting.sync.exceptions import (
    IncompleteIndicatorError,
    UnexpectedShapeError,
    UnsupportedIndicatorError,
)
from slo_reporting.sync.window import DayWindow

logger = logging.getLogger(__name__)

# Label separating the two series of a combined-filter indicator
EVENT_TYPE_LABEL = "event_type"

Number = Union[int, float]


class SLIEvaluator:
    """Computes daily good/total event counts for SLO indicators."""

    def __init__(self, metrics: MetricsClient):
        self.metrics = metrics
        self.queries = 0

    async def evaluate(self, indicator: Indicator, window: DayWindow) -> Tuple[int, int]:
        """
        Count good and total events of an indicator over a day.

        Args:
            indicator: SLO indicator
            window: Day to evaluate

        Returns:
            (good, total), truncated towards zero

        Raises:
            UnexpectedShapeError: A response did not have the expected shape
            IncompleteIndicatorError: Ratio indicator has fewer than two filters
            UnsupportedIndicatorError: Indicator is of neither supported form
        """
        interval = TimeInterval(start_time=window.start, end_time=window.end)

        shape = indicator.shape
        if shape == IndicatorShape.COMBINED:
            good, total = await self._evaluate_combined(indicator.combined_filter, interval)
        elif shape == IndicatorShape.RATIO:
            good, total = await self._evaluate_ratio(indicator.ratio, interval)
        else:
            raise UnsupportedIndicatorError(
                "Indicator has neither a combined filter nor good/bad/total filters"
            )

        return int(good), int(total)

    async def get_counter(self, filter_expression: str, interval: TimeInterval) -> Number:
        """
        Sum of a counter metric over the interval.

        Returns 0 when no series matches the filter.
        """
        series = await self._query(filter_expression, interval, Reducer.REDUCE_SUM)

        if not series:
            logger.info(f"Got 0 time series while querying '{filter_expression}'")
            return 0
        if len(series) != 1:
            raise UnexpectedShapeError(
                f"Expected 1 time series while querying '{filter_expression}'; got {len(series)}"
            )

        return self._single_value(
            series[0], filter_expression, (ValueType.DOUBLE, ValueType.INT64)
        )

    async def _evaluate_combined(
        self, filter_expression: str, interval: TimeInterval
    ) -> Tuple[Number, Number]:
        series = await self._query(filter_expression, interval, None)

        if len(series) != 2:
            raise UnexpectedShapeError(
                f"Expected 2 time series while querying '{filter_expression}'; got {len(series)}"
            )

        values = {}
        for ts in series:
            value = self._single_value(ts, filter_expression, (ValueType.DOUBLE,))
            event_type = ts.labels.get(EVENT_TYPE_LABEL)
            if event_type not in ("good", "bad"):
                raise UnexpectedShapeError(
                    f"Unexpected {EVENT_TYPE_LABEL} '{event_type}' while querying '{filter_expression}'"
                )
            if event_type in values:
                raise UnexpectedShapeError(
                    f"Got 2 '{event_type}' time series while querying '{filter_expression}'"
                )
            values[event_type] = value

        good = values["good"]
        return good, good + values["bad"]

    async def _evaluate_ratio(
        self, ratio: RatioFilters, interval: TimeInterval
    ) -> Tuple[Number, Number]:
        if ratio.good and ratio.total:
            good = await self.get_counter(ratio.good, interval)
            total = await self.get_counter(ratio.total, interval)
            return good, total
        if ratio.good and ratio.bad:
            good = await self.get_counter(ratio.good, interval)
            bad = await self.get_counter(ratio.bad, interval)
            return good, good + bad
        if ratio.bad and ratio.total:
            bad = await self.get_counter(ratio.bad, interval)
            total = await self.get_counter(ratio.total, interval)
            return total - bad, total
        raise IncompleteIndicatorError(
            "Expected 2 out of 3 filter expressions (good, bad, total) to be defined; "
            f"got {ratio.configured_count}"
        )

    async def _query(
        self, filter_expression: str, interval: TimeInterval, reducer
    ) -> List[TimeSeries]:
        self.queries += 1
        sync_metric_queries_total.inc()
        return await self.metrics.query(
            filter_expression,
            interval,
            alignment_period=interval.duration,
            aligner=Aligner.ALIGN_DELTA,
            reducer=reducer,
        )

    @staticmethod
    def _single_value(series: TimeSeries, filter_expression: str, allowed) -> Number:
        if len(series.points) != 1:
            raise UnexpectedShapeError(
                f"Expected 1 point while querying '{filter_expression}'; got {len(series.points)}"
            )
        if series.value_type not in allowed:
            raise UnexpectedShapeError(
                f"Unexpected value type {series.value_type.value} while querying '{filter_expression}'"
            )
        return series.points[0].value
