"""
Models exchanged with the catalog and metrics collaborators.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def _name_segment(name: str, index: int) -> str:
    # Resource names look like 'projects/$project/services/$service/...'
    elements = name.split("/")
    if len(elements) > index:
        return elements[index]
    return name


class Service(BaseModel):
    """A service defined in Cloud Monitoring Service Monitoring."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    display_name: Optional[str] = Field(default=None, alias="displayName")

    @property
    def human_name(self) -> str:
        """Display name, or the service id parsed from the resource name."""
        if self.display_name:
            return self.display_name
        return _name_segment(self.name, 3)


class RatioFilters(BaseModel):
    """Filters of a good/total ratio SLI. Two of the three are required."""

    good: Optional[str] = None
    bad: Optional[str] = None
    total: Optional[str] = None

    @property
    def configured_count(self) -> int:
        return sum(1 for f in (self.good, self.bad, self.total) if f)


class IndicatorShape(str, Enum):
    COMBINED = "combined"
    RATIO = "ratio"
    UNSUPPORTED = "unsupported"


class Indicator(BaseModel):
    """
    How compliance of an SLO is measured.

    combined_filter: legacy form; a single query returning one series
        labeled event_type=good and one labeled event_type=bad.
    ratio: good/bad/total filters, the missing one derived from the others.
    """

    combined_filter: Optional[str] = None
    ratio: Optional[RatioFilters] = None

    @property
    def shape(self) -> IndicatorShape:
        if self.ratio is not None:
            return IndicatorShape.RATIO
        if self.combined_filter:
            return IndicatorShape.COMBINED
        return IndicatorShape.UNSUPPORTED


class SLO(BaseModel):
    """A service-level objective attached to a Service."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    goal: float = Field(default=0.0, ge=0.0, le=1.0)
    indicator: Indicator = Field(default_factory=Indicator)

    @property
    def human_name(self) -> str:
        """Display name, or the SLO id parsed from the resource name."""
        if self.display_name:
            return self.display_name
        return _name_segment(self.name, 5)


class ValueType(str, Enum):
    VALUE_TYPE_UNSPECIFIED = "VALUE_TYPE_UNSPECIFIED"
    BOOL = "BOOL"
    INT64 = "INT64"
    DOUBLE = "DOUBLE"
    STRING = "STRING"
    DISTRIBUTION = "DISTRIBUTION"
    MONEY = "MONEY"


class Aligner(str, Enum):
    ALIGN_DELTA = "ALIGN_DELTA"
    ALIGN_SUM = "ALIGN_SUM"


class Reducer(str, Enum):
    REDUCE_SUM = "REDUCE_SUM"


class TimeInterval(BaseModel):
    """Half-open [start_time, end_time) interval in absolute time."""

    start_time: datetime
    end_time: datetime

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


class Point(BaseModel):
    timestamp: Optional[datetime] = None
    value: Union[int, float]


class TimeSeries(BaseModel):
    labels: Dict[str, str] = Field(default_factory=dict)
    value_type: ValueType = ValueType.VALUE_TYPE_UNSPECIFIED
    points: List[Point] = Field(default_factory=list)
