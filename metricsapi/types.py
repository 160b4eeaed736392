"""Core resource-metrics objects and the interfaces that supply them."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from metricsapi.quantity import Quantity

if TYPE_CHECKING:
    from metricsapi.selectors import FieldSelector, LabelSelector

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class ObjectMeta:
    """Identifying metadata shared by every API object."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    resource_version: str = ""
    self_link: str = ""


class _HasMetadata:
    """Shortcuts to the most used metadata fields."""

    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def labels(self) -> dict[str, str]:
        return self.metadata.labels


@dataclass
class Node(_HasMetadata):
    """A cluster node as seen by the lister."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)


@dataclass
class PartialObjectMetadata(_HasMetadata):
    """Metadata-only view of an object, used for pods."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)


@dataclass
class ContainerMetrics:
    """Resource usage of one container."""

    name: str = ""
    usage: dict[str, Quantity] = field(default_factory=dict)


@dataclass
class NodeMetrics(_HasMetadata):
    """Resource usage of one node; the window is in nanoseconds."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    timestamp: datetime = _EPOCH
    window: int = 0
    usage: dict[str, Quantity] = field(default_factory=dict)


@dataclass
class PodMetrics(_HasMetadata):
    """Resource usage of the containers of one pod; the window is in nanoseconds."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    timestamp: datetime = _EPOCH
    window: int = 0
    containers: list[ContainerMetrics] = field(default_factory=list)


@dataclass
class NodeMetricsList:
    """A list of node metrics with list metadata."""

    items: list[NodeMetrics] = field(default_factory=list)
    resource_version: str = ""
    self_link: str = ""
    continue_token: str = ""


@dataclass
class PodMetricsList:
    """A list of pod metrics with list metadata."""

    items: list[PodMetrics] = field(default_factory=list)
    resource_version: str = ""
    self_link: str = ""
    continue_token: str = ""


@dataclass
class ListOptions:
    """Selectors restricting a list request."""

    label_selector: LabelSelector | None = None
    field_selector: FieldSelector | None = None


@dataclass
class TimeInfo:
    """When a metric was collected and the window (ns) a rate was computed over."""

    timestamp: datetime = _EPOCH
    window: int = 0


class NotFoundError(LookupError):
    """The requested object does not exist."""

    def __init__(self, resource: str, name: str) -> None:
        self.resource = resource
        self.name = name
        super().__init__(f'{resource} "{name}" not found')


class NodeMetricsGetter(abc.ABC):
    """Knows how to fetch metrics for nodes."""

    @abc.abstractmethod
    def get_node_metrics(self, *args: Node) -> list[NodeMetrics]:
        """Return the latest metrics for the given nodes."""


class PodMetricsGetter(abc.ABC):
    """Knows how to fetch metrics for the containers of pods."""

    @abc.abstractmethod
    def get_pod_metrics(self, *args: PartialObjectMetadata) -> list[PodMetrics]:
        """Return the latest metrics for the given pods."""


class Clock(abc.ABC):
    """Source of the current time."""

    @abc.abstractmethod
    def now(self) -> datetime:
        """Return the current time."""

    def since(self, moment: datetime) -> timedelta:
        """Return the time elapsed since the given moment."""
        return self.now() - moment


class RealClock(Clock):
    """Clock backed by the system time, in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def since(self, moment: datetime) -> timedelta:
        return self.now() - moment


class FakeClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, now: datetime | None = None) -> None:
        self._now = now if now is not None else _EPOCH

    def now(self) -> datetime:
        return self._now

    def since(self, moment: datetime) -> timedelta:
        return self._now - moment

    def advance(self, delta: timedelta) -> None:
        """Move the clock forward by delta."""
        self._now += delta