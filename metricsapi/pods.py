"""Read-only storage serving pod metrics."""

from __future__ import annotations

import abc
import logging

from metricsapi.monitoring import METRIC_FRESHNESS, Histogram
from metricsapi.selectors import LabelSelector, everything, filter_partial_object_metadata
from metricsapi.table import Table, add_pod_metrics_to_table
from metricsapi.types import (
    Clock,
    ListOptions,
    NotFoundError,
    PartialObjectMetadata,
    PodMetrics,
    PodMetricsGetter,
    PodMetricsList,
    RealClock,
)

logger = logging.getLogger(__name__)

POD_METRICS_RESOURCE = "podmetrics.metrics.k8s.io"
PODS_RESOURCE = "pods"


class PodLister(abc.ABC):
    """Supplies pod metadata, optionally narrowed to one namespace."""

    @abc.abstractmethod
    def by_namespace(self, namespace: str) -> PodLister:
        """Return a lister restricted to the namespace; empty means all namespaces."""

    @abc.abstractmethod
    def list(self, selector: LabelSelector) -> list[PartialObjectMetadata]:
        """Return the pods whose labels match the selector."""

    @abc.abstractmethod
    def get(self, name: str) -> PartialObjectMetadata | None:
        """Return the named pod, or None when it is unknown."""


class PodMetricsStorage:
    """Serves pod metrics for get, list and table requests."""

    def __init__(
        self,
        metrics: PodMetricsGetter,
        pod_lister: PodLister,
        group_resource: str = POD_METRICS_RESOURCE,
        clock: Clock | None = None,
        freshness: Histogram = METRIC_FRESHNESS,
    ) -> None:
        self.metrics = metrics
        self.pod_lister = pod_lister
        self.group_resource = group_resource
        self.clock = clock if clock is not None else RealClock()
        self.freshness = freshness

    def new(self) -> PodMetrics:
        return PodMetrics()

    def destroy(self) -> None:
        """Release resources; there are none to release."""

    def kind(self) -> str:
        return "PodMetrics"

    def new_list(self) -> PodMetricsList:
        return PodMetricsList()

    def list(self, namespace: str = "", options: ListOptions | None = None) -> PodMetricsList:
        """Return metrics for the pods matching the options, ordered by namespace and name."""
        pods = self._pods(namespace, options)
        try:
            items = self._get_metrics(*pods)
        except Exception as err:
            logger.error("Failed reading pods metrics (namespace=%s): %s", namespace, err)
            raise RuntimeError(f"failed reading pods metrics: {err}") from err
        return PodMetricsList(items=items)

    def _pods(self, namespace: str, options: ListOptions | None) -> list[PartialObjectMetadata]:
        selector = everything()
        if options is not None and options.label_selector is not None:
            selector = options.label_selector
        try:
            pods = self.pod_lister.by_namespace(namespace).list(selector)
        except Exception as err:
            logger.error(
                "Failed listing pods (labelSelector=%s, namespace=%s): %s", selector, namespace, err
            )
            raise RuntimeError(f"failed listing pods: {err}") from err
        if options is not None and options.field_selector is not None:
            pods = filter_partial_object_metadata(pods, options.field_selector)
        return pods

    def get(self, namespace: str, name: str) -> PodMetrics:
        """Return metrics for one pod, raising NotFoundError when there are none."""
        key = f"{namespace}/{name}"
        try:
            pod = self.pod_lister.by_namespace(namespace).get(name)
        except NotFoundError:
            raise
        except Exception as err:
            logger.error("Failed getting pod %s: %s", key, err)
            raise RuntimeError(f"failed getting pod: {err}") from err
        if pod is None:
            raise NotFoundError(PODS_RESOURCE, key)
        try:
            items = self._get_metrics(pod)
        except Exception as err:
            logger.error("Failed reading pod metrics for %s: %s", key, err)
            raise RuntimeError(f"failed pod metrics: {err}") from err
        if not items:
            raise NotFoundError(self.group_resource, key)
        return items[0]

    def convert_to_table(self, obj: object) -> Table:
        """Render pod metrics, or a list of them, as a table."""
        table = Table()
        if isinstance(obj, PodMetrics):
            table.resource_version = obj.metadata.resource_version
            table.self_link = obj.metadata.self_link
            add_pod_metrics_to_table(table, obj)
        elif isinstance(obj, PodMetricsList):
            table.resource_version = obj.resource_version
            table.self_link = obj.self_link
            table.continue_token = obj.continue_token
            add_pod_metrics_to_table(table, *obj.items)
        return table

    def _get_metrics(self, *pods: PartialObjectMetadata) -> list[PodMetrics]:
        items = self.metrics.get_pod_metrics(*pods)
        for item in items:
            self.freshness.observe(self.clock.since(item.timestamp).total_seconds())
        return sorted(items, key=lambda item: (item.namespace, item.name))

    def namespace_scoped(self) -> bool:
        return True

    def get_singular_name(self) -> str:
        return ""