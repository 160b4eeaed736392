"""Read-only storage serving node metrics."""

from __future__ import annotations

import abc
import logging
from collections.abc import Sequence

from metricsapi.monitoring import METRIC_FRESHNESS, Histogram
from metricsapi.selectors import LabelSelector, Requirement, everything, filter_nodes
from metricsapi.table import Table, add_node_metrics_to_table
from metricsapi.types import (
    Clock,
    ListOptions,
    Node,
    NodeMetrics,
    NodeMetricsGetter,
    NodeMetricsList,
    NotFoundError,
    RealClock,
)

logger = logging.getLogger(__name__)

NODE_METRICS_RESOURCE = "nodemetrics.metrics.k8s.io"


class NodeLister(abc.ABC):
    """Supplies the nodes known to the cluster."""

    @abc.abstractmethod
    def list(self, selector: LabelSelector) -> list[Node]:
        """Return the nodes whose labels match the selector."""

    @abc.abstractmethod
    def get(self, name: str) -> Node | None:
        """Return the named node, or None when it is unknown."""


class NodeMetricsStorage:
    """Serves node metrics for get, list and table requests."""

    def __init__(
        self,
        metrics: NodeMetricsGetter,
        node_lister: NodeLister,
        node_selector: Sequence[Requirement] | None = None,
        group_resource: str = NODE_METRICS_RESOURCE,
        clock: Clock | None = None,
        freshness: Histogram = METRIC_FRESHNESS,
    ) -> None:
        self.metrics = metrics
        self.node_lister = node_lister
        self.node_selector = list(node_selector) if node_selector is not None else None
        self.group_resource = group_resource
        self.clock = clock if clock is not None else RealClock()
        self.freshness = freshness

    def new(self) -> NodeMetrics:
        return NodeMetrics()

    def destroy(self) -> None:
        """Release resources; there are none to release."""

    def kind(self) -> str:
        return "NodeMetrics"

    def new_list(self) -> NodeMetricsList:
        return NodeMetricsList()

    def list(self, options: ListOptions | None = None) -> NodeMetricsList:
        """Return metrics for the nodes matching the options, ordered by name."""
        nodes = self._nodes(options)
        try:
            items = self._get_metrics(*nodes)
        except Exception as err:
            logger.error("Failed reading nodes metrics: %s", err)
            raise RuntimeError(f"failed reading nodes metrics: {err}") from err
        return NodeMetricsList(items=items)

    def _nodes(self, options: ListOptions | None) -> list[Node]:
        selector = everything()
        if options is not None and options.label_selector is not None:
            selector = options.label_selector
        if self.node_selector is not None:
            selector = selector.add(*self.node_selector)
        try:
            nodes = self.node_lister.list(selector)
        except Exception as err:
            logger.error("Failed listing nodes (labelSelector=%s): %s", selector, err)
            raise RuntimeError(f"failed listing nodes: {err}") from err
        if options is not None and options.field_selector is not None:
            nodes = filter_nodes(nodes, options.field_selector)
        return nodes

    def get(self, name: str) -> NodeMetrics:
        """Return metrics for one node, raising NotFoundError when there are none."""
        try:
            node = self.node_lister.get(name)
        except NotFoundError:
            raise
        except Exception as err:
            logger.error("Failed getting node %s: %s", name, err)
            raise RuntimeError(f"failed getting node: {err}") from err
        if node is None:
            raise NotFoundError(self.group_resource, name)
        try:
            items = self._get_metrics(node)
        except Exception as err:
            logger.error("Failed reading node metrics for %s: %s", name, err)
            raise RuntimeError(f"failed reading node metrics: {err}") from err
        if not items:
            raise NotFoundError(self.group_resource, name)
        return items[0]

    def convert_to_table(self, obj: object) -> Table:
        """Render node metrics, or a list of them, as a table."""
        table = Table()
        if isinstance(obj, NodeMetrics):
            table.resource_version = obj.metadata.resource_version
            table.self_link = obj.metadata.self_link
            add_node_metrics_to_table(table, obj)
        elif isinstance(obj, NodeMetricsList):
            table.resource_version = obj.resource_version
            table.self_link = obj.self_link
            table.continue_token = obj.continue_token
            add_node_metrics_to_table(table, *obj.items)
        return table

    def _get_metrics(self, *nodes: Node) -> list[NodeMetrics]:
        items = self.metrics.get_node_metrics(*nodes)
        for item in items:
            self.freshness.observe(self.clock.since(item.timestamp).total_seconds())
        return sorted(items, key=lambda item: item.name)

    def namespace_scoped(self) -> bool:
        return False

    def get_singular_name(self) -> str:
        return ""