"""Assembly of the metrics API group and its installation into a server."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from metricsapi.nodes import NODE_METRICS_RESOURCE, NodeLister, NodeMetricsStorage
from metricsapi.pods import POD_METRICS_RESOURCE, PodLister, PodMetricsStorage
from metricsapi.selectors import Requirement

GROUP_NAME = "metrics.k8s.io"
VERSION = "v1beta1"


@dataclass
class APIGroupInfo:
    """An API group with its storages per version and resource."""

    group_name: str = GROUP_NAME
    versioned_resources_storage_map: dict[str, dict[str, Any]] = field(default_factory=dict)


class APIServer:
    """Keeps the API groups installed into it."""

    def __init__(self) -> None:
        self.groups: dict[str, APIGroupInfo] = {}

    def install_api_group(self, info: APIGroupInfo) -> None:
        """Install an API group; its name must not be empty."""
        if not info.group_name:
            raise ValueError(f"cannot register handler with an empty group for {info!r}")
        self.groups[info.group_name] = info


def build(pod: Any, node: Any) -> APIGroupInfo:
    """Build the metrics API group from the pod and node storages."""
    return APIGroupInfo(
        group_name=GROUP_NAME,
        versioned_resources_storage_map={VERSION: {"nodes": node, "pods": pod}},
    )


def install(
    metrics: Any,
    pod_metadata_lister: PodLister,
    node_lister: NodeLister,
    server: APIServer,
    node_selector: Sequence[Requirement] | None,
) -> APIGroupInfo:
    """Build the metrics API group and install it into the server."""
    node = NodeMetricsStorage(
        metrics, node_lister, node_selector, group_resource=NODE_METRICS_RESOURCE
    )
    pod = PodMetricsStorage(metrics, pod_metadata_lister, group_resource=POD_METRICS_RESOURCE)
    info = build(pod, node)
    server.install_api_group(info)
    return info