import pytest

from metricsapi.api import APIGroupInfo, APIServer, build, install
from metricsapi.nodes import NodeLister, NodeMetricsStorage
from metricsapi.pods import PodLister, PodMetricsStorage
from metricsapi.selectors import parse_requirements
from metricsapi.types import (
    Node,
    NodeMetrics,
    NodeMetricsGetter,
    NotFoundError,
    ObjectMeta,
    PartialObjectMetadata,
    PodMetrics,
    PodMetricsGetter,
)


class FakeMetrics(NodeMetricsGetter, PodMetricsGetter):
    def get_node_metrics(self, *args):
        return [NodeMetrics(metadata=ObjectMeta(name=n.name)) for n in args]

    def get_pod_metrics(self, *args):
        return [
            PodMetrics(metadata=ObjectMeta(name=p.name, namespace=p.namespace)) for p in args
        ]


class FakeNodeLister(NodeLister):
    def __init__(self, nodes):
        self.nodes = nodes

    def list(self, selector):
        return [n for n in self.nodes if selector.matches(n.labels)]

    def get(self, name):
        return next((n for n in self.nodes if n.name == name), None)


class FakePodLister(PodLister):
    def __init__(self, pods):
        self.pods = pods
        self.namespace = ""

    def by_namespace(self, namespace):
        scoped = FakePodLister(self.pods)
        scoped.namespace = namespace
        return scoped

    def list(self, selector):
        return [
            p for p in self.pods
            if (not self.namespace or p.namespace == self.namespace) and selector.matches(p.labels)
        ]

    def get(self, name):
        return next((p for p in self.list_all() if p.name == name), None)

    def list_all(self):
        return [p for p in self.pods if not self.namespace or p.namespace == self.namespace]


def make_nodes():
    return [
        Node(ObjectMeta(name="b", labels={"role": "worker"})),
        Node(ObjectMeta(name="a", labels={"skipKey": "skipValue"})),
    ]


def make_pods():
    return [
        PartialObjectMetadata(ObjectMeta(name="web", namespace="prod")),
        PartialObjectMetadata(ObjectMeta(name="db", namespace="dev")),
    ]


def test_build_maps_resources_to_storages():
    pod, node = object(), object()
    info = build(pod, node)
    assert info.group_name == "metrics.k8s.io"
    storages = info.versioned_resources_storage_map["v1beta1"]
    assert storages["nodes"] is node
    assert storages["pods"] is pod
    assert set(storages) == {"nodes", "pods"}


def test_install_registers_group():
    server = APIServer()
    info = install(
        FakeMetrics(), FakePodLister(make_pods()), FakeNodeLister(make_nodes()), server, None
    )
    assert server.groups["metrics.k8s.io"] is info
    storages = info.versioned_resources_storage_map["v1beta1"]
    assert isinstance(storages["nodes"], NodeMetricsStorage)
    assert isinstance(storages["pods"], PodMetricsStorage)
    assert storages["nodes"].group_resource == "nodemetrics.metrics.k8s.io"
    assert storages["pods"].group_resource == "podmetrics.metrics.k8s.io"


def test_installed_node_storage_applies_node_selector():
    server = APIServer()
    selector = parse_requirements("skipKey!=skipValue")
    install(FakeMetrics(), FakePodLister(make_pods()), FakeNodeLister(make_nodes()), server, selector)
    nodes = server.groups["metrics.k8s.io"].versioned_resources_storage_map["v1beta1"]["nodes"]
    assert [item.name for item in nodes.list().items] == ["b"]


def test_installed_node_storage_without_selector_lists_sorted():
    server = APIServer()
    info = install(
        FakeMetrics(), FakePodLister(make_pods()), FakeNodeLister(make_nodes()), server, None
    )
    nodes = info.versioned_resources_storage_map["v1beta1"]["nodes"]
    assert [item.name for item in nodes.list().items] == ["a", "b"]


def test_installed_pod_storage_serves_namespaces():
    server = APIServer()
    info = install(
        FakeMetrics(), FakePodLister(make_pods()), FakeNodeLister(make_nodes()), server, None
    )
    pods = info.versioned_resources_storage_map["v1beta1"]["pods"]
    assert [(p.namespace, p.name) for p in pods.list("").items] == [
        ("dev", "db"),
        ("prod", "web"),
    ]
    assert [p.name for p in pods.list("prod").items] == ["web"]
    with pytest.raises(NotFoundError):
        pods.get("prod", "db")


def test_install_api_group_rejects_empty_group():
    server = APIServer()
    with pytest.raises(ValueError):
        server.install_api_group(APIGroupInfo(group_name=""))
    assert server.groups == {}