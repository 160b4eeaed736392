from datetime import datetime, timedelta

import pytest

from metricsapi.monitoring import METRIC_FRESHNESS
from metricsapi.pods import PodLister, PodMetricsStorage
from metricsapi.quantity import parse_quantity
from metricsapi.selectors import field_selector_from_set, label_selector_from_set
from metricsapi.types import (
    ContainerMetrics,
    FakeClock,
    ListOptions,
    NotFoundError,
    ObjectMeta,
    PartialObjectMetadata,
    PodMetrics,
    PodMetricsGetter,
    PodMetricsList,
)


def pod_labels(name, namespace):
    if name == "pod1" and namespace == "other":
        return {"labelKey": "labelValue"}
    if name == "pod2" and namespace == "other":
        return {"otherKey": "labelValue"}
    if name == "pod3" and namespace == "testValue":
        return {"labelKey": "otherValue"}
    if name == "pod4" and namespace == "testValue":
        return {"otherKey": "otherValue"}
    return {}


def create_test_pods():
    pods = [("pod1", "other"), ("pod2", "other"), ("pod3", "testValue"), ("pod4", "other")]
    return [
        PartialObjectMetadata(ObjectMeta(name=n, namespace=ns, labels=pod_labels(n, ns)))
        for n, ns in pods
    ]


class FakePodLister(PodLister):
    def __init__(self, data, err=None):
        self.data = data
        self.err = err

    def by_namespace(self, namespace):
        return self

    def list(self, selector):
        if self.err is not None:
            raise self.err
        return [p for p in self.data if selector.matches(p.labels)]

    def get(self, name):
        if self.err is not None:
            raise self.err
        return next((p for p in self.data if p.name == name), None)


class FakePodMetricsGetter(PodMetricsGetter):
    def __init__(self, now, err=None):
        self.now = now
        self.err = err

    def get_pod_metrics(self, *args):
        if self.err is not None:
            raise self.err
        usage = {
            ("pod1", "other"): (1000, [
                ContainerMetrics("metric1", {"cpu": parse_quantity("10m")}),
                ContainerMetrics("metric1-b", {"memory": parse_quantity("5Mi")}),
            ]),
            ("pod2", "other"): (2000, [
                ContainerMetrics(
                    "metric2", {"cpu": parse_quantity("20m"), "memory": parse_quantity("15Mi")}
                ),
            ]),
            ("pod3", "testValue"): (3000, [
                ContainerMetrics(
                    "metric3", {"cpu": parse_quantity("20m"), "memory": parse_quantity("25Mi")}
                ),
            ]),
        }
        result = []
        for pod in args:
            entry = usage.get((pod.name, pod.namespace))
            if entry is None:
                continue
            window, containers = entry
            result.append(
                PodMetrics(
                    metadata=ObjectMeta(
                        name=pod.name, namespace=pod.namespace, labels=dict(pod.labels)
                    ),
                    timestamp=self.now,
                    window=window,
                    containers=containers,
                )
            )
        return result


def new_pod_test_storage(lister_error=None, clock=None, metrics_error=None):
    clock = clock or FakeClock()
    return PodMetricsStorage(
        metrics=FakePodMetricsGetter(clock.now(), metrics_error),
        pod_lister=FakePodLister(create_test_pods(), lister_error),
        clock=clock,
    )


def check_pod(got, name, namespace):
    assert got.name == name
    assert got.namespace == namespace
    assert got.labels == pod_labels(name, namespace)


@pytest.mark.parametrize(
    "options, want",
    [
        (None, [("pod1", "other"), ("pod2", "other"), ("pod3", "testValue")]),
        (ListOptions(field_selector=field_selector_from_set({"metadata.namespace": "unknown"})), []),
        (
            ListOptions(field_selector=field_selector_from_set({"metadata.namespace": "testValue"})),
            [("pod3", "testValue")],
        ),
        (
            ListOptions(label_selector=label_selector_from_set({"labelKey": "labelValue"})),
            [("pod1", "other")],
        ),
        (
            ListOptions(
                field_selector=field_selector_from_set({"metadata.name": "pod3"}),
                label_selector=label_selector_from_set({"labelKey": "otherValue"}),
            ),
            [("pod3", "testValue")],
        ),
    ],
    ids=["normal", "empty", "field", "label", "both"],
)
def test_pod_list(options, want):
    result = new_pod_test_storage().list("", options)
    assert len(result.items) == len(want)
    for item, (name, namespace) in zip(result.items, want):
        check_pod(item, name, namespace)


def test_pod_list_lister_error():
    storage = new_pod_test_storage(lister_error=RuntimeError("lister error"))
    with pytest.raises(RuntimeError, match="failed listing pods: lister error"):
        storage.list("", None)


def test_pod_list_metrics_error():
    storage = new_pod_test_storage(metrics_error=ValueError("boom"))
    with pytest.raises(RuntimeError, match="failed reading pods metrics: boom"):
        storage.list("")


def test_pod_get_normal():
    got = new_pod_test_storage().get("other", "pod1")
    check_pod(got, "pod1", "other")


def test_pod_get_lister_error():
    storage = new_pod_test_storage(lister_error=RuntimeError("lister error"))
    with pytest.raises(RuntimeError, match="failed getting pod"):
        storage.get("other", "pod1")


def test_pod_get_lister_not_found_passes_through():
    storage = new_pod_test_storage(lister_error=NotFoundError("pods", "other/pod1"))
    with pytest.raises(NotFoundError) as info:
        storage.get("other", "pod1")
    assert info.value.name == "other/pod1"


def test_pod_get_without_metrics():
    with pytest.raises(NotFoundError) as info:
        new_pod_test_storage().get("testValue", "pod4")
    assert info.value.resource == "podmetrics.metrics.k8s.io"
    assert info.value.name == "testValue/pod4"


def test_pod_get_missing_pod():
    with pytest.raises(NotFoundError) as info:
        new_pod_test_storage().get("other", "pod5")
    assert info.value.resource == "pods"
    assert info.value.name == "other/pod5"


def test_pod_get_metrics_error():
    storage = new_pod_test_storage(metrics_error=ValueError("boom"))
    with pytest.raises(RuntimeError, match="failed pod metrics: boom"):
        storage.get("other", "pod1")


def test_pod_list_monitoring():
    clock = FakeClock(datetime(2020, 1, 1))
    METRIC_FRESHNESS.reset()
    storage = new_pod_test_storage(clock=clock)
    clock.advance(timedelta(seconds=10))
    storage.list("", None)
    expected = """
    # HELP metrics_server_api_metric_freshness_seconds [ALPHA] Freshness of metrics exported
    # TYPE metrics_server_api_metric_freshness_seconds histogram
    metrics_server_api_metric_freshness_seconds_bucket{le="1"} 0
    metrics_server_api_metric_freshness_seconds_bucket{le="1.364"} 0
    metrics_server_api_metric_freshness_seconds_bucket{le="1.8604960000000004"} 0
    metrics_server_api_metric_freshness_seconds_bucket{le="2.5377165440000007"} 0
    metrics_server_api_metric_freshness_seconds_bucket{le="3.4614453660160014"} 0
    metrics_server_api_metric_freshness_seconds_bucket{le="4.721411479245826"} 0
    metrics_server_api_metric_freshness_seconds_bucket{le="6.440005257691307"} 0
    metrics_server_api_metric_freshness_seconds_bucket{le="8.784167171490942"} 0
    metrics_server_api_metric_freshness_seconds_bucket{le="11.981604021913647"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="16.342907885890217"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="22.291726356354257"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="30.405914750067208"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="41.47366771909167"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="56.57008276884105"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="77.16159289669919"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="105.2484127110977"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="143.55883493793726"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="195.81425085534644"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="267.09063816669254"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="364.31163045936864"} 3
    metrics_server_api_metric_freshness_seconds_bucket{le="+Inf"} 3
    metrics_server_api_metric_freshness_seconds_sum 30
    metrics_server_api_metric_freshness_seconds_count 3
    """
    want = [line.strip() for line in expected.strip().splitlines()]
    assert METRIC_FRESHNESS.expose().splitlines() == want
    METRIC_FRESHNESS.reset()


def test_pod_list_convert_to_table():
    storage = new_pod_test_storage()
    table = storage.convert_to_table(storage.list(""))
    assert len(table.rows) == 3
    assert [c.name for c in table.column_definitions[1:]] == ["cpu", "memory", "Window"]
    assert table.rows[0].cells == ["pod1", "10m", "5Mi", "1µs"]
    assert table.rows[1].cells == ["pod2", "20m", "15Mi", "2µs"]
    assert table.rows[2].cells == ["pod3", "20m", "25Mi", "3µs"]


def test_convert_single_pod_and_list_metadata():
    storage = new_pod_test_storage()
    pod = storage.get("other", "pod1")
    pod.metadata.resource_version = "7"
    table = storage.convert_to_table(pod)
    assert table.resource_version == "7"
    assert table.rows[0].object is pod

    listing = PodMetricsList(items=[], resource_version="9", continue_token="next")
    table = storage.convert_to_table(listing)
    assert (table.resource_version, table.continue_token, table.rows) == ("9", "next", [])


def test_convert_unknown_object_gives_empty_table():
    table = new_pod_test_storage().convert_to_table("other")
    assert table.rows == [] and table.column_definitions == []


def test_storage_descriptors():
    storage = new_pod_test_storage()
    assert storage.kind() == "PodMetrics"
    assert storage.namespace_scoped() is True
    assert storage.get_singular_name() == ""
    assert storage.new() == PodMetrics()
    assert storage.new_list() == PodMetricsList()