# metricsapi

Storage and helpers for a resource metrics API that serves CPU and memory
usage for cluster nodes and pods.

## What is in the package

- `metricsapi.types`: the data objects (`ObjectMeta`, `Node`,
  `PartialObjectMetadata`, `ContainerMetrics`, `NodeMetrics`, `PodMetrics`,
  `NodeMetricsList`, `PodMetricsList`, `ListOptions`, `TimeInfo`), the
  `NotFoundError` exception, the abstract `NodeMetricsGetter` and
  `PodMetricsGetter` interfaces, and the clocks `RealClock` and `FakeClock`.
- `metricsapi.selectors`: label requirements with the operators `=`, `==`,
  `!=`, `in`, `notin`, existence and `!` non-existence; `LabelSelector`,
  `FieldSelector`, `parse_requirements`, `everything`,
  `label_selector_from_set`, `field_selector_from_set`, and the filters
  `filter_nodes` and `filter_partial_object_metadata` over `metadata.name`
  (and `metadata.namespace` for pods).
- `metricsapi.quantity`: `Quantity` values such as `10m` or `5Mi`, parsed with
  `parse_quantity`, added with `+` and printed back in canonical form;
  `format_duration` renders nanoseconds as `1µs`, `1m30s` and the like.
- `metricsapi.table`: `Table`, `TableRow`, `TableColumnDefinition`, and
  `add_node_metrics_to_table` / `add_pod_metrics_to_table`, which add one
  column per resource (sorted by name) plus `Name` and `Window`; pod rows sum
  the usage of their containers.
- `metricsapi.monitoring`: `Histogram` with `observe`, `reset` and `expose`
  (text exposition format), `exponential_buckets`, the shared
  `METRIC_FRESHNESS` histogram and `register_api_metrics`.
- `metricsapi.nodes`: `NodeLister` (abstract) and `NodeMetricsStorage` with
  `list`, `get` and `convert_to_table`. Results are sorted by name, an optional
  node selector is added to every list, and each returned metric is recorded in
  the freshness histogram.
- `metricsapi.pods`: `PodLister` (abstract) and `PodMetricsStorage` with
  `list(namespace, options)`, `get(namespace, name)` and `convert_to_table`.
  Results are sorted by namespace, then name.
- `metricsapi.api`: `build` assembles an `APIGroupInfo` for `metrics.k8s.io`
  version `v1beta1` with `nodes` and `pods` storages; `install` creates the
  storages and installs the group into an `APIServer`.
- `metricsapi.options`: `KubeletClientOptions` and `Options` with validation,
  argparse flag registration, `new_options`, `parse_options` and
  `parse_duration`. `parse_options` raises `OptionsError` (holding every
  problem in `errors`) when validation fails.

`get` on either storage raises `NotFoundError` for unknown objects or objects
without metrics; failures of a lister or metrics getter are raised as
`RuntimeError` with the cause chained.

## Installation

The package has no runtime dependencies beyond the standard library and
supports Python 3.10 and later.

## Examples

Quantities and durations:

```python
from metricsapi.quantity import parse_quantity, format_duration

total = parse_quantity("10m") + parse_quantity("20m")
print(total)                 # 30m
print(format_duration(1000)) # 1µs
```

Selectors:

```python
from metricsapi.selectors import label_selector_from_set, parse_requirements

selector = label_selector_from_set({"labelKey": "labelValue"})
selector.matches({"labelKey": "labelValue"})   # True

requirements = parse_requirements("skipKey!=skipValue")
```

Freshness buckets:

```python
from metricsapi.monitoring import exponential_buckets

exponential_buckets(1, 1.364, 20)  # 20 upper bounds starting at 1
```

Options:

```python
from metricsapi.options import parse_options

options = parse_options(["--metric-resolution", "60s"])
options.validate()   # [] when the options are consistent
```

The metric resolution must be at least 10s, and nine tenths of it must not be
smaller than the kubelet request timeout (10s by default).

## What the package does not do

There is no command to run and no network server. `APIServer` only records the
API groups installed into it; nothing here serves HTTP, collects metrics from
kubelets, loads a kubeconfig or sets up TLS and authentication. Metrics come
from whatever `NodeMetricsGetter` / `PodMetricsGetter` and listers you supply.

## Tests

The test suite uses pytest and is installed with the `test` extra.