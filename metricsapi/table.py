"""Tabular rendering of node and pod metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from metricsapi.quantity import Quantity, format_duration
from metricsapi.types import NodeMetrics, PodMetrics


@dataclass
class TableColumnDefinition:
    """Describes one column of a table."""

    name: str
    type: str
    format: str = ""
    description: str = ""


@dataclass
class TableRow:
    """One row of cells, together with the object it was rendered from."""

    cells: list[Any] = field(default_factory=list)
    object: Any = None


@dataclass
class Table:
    """A table of rows with column definitions and list metadata."""

    column_definitions: list[TableColumnDefinition] = field(default_factory=list)
    rows: list[TableRow] = field(default_factory=list)
    resource_version: str = ""
    self_link: str = ""
    continue_token: str = ""


def _column_definitions(names: list[str]) -> list[TableColumnDefinition]:
    columns = [
        TableColumnDefinition(
            name="Name", type="string", format="name", description="Name of the resource"
        )
    ]
    columns.extend(TableColumnDefinition(name=n, type="string", format="quantity") for n in names)
    columns.append(TableColumnDefinition(name="Window", type="string", format="duration"))
    return columns


def _append_rows(table: Table, entries: list[tuple[Any, str, dict[str, Quantity], int]]) -> None:
    names: list[str] = []
    for obj, name, usage, window in entries:
        # Columns come from the first entry that reports any usage.
        if not names:
            names = sorted(usage)
            table.column_definitions = _column_definitions(names)
        cells: list[Any] = [name]
        cells.extend(str(usage.get(resource, Quantity())) for resource in names)
        cells.append(format_duration(window))
        table.rows.append(TableRow(cells=cells, object=obj))


def add_pod_metrics_to_table(table: Table, *args: PodMetrics) -> None:
    """Append one row per pod, summing the usage of its containers."""
    entries = []
    for pod in args:
        usage: dict[str, Quantity] = {}
        for container in pod.containers:
            for resource, amount in container.usage.items():
                usage[resource] = usage.get(resource, Quantity()) + amount
        entries.append((pod, pod.name, usage, pod.window))
    _append_rows(table, entries)


def add_node_metrics_to_table(table: Table, *args: NodeMetrics) -> None:
    """Append one row per node."""
    _append_rows(table, [(node, node.name, node.usage, node.window) for node in args])