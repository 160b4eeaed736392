"""Label and field selectors and the filters built on them."""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from metricsapi.types import Node, ObjectMeta, PartialObjectMetadata

_NAME = r"[A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?"
_KEY_RE = re.compile(rf"([a-z0-9]([-a-z0-9.]*[a-z0-9])?/)?{_NAME}")
_VALUE_RE = re.compile(rf"({_NAME})?")
_SET_RE = re.compile(r"(\S+)\s+(in|notin)\s*\(([^()]*)\)")
_TERM_SPLIT_RE = re.compile(r",(?![^()]*\))")


class Operator(enum.Enum):
    EQUALS = "="
    DOUBLE_EQUALS = "=="
    NOT_EQUALS = "!="
    IN = "in"
    NOT_IN = "notin"
    EXISTS = "exists"
    DOES_NOT_EXIST = "!"


_SINGLE_VALUE = {Operator.EQUALS, Operator.DOUBLE_EQUALS, Operator.NOT_EQUALS}
_SET_VALUES = {Operator.IN, Operator.NOT_IN}


def _check_key(key: str) -> None:
    if len(key) > 316 or not _KEY_RE.fullmatch(key) or len(key.rsplit("/", 1)[-1]) > 63:
        raise ValueError(f"invalid label key {key!r}")


def _check_value(value: str) -> None:
    if len(value) > 63 or not _VALUE_RE.fullmatch(value):
        raise ValueError(f"invalid label value {value!r}")


@dataclass(frozen=True)
class Requirement:
    """A single condition on one label."""

    key: str
    operator: Operator
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _check_key(self.key)
        if self.operator in _SINGLE_VALUE and len(self.values) != 1:
            raise ValueError(f"operator {self.operator.value!r} needs exactly one value")
        if self.operator in _SET_VALUES and not self.values:
            raise ValueError(f"operator {self.operator.value!r} needs at least one value")
        if self.operator in (Operator.EXISTS, Operator.DOES_NOT_EXIST) and self.values:
            raise ValueError(f"operator {self.operator.value!r} takes no values")
        for value in self.values:
            _check_value(value)

    def matches(self, labels: Mapping[str, str]) -> bool:
        """Tell whether the labels satisfy this requirement."""
        present = self.key in labels
        if self.operator in (Operator.EQUALS, Operator.DOUBLE_EQUALS, Operator.IN):
            return present and labels[self.key] in self.values
        if self.operator in (Operator.NOT_EQUALS, Operator.NOT_IN):
            return not present or labels[self.key] not in self.values
        if self.operator is Operator.EXISTS:
            return present
        return not present


@dataclass(frozen=True)
class LabelSelector:
    """A conjunction of label requirements; empty matches everything."""

    requirements: tuple[Requirement, ...] = ()

    def matches(self, labels: Mapping[str, str] | None) -> bool:
        labels = labels or {}
        return all(r.matches(labels) for r in self.requirements)

    def add(self, *args: Requirement) -> LabelSelector:
        """Return a selector that also demands the given requirements."""
        return LabelSelector(self.requirements + tuple(args))


@dataclass(frozen=True)
class FieldSelector:
    """A conjunction of field equality terms."""

    terms: tuple[tuple[str, str], ...] = ()

    def matches(self, fields: Mapping[str, str]) -> bool:
        return all(fields.get(name, "") == value for name, value in self.terms)


def _parse_term(term: str) -> Requirement:
    if not term:
        raise ValueError("empty selector term")
    set_match = _SET_RE.fullmatch(term)
    if set_match:
        key, op, raw_values = set_match.groups()
        values = tuple(v.strip() for v in raw_values.split(",")) if raw_values.strip() else ()
        return Requirement(key, Operator(op), values)
    for op in (Operator.NOT_EQUALS, Operator.DOUBLE_EQUALS, Operator.EQUALS):
        if op.value in term:
            key, value = term.split(op.value, 1)
            return Requirement(key.strip(), op, (value.strip(),))
    if term.startswith("!"):
        return Requirement(term[1:].strip(), Operator.DOES_NOT_EXIST)
    return Requirement(term, Operator.EXISTS)


def parse_requirements(text: str) -> list[Requirement]:
    """Parse a comma-separated label selector such as ``a=b,c!=d,e in (f,g)``."""
    if not text.strip():
        return []
    return [_parse_term(term.strip()) for term in _TERM_SPLIT_RE.split(text)]


def everything() -> LabelSelector:
    """A selector that matches all labels."""
    return LabelSelector()


def label_selector_from_set(labels: Mapping[str, str]) -> LabelSelector:
    """A selector requiring every given label to have the given value."""
    return LabelSelector(
        tuple(Requirement(k, Operator.EQUALS, (v,)) for k, v in sorted(labels.items()))
    )


def field_selector_from_set(fields: Mapping[str, str]) -> FieldSelector:
    """A selector requiring every given field to have the given value."""
    return FieldSelector(tuple(sorted(fields.items())))


def object_meta_fields(meta: ObjectMeta, namespace_scoped: bool) -> dict[str, str]:
    """The selectable fields of an object's metadata."""
    fields = {"metadata.name": meta.name}
    if namespace_scoped:
        fields["metadata.namespace"] = meta.namespace
    return fields


def filter_nodes(nodes: Iterable[Node], selector: FieldSelector) -> list[Node]:
    """Keep the nodes whose metadata fields match the selector."""
    return [n for n in nodes if selector.matches(object_meta_fields(n.metadata, False))]


def filter_partial_object_metadata(
    objs: Iterable[PartialObjectMetadata], selector: FieldSelector
) -> list[PartialObjectMetadata]:
    """Keep the namespaced objects whose metadata fields match the selector."""
    return [o for o in objs if selector.matches(object_meta_fields(o.metadata, True))]