"""Histogram of how fresh the exported metrics are."""

from __future__ import annotations

import bisect
import math
import threading
from collections.abc import Callable, Sequence
from decimal import Decimal
from typing import TypeVar

T = TypeVar("T")


def exponential_buckets(start: float, factor: float, count: int) -> list[float]:
    """Return count bucket bounds, the first at start, each factor times the last."""
    if count < 1:
        raise ValueError("exponential_buckets needs a positive count")
    if start <= 0:
        raise ValueError("exponential_buckets needs a positive start value")
    if factor <= 1:
        raise ValueError("exponential_buckets needs a factor greater than 1")
    buckets = []
    for _ in range(count):
        buckets.append(start)
        start *= factor
    return buckets


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "0"
    sign, digit_tuple, exponent = Decimal(repr(value)).normalize().as_tuple()
    digits = "".join(map(str, digit_tuple))
    point = len(digits) + exponent
    prefix = "-" if sign else ""
    sci_exponent = point - 1
    if sci_exponent < -4 or sci_exponent >= 6 and point > len(digits) or sci_exponent >= 21:
        mantissa = digits[0] + (f".{digits[1:]}" if len(digits) > 1 else "")
        exp_sign = "-" if sci_exponent < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(sci_exponent):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{digits}"
    if point >= len(digits):
        return f"{prefix}{digits}{'0' * (point - len(digits))}"
    return f"{prefix}{digits[:point]}.{digits[point:]}"


class Histogram:
    """A cumulative histogram exposed in the text exposition format."""

    def __init__(
        self,
        namespace: str,
        subsystem: str,
        name: str,
        help_text: str,
        buckets: Sequence[float],
        stability_level: str = "ALPHA",
    ) -> None:
        self.full_name = "_".join(part for part in (namespace, subsystem, name) if part)
        self.help_text = help_text
        self.stability_level = stability_level
        self.buckets = sorted(buckets)
        self._lock = threading.Lock()
        self._counts = [0] * (len(self.buckets) + 1)
        self._sum = 0.0

    def observe(self, value: float) -> None:
        """Record one observation."""
        with self._lock:
            self._counts[bisect.bisect_left(self.buckets, value)] += 1
            self._sum += value

    def reset(self) -> None:
        """Forget every observation."""
        with self._lock:
            self._counts = [0] * (len(self.buckets) + 1)
            self._sum = 0.0

    def expose(self) -> str:
        """Render the histogram in the text exposition format."""
        with self._lock:
            counts = list(self._counts)
            total = self._sum
        name = self.full_name
        lines = [
            f"# HELP {name} [{self.stability_level}] {self.help_text}",
            f"# TYPE {name} histogram",
        ]
        cumulative = 0
        for bound, count in zip(self.buckets, counts):
            cumulative += count
            lines.append(f'{name}_bucket{{le="{_format_float(bound)}"}} {cumulative}')
        cumulative += counts[-1]
        lines.append(f'{name}_bucket{{le="+Inf"}} {cumulative}')
        lines.append(f"{name}_sum {_format_float(total)}")
        lines.append(f"{name}_count {cumulative}")
        return "\n".join(lines) + "\n"


METRIC_FRESHNESS = Histogram(
    namespace="metrics_server",
    subsystem="api",
    name="metric_freshness_seconds",
    help_text="Freshness of metrics exported",
    buckets=exponential_buckets(1, 1.364, 20),
)


def register_api_metrics(registration_func: Callable[[Histogram], T]) -> T:
    """Register the freshness histogram through the given function."""
    return registration_func(METRIC_FRESHNESS)