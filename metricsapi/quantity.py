"""Resource quantities and duration formatting in their canonical string forms."""

from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction

_NANO = 10**9
_BINARY_BY_POWER = ["", "Ki", "Mi", "Gi", "Ti", "Pi", "Ei"]
_BINARY_SUFFIXES = {suffix: 1024**power for power, suffix in enumerate(_BINARY_BY_POWER) if suffix}
_DECIMAL_SUFFIXES = {
    "n": -9,
    "u": -6,
    "m": -3,
    "": 0,
    "k": 3,
    "M": 6,
    "G": 9,
    "T": 12,
    "P": 15,
    "E": 18,
}
_DECIMAL_BY_EXPONENT = {exp: suffix for suffix, exp in _DECIMAL_SUFFIXES.items()}
_QUANTITY_RE = re.compile(r"([+-]?)(\d+(?:\.\d*)?|\.\d+)(.*)")
_EXPONENT_RE = re.compile(r"[eE]([+-]?\d+)")


class QuantityFormat(enum.Enum):
    DECIMAL_SI = "DecimalSI"
    BINARY_SI = "BinarySI"
    DECIMAL_EXPONENT = "DecimalExponent"


def _round_up_nano(value: Fraction) -> Fraction:
    scaled = value * _NANO
    if scaled.denominator == 1:
        return value
    magnitude = math.ceil(abs(scaled))
    return Fraction(magnitude if value > 0 else -magnitude, _NANO)


@dataclass(frozen=True)
class Quantity:
    """An exact amount of a resource, kept to nanounit precision."""

    value: Fraction = Fraction(0)
    format: QuantityFormat = QuantityFormat.DECIMAL_SI

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _round_up_nano(Fraction(self.value)))

    def __add__(self, other: object) -> Quantity:
        if not isinstance(other, Quantity):
            return NotImplemented
        fmt = other.format if self.value == 0 else self.format
        return Quantity(self.value + other.value, fmt)

    def __radd__(self, other: object) -> Quantity:
        if other == 0:
            return self
        return NotImplemented

    def __str__(self) -> str:
        value = self.value
        if value == 0:
            return "0"
        fmt = self.format
        if fmt is QuantityFormat.BINARY_SI and (-1024 < value < 1024 or value.denominator != 1):
            fmt = QuantityFormat.DECIMAL_SI
        if fmt is QuantityFormat.BINARY_SI:
            number = value.numerator
            power = 0
            while power < len(_BINARY_BY_POWER) - 1 and number % 1024 == 0:
                number //= 1024
                power += 1
            return f"{number}{_BINARY_BY_POWER[power]}"

        mantissa = int(value * _NANO)
        exponent = -9
        while mantissa % 10 == 0:
            mantissa //= 10
            exponent += 1
        shift = exponent % 3
        mantissa *= 10**shift
        exponent -= shift
        if fmt is QuantityFormat.DECIMAL_SI and exponent in _DECIMAL_BY_EXPONENT:
            suffix = _DECIMAL_BY_EXPONENT[exponent]
        elif exponent == 0:
            suffix = ""
        else:
            suffix = f"e{exponent}"
        return f"{mantissa}{suffix}"


def parse_quantity(text: str) -> Quantity:
    """Parse a quantity such as ``10m``, ``5Mi`` or ``1e3``."""
    match = _QUANTITY_RE.fullmatch(text.strip())
    if not match:
        raise ValueError(f"quantities must match the regular expression: {text!r}")
    sign, number, suffix = match.groups()
    amount = Fraction(Decimal(number))
    if sign == "-":
        amount = -amount
    exponent_match = _EXPONENT_RE.fullmatch(suffix)
    if exponent_match:
        fmt = QuantityFormat.DECIMAL_EXPONENT
        amount *= Fraction(10) ** int(exponent_match.group(1))
    elif suffix in _BINARY_SUFFIXES:
        fmt = QuantityFormat.BINARY_SI
        amount *= _BINARY_SUFFIXES[suffix]
    elif suffix in _DECIMAL_SUFFIXES:
        fmt = QuantityFormat.DECIMAL_SI
        amount *= Fraction(10) ** _DECIMAL_SUFFIXES[suffix]
    else:
        raise ValueError(f"unable to parse quantity's suffix: {text!r}")
    return Quantity(amount, fmt)


def _fraction_digits(value: int, precision: int) -> tuple[int, str]:
    whole, fraction = divmod(value, 10**precision)
    digits = f"{fraction:0{precision}d}".rstrip("0") if precision else ""
    return whole, f".{digits}" if digits else ""


def format_duration(nanoseconds: int) -> str:
    """Render a duration in nanoseconds the way ``1h2m3.5s`` or ``1µs`` reads."""
    sign = "-" if nanoseconds < 0 else ""
    amount = abs(nanoseconds)
    if amount == 0:
        return "0s"
    if amount < _NANO:
        if amount < 1_000:
            precision, unit = 0, "ns"
        elif amount < 1_000_000:
            precision, unit = 3, "µs"
        else:
            precision, unit = 6, "ms"
        whole, fraction = _fraction_digits(amount, precision)
        return f"{sign}{whole}{fraction}{unit}"
    seconds, fraction = _fraction_digits(amount, 9)
    text = f"{seconds % 60}{fraction}s"
    minutes = seconds // 60
    if minutes:
        text = f"{minutes % 60}m{text}"
        hours = minutes // 60
        if hours:
            text = f"{hours}h{text}"
    return sign + text