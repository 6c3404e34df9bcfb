"""
Exact resource quantity arithmetic.

Kubernetes expresses compute resources as quantity strings ("500m",
"4Gi", "1e3"). This module provides:
- Quantity: An exact decimal value plus the notation it was written in
- parse_resource_list: Convert a raw {"cpu": "2", ...} mapping to Quantities
- aggregate: Sum many resource lists per category
- format_resource_list: Serialize a resource list back to canonical strings

Values are parsed with kubernetes.utils.parse_quantity, which returns a
decimal.Decimal, so sums over hundreds of nodes never accumulate binary
floating point error. Formatting follows the canonical form used by the
Kubernetes API server (largest exact suffix, sub-nano values rounded up).
"""

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal, localcontext
from enum import Enum

from kubernetes.utils import parse_quantity

from clustermanager.exceptions import InvalidQuantityError

CPU = "cpu"
MEMORY = "memory"
DEFAULT_RESOURCES: tuple[str, ...] = (CPU, MEMORY)

# Suffix lookup for canonical formatting
_BINARY_SUFFIXES = {1: "Ki", 2: "Mi", 3: "Gi", 4: "Ti", 5: "Pi", 6: "Ei"}
_DECIMAL_SUFFIXES = {
    -9: "n",
    -6: "u",
    -3: "m",
    0: "",
    3: "k",
    6: "M",
    9: "G",
    12: "T",
    15: "P",
    18: "E",
}
_EXPONENT_RE = re.compile(r"[eE][+-]?\d+$")


class QuantityFormat(str, Enum):
    """Notation a quantity was written in; sums keep it for display."""

    BINARY_SI = "BinarySI"
    DECIMAL_SI = "DecimalSI"
    DECIMAL_EXPONENT = "DecimalExponent"


@dataclass(frozen=True, eq=False)
class Quantity:
    """
    Exact resource quantity.

    A default-constructed Quantity is an untyped zero. Adding a quantity
    to any zero adopts the other operand's notation, so both
    Quantity() + Quantity.parse("4Gi") and Quantity.parse("0") + Quantity.parse("4Gi")
    print as "4Gi".

    Attributes:
        value: Exact value in base units (cores for cpu, bytes for memory)
        format: Notation used when printing, None for an untyped zero

    Example:
        total = Quantity.parse("500m") + Quantity.parse("1")
        str(total)  # "1500m"
    """

    value: Decimal = Decimal(0)
    format: QuantityFormat | None = None

    @classmethod
    def parse(cls, raw: str | int | Decimal) -> "Quantity":
        """
        Parse a Kubernetes quantity.

        Args:
            raw: Quantity string ("2", "250m", "4Gi", "1e3") or a number

        Returns:
            Quantity with the exact value and detected notation.

        Raises:
            InvalidQuantityError: If the string is not a valid quantity.
        """
        text = str(raw).strip()
        try:
            value = parse_quantity(text)
        except (ValueError, ArithmeticError) as e:
            raise InvalidQuantityError(raw) from e
        if not Decimal(value).is_finite():
            raise InvalidQuantityError(raw)

        if text.endswith("i"):
            fmt = QuantityFormat.BINARY_SI
        elif _EXPONENT_RE.search(text):
            fmt = QuantityFormat.DECIMAL_EXPONENT
        else:
            fmt = QuantityFormat.DECIMAL_SI
        return cls(value=Decimal(value), format=fmt)

    def __add__(self, other: "Quantity") -> "Quantity":
        if not isinstance(other, Quantity):
            return NotImplemented
        with localcontext() as ctx:
            ctx.prec = 60
            total = self.value + other.value
        # A zero receiver takes the notation of the addend
        fmt = other.format if self.value == 0 else (self.format or other.format)
        return Quantity(value=total, format=fmt)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def is_zero(self) -> bool:
        return self.value == 0

    def as_float(self) -> float:
        """Lossy conversion for metric export only."""
        return float(self.value)

    def __str__(self) -> str:
        if self.value == 0:
            return "0"
        if self.format == QuantityFormat.BINARY_SI:
            binary = _format_binary(self.value)
            if binary is not None:
                return binary
        return _format_decimal(
            self.value, exponent=self.format == QuantityFormat.DECIMAL_EXPONENT
        )

    def __repr__(self) -> str:
        return f"Quantity({str(self)!r})"


def _format_binary(value: Decimal) -> str | None:
    """Format with a Ki..Ei suffix, or None if decimal notation is needed."""
    if value != value.to_integral_value() or abs(value) < 1024:
        return None

    mantissa = int(value)
    exponent = 0
    while exponent < 6 and mantissa % 1024 == 0:
        mantissa //= 1024
        exponent += 1

    if exponent == 0:
        return str(mantissa)
    return f"{mantissa}{_BINARY_SUFFIXES[exponent]}"


def _format_decimal(value: Decimal, exponent: bool) -> str:
    """Format with the largest power-of-1000 suffix that keeps an integer mantissa."""
    with localcontext() as ctx:
        ctx.prec = 60
        # Sub-nano precision is rounded up, like the API server does
        mantissa = int((value * Decimal(10) ** 9).to_integral_value(rounding=ROUND_CEILING))

    scale = -9
    while scale < 18 and mantissa != 0 and mantissa % 1000 == 0:
        mantissa //= 1000
        scale += 3

    if exponent:
        return f"{mantissa}e{scale}" if scale else str(mantissa)
    return f"{mantissa}{_DECIMAL_SUFFIXES[scale]}"


ResourceList = dict[str, Quantity]
"""Mapping of resource category (cpu, memory, ...) to quantity."""


def parse_resource_list(raw: Mapping[str, str | int] | None) -> ResourceList:
    """
    Parse a raw resource mapping as found in API objects.

    Args:
        raw: Mapping such as {"cpu": "2", "memory": "4Gi"}, or None

    Returns:
        ResourceList with parsed quantities (empty for None).

    Raises:
        InvalidQuantityError: If any value is malformed.
    """
    if not raw:
        return {}
    return {name: Quantity.parse(value) for name, value in raw.items()}


def aggregate(
    resource_lists: Iterable[Mapping[str, Quantity]],
    resources: Sequence[str] | None = None,
) -> ResourceList:
    """
    Sum resource lists per category.

    Categories missing from an input count as zero. The result always
    contains cpu and memory, even when no inputs were given.

    Args:
        resource_lists: Resource lists to sum (e.g., one per node)
        resources: Optional allow-list of categories to keep

    Returns:
        ResourceList of totals.

    Example:
        aggregate([{"cpu": Quantity.parse("2"), "memory": Quantity.parse("4Gi")},
                   {"cpu": Quantity.parse("3"), "memory": Quantity.parse("0")}])
        # {"cpu": 5, "memory": 4Gi}
    """
    totals: ResourceList = {name: Quantity() for name in DEFAULT_RESOURCES}
    for resource_list in resource_lists:
        for name, quantity in resource_list.items():
            if resources is not None and name not in resources:
                continue
            totals[name] = totals.get(name, Quantity()) + quantity
    return totals


def format_resource_list(resource_list: Mapping[str, Quantity]) -> dict[str, str]:
    """Convert a resource list to canonical quantity strings for serialization."""
    return {name: str(quantity) for name, quantity in resource_list.items()}
