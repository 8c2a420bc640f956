"""Configuration model for slepcap."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import BoundsError


class Triangle(str, Enum):
    """Which triangle of a symmetric matrix is read."""

    UPPER = "upper"
    LOWER = "lower"


class Normalization(str, Enum):
    """Normalization convention of the angular basis functions."""

    FOUR_PI = "4pi"
    ORTHO = "ortho"


class ErrorPolicy(str, Enum):
    """What the solver facade does with a failed call."""

    RAISE = "raise"
    STATUS = "status"


_TRIANGLE_ALIASES = {
    "u": Triangle.UPPER,
    "upper": Triangle.UPPER,
    "l": Triangle.LOWER,
    "lower": Triangle.LOWER,
}


@dataclass(frozen=True)
class KernelConfig:
    """Basis conventions used when assembling the concentration kernel."""

    normalization: Normalization = Normalization.FOUR_PI
    csphase: int = 1


@dataclass(frozen=True)
class EigenConfig:
    """Defaults for the symmetric eigensolver."""

    triangle: Triangle = Triangle.UPPER
    k: Optional[int] = None


def normalize_triangle(triangle: Union[Triangle, str]) -> Triangle:
    if isinstance(triangle, Triangle):
        return triangle
    key = str(triangle).strip().lower()
    if key not in _TRIANGLE_ALIASES:
        raise BoundsError(f"triangle must be one of 'U', 'L', 'upper', 'lower'; got {triangle!r}")
    return _TRIANGLE_ALIASES[key]


def normalize_normalization(normalization: Union[Normalization, str]) -> Normalization:
    if isinstance(normalization, Normalization):
        return normalization
    return Normalization(str(normalization).strip().lower())


def normalize_policy(policy: Union[ErrorPolicy, str]) -> ErrorPolicy:
    if isinstance(policy, ErrorPolicy):
        return policy
    return ErrorPolicy(str(policy).strip().lower())


__all__ = [
    "EigenConfig",
    "ErrorPolicy",
    "KernelConfig",
    "Normalization",
    "Triangle",
    "normalize_normalization",
    "normalize_policy",
    "normalize_triangle",
]
