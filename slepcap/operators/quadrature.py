"""Gauss-Legendre quadrature on [-1, 1] and on spherical-cap intervals.

Integrals over the sphere of products of order-m harmonics reduce to
one-dimensional integrals in ``x = cos(theta)``:

    dOmega = dphi d(cos theta)

The latitude part of a degree-l by degree-l' product is a polynomial of
degree ``l + l'`` in ``x``, so an n-point Gauss-Legendre rule
(exact to degree ``2n - 1``) integrates it without error once
``2n - 1 >= l + l'``.
"""

from __future__ import annotations

from typing import Protocol, Tuple, runtime_checkable

import numpy as np
from numpy.polynomial.legendre import leggauss

from ..errors import BoundsError


@runtime_checkable
class QuadratureProvider(Protocol):
    """Source of nodes/weights on [-1, 1] exact up to a polynomial degree."""

    def nodes_and_weights(
        self: "QuadratureProvider", degree: int
    ) -> Tuple[np.ndarray, np.ndarray]: ...


def gauss_legendre_size(degree: int) -> int:
    """Number of Gauss-Legendre nodes needed to integrate ``degree`` exactly."""

    d = int(degree)
    if d < 0:
        raise BoundsError(f"quadrature degree must be >= 0, got {d}")
    return d // 2 + 1


class GaussLegendreQuadrature:
    """Default :class:`QuadratureProvider` backed by ``numpy``'s ``leggauss``."""

    def nodes_and_weights(
        self: "GaussLegendreQuadrature", degree: int
    ) -> Tuple[np.ndarray, np.ndarray]:
        x, w = leggauss(gauss_legendre_size(degree))
        return np.asarray(x, dtype=np.float64), np.asarray(w, dtype=np.float64)


def map_to_interval(
    nodes: np.ndarray,
    weights: np.ndarray,
    lower: float,
    upper: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Affinely map a rule on [-1, 1] onto [lower, upper].

    Polynomial exactness is preserved by affine maps.
    """

    half = 0.5 * (upper - lower)
    x = lower + half * (np.asarray(nodes, dtype=np.float64) + 1.0)
    w = half * np.asarray(weights, dtype=np.float64)
    return x, w


def cap_nodes_and_weights(
    quadrature: QuadratureProvider,
    degree: int,
    theta0: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Nodes/weights in ``x = cos(theta)`` covering the cap ``theta <= theta0``."""

    nodes, weights = quadrature.nodes_and_weights(degree)
    return map_to_interval(nodes, weights, float(np.cos(theta0)), 1.0)


__all__ = [
    "GaussLegendreQuadrature",
    "QuadratureProvider",
    "cap_nodes_and_weights",
    "gauss_legendre_size",
    "map_to_interval",
]
