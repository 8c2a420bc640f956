"""Normalized associated Legendre functions for a fixed order.

The kernel builder only needs the latitude part of the real spherical
harmonics of one order ``m``. This module evaluates it in the normalized
basis directly, which keeps the recursion free of the factorial ratios that
overflow for moderate degrees.

Normalization contract
----------------------
With ``x = cos(theta)`` and ``P_l^m`` the associated Legendre function
without Condon-Shortley phase, the 4pi-normalized function is

    Pbar_lm(x) = sqrt((2 - delta_m0) (2l + 1) (l - m)! / (l + m)!) P_l^m(x),

so that

    int_{-1}^{1} Pbar_lm(x)^2 dx = 2 (2 - delta_m0),

i.e. the real harmonic ``Pbar_lm(cos theta) cos(m phi)`` has surface
integral 4 pi when squared. The orthonormalized variant divides by
sqrt(4 pi).

Recursion
---------
    Pbar_mm     = sqrt(2 - delta_m0) prod_{i=1..m} sqrt((2i + 1) / (2i)) u^m,
    Pbar_{m+1,m} = sqrt(2m + 3) x Pbar_mm,
    Pbar_lm     = a_lm x Pbar_{l-1,m} - b_lm Pbar_{l-2,m},

with ``u = sqrt(1 - x^2)`` and

    a_lm = sqrt((2l + 1)(2l - 1) / ((l - m)(l + m))),
    b_lm = sqrt((2l + 1)(l + m - 1)(l - m - 1) / ((l - m)(l + m)(2l - 3))).

The sectoral value carries ``u^m``, which underflows double precision for
large ``m`` at nodes where ``Pbar_lm`` itself is of order one for larger
``l``. The recursion therefore runs on ``q_l = Pbar_lm / Pbar_mm`` with the
seed kept as a logarithm. Whenever ``|q_l|`` exceeds ``_RESCALE`` both
carried terms are divided by it and the exponent is tracked per node; the
seed and the exponent are applied once, at the end.
"""

from __future__ import annotations

import math
from typing import Protocol, Union, runtime_checkable

import jax
import jax.numpy as jnp
from beartype import beartype
from jaxtyping import Array, ArrayLike, jaxtyped

from ..config import Normalization, normalize_normalization
from ..errors import BoundsError

# Carried recursion terms are divided by this whenever they exceed it.
_RESCALE = 1e100
_LOG_RESCALE = math.log(_RESCALE)


@runtime_checkable
class BasisEvaluator(Protocol):
    """Normalized order-m basis values at quadrature nodes."""

    @property
    def sphere_norm(self: "BasisEvaluator") -> float: ...

    def evaluate(
        self: "BasisEvaluator", degree: int, order: int, nodes: ArrayLike
    ) -> Array: ...


@jax.jit
def _normalized_legendre(x: Array, degree: Array, order: Array) -> Array:
    """4pi-normalized ``Pbar_lm(x)`` for ``l = degree >= m = order >= 0``.

    ``degree`` and ``order`` are traced, so one compilation serves every
    (l, m) pair for a given node count.
    """

    dtype = x.dtype
    m = order
    mf = m.astype(dtype)
    u = jnp.sqrt(jnp.maximum(1.0 - x * x, 0.0))

    def sectoral(i: Array, acc: Array) -> Array:
        fi = i.astype(dtype)
        return acc + 0.5 * jnp.log((2.0 * fi + 1.0) / (2.0 * fi))

    log_norm = jax.lax.fori_loop(1, m + 1, sectoral, jnp.zeros((), dtype=dtype))
    # log(Pbar_mm); u = 0 at the poles gives -inf, i.e. an exact zero for m > 0.
    log_pmm = jnp.where(m > 0, log_norm + 0.5 * math.log(2.0) + mf * jnp.log(u), 0.0)

    def step(
        ell: Array, carry: tuple[Array, Array, Array]
    ) -> tuple[Array, Array, Array]:
        q1, q2, log_scale = carry
        lf = ell.astype(dtype)
        denom = (lf - mf) * (lf + mf)
        a = jnp.sqrt((2.0 * lf + 1.0) * (2.0 * lf - 1.0) / denom)
        b = jnp.sqrt(
            (2.0 * lf + 1.0) * (lf + mf - 1.0) * (lf - mf - 1.0) / (denom * (2.0 * lf - 3.0))
        )
        q = a * x * q1 - b * q2
        large = jnp.abs(q) > _RESCALE
        shrink = jnp.where(large, 1.0 / _RESCALE, 1.0)
        return q * shrink, q1 * shrink, log_scale + jnp.where(large, _LOG_RESCALE, 0.0)

    start = (jnp.sqrt(2.0 * mf + 3.0) * x, jnp.ones_like(x), jnp.zeros_like(x))
    qlm, _, log_scale = jax.lax.fori_loop(m + 2, degree + 1, step, start)
    qlm = jnp.where(degree == m, 1.0, qlm)
    return qlm * jnp.exp(log_pmm + log_scale)


class NormalizedLegendre:
    """Default :class:`BasisEvaluator`.

    Parameters
    ----------
    normalization:
        ``"4pi"`` (geodesy convention) or ``"ortho"`` (unit surface integral).
    csphase:
        ``1`` excludes the Condon-Shortley phase, ``-1`` applies ``(-1)^m``.
        Kernel entries only ever multiply two functions of the same order, so
        the phase never changes a kernel.
    """

    def __init__(
        self: "NormalizedLegendre",
        normalization: Union[Normalization, str] = Normalization.FOUR_PI,
        csphase: int = 1,
    ) -> None:
        if csphase not in (1, -1):
            raise BoundsError(f"csphase must be 1 or -1, got {csphase}")
        self.normalization = normalize_normalization(normalization)
        self.csphase = int(csphase)

    @property
    def sphere_norm(self: "NormalizedLegendre") -> float:
        """Surface integral of a squared real harmonic in this convention."""
        if self.normalization is Normalization.ORTHO:
            return 1.0
        return 4.0 * math.pi

    def evaluate(
        self: "NormalizedLegendre", degree: int, order: int, nodes: ArrayLike
    ) -> Array:
        """Values of the normalized degree-``degree`` function at ``nodes``.

        Negative orders share the latitude function of ``|order|``.
        """

        ell = int(degree)
        m = abs(int(order))
        if ell < 0 or m > ell:
            raise BoundsError(f"need 0 <= |order| <= degree, got degree={ell}, order={order}")
        x = jnp.asarray(nodes, dtype=jnp.float64)
        values = _normalized_legendre(x, jnp.asarray(ell), jnp.asarray(m))
        if self.normalization is Normalization.ORTHO:
            values = values / jnp.sqrt(4.0 * jnp.pi)
        if self.csphase == -1 and m % 2 == 1:
            values = -values
        return values


@jaxtyped(typechecker=beartype)
def legendre_table(
    evaluator: BasisEvaluator,
    degrees: tuple[int, ...],
    order: int,
    nodes: Array,
) -> Array:
    """Stack ``evaluator`` rows for ``degrees`` into a ``(len(degrees), n)`` array."""

    if not degrees:
        return jnp.zeros((0, nodes.shape[0]), dtype=nodes.dtype)
    return jnp.stack([jnp.asarray(evaluator.evaluate(ell, order, nodes)) for ell in degrees])


__all__ = [
    "BasisEvaluator",
    "NormalizedLegendre",
    "legendre_table",
]
