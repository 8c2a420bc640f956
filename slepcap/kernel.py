"""Space-concentration kernel of a spherical cap for one angular order.

For order ``m``, bandwidth ``lmax`` and cap radius ``theta0`` the kernel is

    Dm[l, l'] = (1 / N) int_cap Y_lm Y_l'm dOmega
              = A_m / N * int_{cos theta0}^{1} Pbar_lm(x) Pbar_l'm(x) dx,

where ``N`` is the surface integral of a squared harmonic in the basis
convention (4 pi or 1) and ``A_m = int_0^{2 pi} cos^2(m phi) dphi`` is
``2 pi`` for ``m = 0`` and ``pi`` otherwise. Dividing by ``N`` makes the
entries concentration ratios: the kernel of the whole sphere
(``theta0 = pi``) is the identity on the active degrees, whichever
convention the basis uses.

The integrand is a polynomial of degree ``l + l' <= 2 lmax`` in ``x``, so a
quadrature exact to ``2 lmax`` mapped onto ``[cos theta0, 1]`` gives the
entries exactly (up to round-off).
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, Union

import jax.numpy as jnp
import numpy as np
from jaxtyping import Array

from .config import KernelConfig
from .errors import (
    AllocationError,
    BoundsError,
    CollaboratorIOError,
    SlepcapError,
    ValidationError,
)
from .operators.legendre import BasisEvaluator, NormalizedLegendre, legendre_table
from .operators.quadrature import (
    GaussLegendreQuadrature,
    QuadratureProvider,
    cap_nodes_and_weights,
)

DegreeMask = Union[Sequence[bool], np.ndarray]


def _check_kernel_bounds(lmax: int, m: int, theta0: float) -> None:
    if lmax < 0:
        raise BoundsError(f"lmax must be >= 0, got {lmax}")
    if abs(m) > lmax:
        raise BoundsError(f"|m| must be <= lmax; got m = {m}, lmax = {lmax}")
    if not math.isfinite(theta0) or theta0 <= 0.0 or theta0 > math.pi:
        raise BoundsError(f"theta0 must lie in (0, pi], got {theta0}")


def _check_output(output: np.ndarray, lmax: int) -> None:
    if not isinstance(output, np.ndarray) or output.ndim != 2:
        raise ValidationError("output must be a two-dimensional numpy array")
    rows, cols = output.shape
    if rows < lmax + 1 or cols < lmax + 1:
        raise ValidationError(
            f"output must be dimensioned at least ({lmax + 1}, {lmax + 1}); "
            f"input array is dimensioned as ({rows}, {cols})"
        )
    if not np.issubdtype(output.dtype, np.floating):
        raise ValidationError(f"output must have a floating-point dtype, got {output.dtype}")
    if not output.flags.writeable:
        raise ValidationError("output buffer is read-only")


def active_degrees(lmax: int, m: int, mask: Optional[DegreeMask] = None) -> tuple[int, ...]:
    """Degrees ``l`` in ``[|m|, lmax]`` that take part in the kernel.

    ``mask`` entries for ``l < |m|`` are ignored; order-m functions of those
    degrees do not exist.
    """

    start = abs(int(m))
    if mask is None:
        return tuple(range(start, lmax + 1))
    flags = np.asarray(mask, dtype=bool)
    if flags.ndim != 1 or flags.shape[0] != lmax + 1:
        raise ValidationError(
            f"degree mask must have length lmax + 1 = {lmax + 1}, got shape {flags.shape}"
        )
    return tuple(ell for ell in range(start, lmax + 1) if flags[ell])


def kernel_block(
    degrees: tuple[int, ...],
    m: int,
    theta0: float,
    *,
    quadrature: QuadratureProvider,
    basis: BasisEvaluator,
    lmax: int,
) -> Array:
    """Kernel restricted to ``degrees``, shape ``(len(degrees), len(degrees))``.

    The product matrix is formed once; its upper triangle is kept and
    mirrored so the result is symmetric bit-for-bit.
    """

    x, w = cap_nodes_and_weights(quadrature, 2 * lmax, theta0)
    nodes = jnp.asarray(x, dtype=jnp.float64)
    weights = jnp.asarray(w, dtype=jnp.float64)

    table = legendre_table(basis, degrees, int(m), nodes)
    azimuthal = 2.0 * math.pi if m == 0 else math.pi
    scale = azimuthal / float(basis.sphere_norm)

    gram = (table * weights[None, :]) @ table.T
    upper = jnp.triu(gram)
    return scale * (upper + jnp.triu(gram, k=1).T)


def compute_kernel(
    output: np.ndarray,
    lmax: int,
    m: int,
    theta0: float,
    mask: Optional[DegreeMask] = None,
    *,
    config: KernelConfig = KernelConfig(),
    quadrature: Optional[QuadratureProvider] = None,
    basis: Optional[BasisEvaluator] = None,
) -> None:
    """Fill ``output[:lmax+1, :lmax+1]`` with the cap concentration kernel.

    Parameters
    ----------
    output:
        Caller-owned float buffer of shape at least ``(lmax+1, lmax+1)``.
        Rows and columns are indexed by degree. Only the leading block is
        written; inactive degrees get exact zeros.
    lmax:
        Bandwidth (largest degree).
    m:
        Angular order, ``|m| <= lmax``.
    theta0:
        Angular radius of the cap in radians, ``0 < theta0 <= pi``.
    mask:
        Optional booleans of length ``lmax + 1`` selecting active degrees.
    config:
        Basis conventions for the default evaluator.
    quadrature, basis:
        Collaborators; default to Gauss-Legendre nodes and
        :class:`NormalizedLegendre` built from ``config``.

    Raises
    ------
    ValidationError
        Output buffer too small, not floating-point or not writable, or mask
        of wrong length.
    BoundsError
        ``lmax < 0``, ``|m| > lmax``, ``theta0`` outside ``(0, pi]`` or
        ``config.csphase`` not in ``{1, -1}``.
    AllocationError
        Work arrays could not be allocated, on the host (``MemoryError``) or
        on the JAX device (``RESOURCE_EXHAUSTED``).
    CollaboratorIOError
        A collaborator failed to load a resource.

    On failure ``output`` is left untouched.
    """

    lmax = int(lmax)
    m = int(m)
    theta0 = float(theta0)
    _check_output(output, lmax)
    _check_kernel_bounds(lmax, m, theta0)
    degrees = active_degrees(lmax, m, mask)

    if quadrature is None:
        quadrature = GaussLegendreQuadrature()
    if basis is None:
        basis = NormalizedLegendre(config.normalization, csphase=config.csphase)

    try:
        block = np.asarray(
            kernel_block(degrees, m, theta0, quadrature=quadrature, basis=basis, lmax=lmax),
            dtype=np.float64,
        )
        full = np.zeros((lmax + 1, lmax + 1), dtype=np.float64)
    except SlepcapError:
        raise
    except MemoryError as exc:
        raise AllocationError(f"could not allocate kernel workspace for lmax = {lmax}") from exc
    except RuntimeError as exc:
        # XLA reports device out-of-memory as a RuntimeError subclass.
        if "RESOURCE_EXHAUSTED" not in str(exc):
            raise
        raise AllocationError(f"could not allocate kernel workspace for lmax = {lmax}") from exc
    except OSError as exc:
        raise CollaboratorIOError(f"kernel collaborator failed: {exc}") from exc

    if degrees:
        index = np.asarray(degrees)
        full[np.ix_(index, index)] = block
    output[: lmax + 1, : lmax + 1] = full


__all__ = ["DegreeMask", "active_degrees", "compute_kernel", "kernel_block"]
