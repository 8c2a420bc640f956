"""LAPACK-backed primitives for dense symmetric eigenproblems.

The eigensolver splits ``A = Z L Z^T`` into ``A = Q T Q^T`` (orthogonal
tridiagonalization) and ``T = S L S^T`` (tridiagonal eigenproblem), so
that ``Z = Q S``. The factorizations themselves are LAPACK's:

- ``?sytrd`` reduces A to T and leaves Q as packed Householder reflectors;
- ``?stemr`` (MRRR) diagonalizes T, optionally only for an index range;
- ``?ormqr`` on the reflector block applies Q to S, which is exactly what
  ``?ormtr`` does for lower-triangle storage.

``?sytrd`` always runs on the lower triangle here. The upper triangle of A
is the lower triangle of ``A^T``, so upper-triangle input is transposed
into the private work copy instead of being handled by a second code path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, Union, runtime_checkable

import numpy as np
from jaxtyping import ArrayLike
from scipy.linalg import get_lapack_funcs

from .config import Triangle, normalize_triangle
from .errors import BoundsError, NumericalFailure, NumericalStage, ValidationError


class PackedOrthogonalFactor:
    """Opaque handle on the orthogonal factor Q of a tridiagonalization.

    Q is stored as LAPACK's packed Householder reflectors and is only usable
    through :meth:`LapackLinearAlgebra.apply_orthogonal_factor`.
    """

    __slots__ = ("_reflectors", "_tau", "_order")

    def __init__(
        self: "PackedOrthogonalFactor",
        reflectors: np.ndarray,
        tau: np.ndarray,
        order: int,
    ) -> None:
        self._reflectors = reflectors
        self._tau = tau
        self._order = int(order)

    @property
    def order(self: "PackedOrthogonalFactor") -> int:
        return self._order

    def __repr__(self: "PackedOrthogonalFactor") -> str:
        return f"PackedOrthogonalFactor(order={self._order})"


@dataclass(frozen=True)
class TridiagonalForm:
    """``A = Q T Q^T`` with T given by its diagonal and off-diagonal."""

    factor: PackedOrthogonalFactor
    diagonal: np.ndarray
    off_diagonal: np.ndarray


@runtime_checkable
class LinearAlgebra(Protocol):
    """Primitives the eigensolver delegates to."""

    def tridiagonalize(
        self: "LinearAlgebra",
        matrix: ArrayLike,
        n: int,
        triangle: Union[Triangle, str],
    ) -> TridiagonalForm: ...

    def eigen_range(
        self: "LinearAlgebra",
        diagonal: np.ndarray,
        off_diagonal: np.ndarray,
        select: Optional[Tuple[int, int]] = None,
    ) -> Tuple[np.ndarray, np.ndarray]: ...

    def apply_orthogonal_factor(
        self: "LinearAlgebra",
        factor: PackedOrthogonalFactor,
        vectors: np.ndarray,
    ) -> np.ndarray: ...


def _workspace_size(value: ArrayLike) -> int:
    return max(1, int(np.ceil(np.real(np.ravel(np.asarray(value))[0]))))


class LapackLinearAlgebra:
    """:class:`LinearAlgebra` implementation on scipy's LAPACK bindings."""

    def tridiagonalize(
        self: "LapackLinearAlgebra",
        matrix: ArrayLike,
        n: int,
        triangle: Union[Triangle, str] = Triangle.UPPER,
    ) -> TridiagonalForm:
        """Reduce the leading ``n x n`` block of ``matrix`` to tridiagonal form.

        Only the triangle named by ``triangle`` is read; ``matrix`` itself is
        never written.
        """

        n = int(n)
        triangle = normalize_triangle(triangle)
        block = np.asarray(matrix)[:n, :n]
        if block.shape != (n, n):
            raise ValidationError(f"matrix must be at least ({n}, {n}), got {np.shape(matrix)}")
        source = block.T if triangle is Triangle.UPPER else block
        work = np.array(source, dtype=np.float64, order="F", copy=True)

        if n == 1:
            empty = np.zeros(0, dtype=np.float64)
            return TridiagonalForm(PackedOrthogonalFactor(work, empty, 1), work[0].copy(), empty)

        sytrd, sytrd_lwork = get_lapack_funcs(("sytrd", "sytrd_lwork"), (work,))
        lwork, info = sytrd_lwork(n, lower=1)
        if info != 0:
            raise NumericalFailure(
                NumericalStage.TRIDIAGONALIZATION,
                "workspace query for ?sytrd failed",
                info=int(info),
            )
        packed, d, e, tau, info = sytrd(
            work, lower=1, lwork=_workspace_size(lwork), overwrite_a=1
        )
        if info != 0:
            raise NumericalFailure(
                NumericalStage.TRIDIAGONALIZATION,
                "problem tri-diagonalizing input matrix",
                info=int(info),
            )
        return TridiagonalForm(
            PackedOrthogonalFactor(packed, np.array(tau, dtype=np.float64), n),
            np.array(d, dtype=np.float64),
            np.array(e, dtype=np.float64),
        )

    def eigen_range(
        self: "LapackLinearAlgebra",
        diagonal: np.ndarray,
        off_diagonal: np.ndarray,
        select: Optional[Tuple[int, int]] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Eigenpairs of the tridiagonal matrix in ascending order.

        ``select=(il, iu)`` restricts the result to the 1-based, inclusive
        index range ``il..iu`` of the ascending spectrum. Eigenvectors are the
        columns of the second return value.
        """

        d = np.array(diagonal, dtype=np.float64)
        n = d.shape[0]
        if select is None:
            il, iu = 1, n
        else:
            il, iu = int(select[0]), int(select[1])
            if not 1 <= il <= iu <= n:
                raise BoundsError(f"eigenvalue index range must satisfy 1 <= il <= iu <= {n}")
        expected = iu - il + 1

        if n == 1:
            return d.copy(), np.ones((1, 1), dtype=np.float64)

        # ?stemr wants an off-diagonal of length n.
        e = np.zeros(n, dtype=np.float64)
        e[: n - 1] = off_diagonal
        range_code = 0 if select is None else 2

        stemr, stemr_lwork = get_lapack_funcs(("stemr", "stemr_lwork"), (d, e))
        lwork, liwork, info = stemr_lwork(d, e, range_code, 0.0, 0.0, il, iu, compute_v=1)
        if info != 0:
            raise NumericalFailure(
                NumericalStage.DIAGONALIZATION,
                "workspace query for ?stemr failed",
                info=int(info),
            )
        count, w, z, info = stemr(
            d, e, range_code, 0.0, 0.0, il, iu, compute_v=1, lwork=lwork, liwork=liwork
        )
        if info != 0:
            raise NumericalFailure(
                NumericalStage.DIAGONALIZATION,
                "problem determining eigenvalues and eigenvectors of tridiagonal matrix",
                info=int(info),
            )
        if int(count) != expected:
            raise NumericalFailure(
                NumericalStage.DIAGONALIZATION,
                f"?stemr returned {int(count)} eigenpairs, expected {expected}",
            )
        return np.array(w[:expected], dtype=np.float64), np.array(z[:, :expected], dtype=np.float64)

    def apply_orthogonal_factor(
        self: "LapackLinearAlgebra",
        factor: PackedOrthogonalFactor,
        vectors: np.ndarray,
    ) -> np.ndarray:
        """Return ``Q @ vectors`` without forming Q."""

        n = factor.order
        z = np.array(vectors, dtype=np.float64, order="F", copy=True)
        if z.ndim != 2 or z.shape[0] != n:
            raise ValidationError(f"vectors must have {n} rows, got shape {z.shape}")
        if n == 1:
            return z

        # Q = diag(1, Q'), where Q' is the product of the n-1 reflectors held
        # below the first subdiagonal.
        reflectors = np.asfortranarray(factor._reflectors[1:, : n - 1])
        tau = factor._tau
        tail = np.asfortranarray(z[1:, :])
        (ormqr,) = get_lapack_funcs(("ormqr",), (reflectors,))
        _, work, info = ormqr("L", "N", reflectors, tau, tail, -1)
        if info != 0:
            raise NumericalFailure(
                NumericalStage.BACK_TRANSFORM,
                "workspace query for ?ormqr failed",
                info=int(info),
            )
        cq, _, info = ormqr(
            "L", "N", reflectors, tau, tail, _workspace_size(work), overwrite_c=1
        )
        if info != 0:
            raise NumericalFailure(
                NumericalStage.BACK_TRANSFORM,
                "problem multiplying matrices",
                info=int(info),
            )
        z[1:, :] = cq
        return z


__all__ = [
    "LapackLinearAlgebra",
    "LinearAlgebra",
    "PackedOrthogonalFactor",
    "TridiagonalForm",
]
