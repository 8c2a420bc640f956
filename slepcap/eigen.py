"""Eigenvalues and eigenvectors of a real symmetric matrix, largest first.

``solve_symmetric_eigen`` factors the leading ``n x n`` block of the input
as

    A = Z L Z^T = Q (S L S^T) Q^T

by (1) tridiagonalizing ``A = Q T Q^T`` and (2) diagonalizing
``T = S L S^T``, then back-transforms ``Z = Q S``. When only the ``k``
largest eigenpairs are wanted, step (2) asks the tridiagonal solver for the
index range ``n-k+1..n`` directly instead of the whole spectrum.

The tridiagonal solver reports eigenvalues in ascending order; outputs are
reversed so that ``eigenvalues[0]`` is the largest and ``eigenvectors[:, i]``
belongs to ``eigenvalues[i]``.
"""

from __future__ import annotations

from typing import Optional, Union

import numpy as np
from jaxtyping import ArrayLike

from .config import Triangle, normalize_triangle
from .dtypes import as_real
from .errors import (
    AllocationError,
    BoundsError,
    NumericalFailure,
    NumericalStage,
    SlepcapError,
    ValidationError,
)
from .linalg import LapackLinearAlgebra, LinearAlgebra


def _check_matrix(matrix: np.ndarray, n: int) -> None:
    if matrix.ndim != 2:
        raise ValidationError(f"matrix must be two-dimensional, got {matrix.ndim} dimensions")
    rows, cols = matrix.shape
    if rows < n or cols < n:
        raise ValidationError(
            f"matrix must be dimensioned as ({n}, {n}); "
            f"input array is dimensioned as ({rows}, {cols})"
        )


def _check_count(n: int, k: Optional[int]) -> int:
    if n < 1:
        raise BoundsError(f"matrix order n must be >= 1, got {n}")
    if k is None:
        return n
    k = int(k)
    if k < 1 or k > n:
        raise BoundsError(
            f"the number of eigenvalues to output must be between 1 and n; n = {n}, k = {k}"
        )
    return k


def _check_outputs(eigenvalues: np.ndarray, eigenvectors: np.ndarray, n: int, count: int) -> None:
    if not isinstance(eigenvalues, np.ndarray) or eigenvalues.ndim != 1:
        raise ValidationError("eigenvalues must be a one-dimensional numpy array")
    if eigenvalues.shape[0] < count:
        raise ValidationError(
            f"eigenvalues must be dimensioned as ({count}); "
            f"input array is dimensioned as ({eigenvalues.shape[0]})"
        )
    if not isinstance(eigenvectors, np.ndarray) or eigenvectors.ndim != 2:
        raise ValidationError("eigenvectors must be a two-dimensional numpy array")
    rows, cols = eigenvectors.shape
    if rows < n or cols < count:
        raise ValidationError(
            f"eigenvectors must be dimensioned as ({n}, {count}); "
            f"input array is dimensioned as ({rows}, {cols})"
        )
    for name, buffer in (("eigenvalues", eigenvalues), ("eigenvectors", eigenvectors)):
        if not np.issubdtype(buffer.dtype, np.floating):
            raise ValidationError(f"{name} must have a floating-point dtype, got {buffer.dtype}")
    if not (eigenvalues.flags.writeable and eigenvectors.flags.writeable):
        raise ValidationError("output buffers must be writable")


def solve_symmetric_eigen(
    matrix: ArrayLike,
    n: int,
    eigenvalues: np.ndarray,
    eigenvectors: np.ndarray,
    *,
    triangle: Union[Triangle, str] = Triangle.UPPER,
    k: Optional[int] = None,
    linalg: Optional[LinearAlgebra] = None,
) -> int:
    """Fill ``eigenvalues``/``eigenvectors`` with the top eigenpairs of ``matrix``.

    Parameters
    ----------
    matrix:
        Symmetric matrix; only the chosen triangle of the leading ``n x n``
        block is read and the array is never modified.
    n:
        Order of the matrix.
    eigenvalues:
        Floating-point output, length >= ``k`` (or ``n``). Receives
        eigenvalues in descending order.
    eigenvectors:
        Floating-point output, shape >= ``(n, k)`` (or ``(n, n)``). Column
        ``i`` receives the unit-norm eigenvector of ``eigenvalues[i]``.
    triangle:
        ``"upper"``/``"U"`` (default) or ``"lower"``/``"L"``.
    k:
        Only compute the ``k`` largest eigenpairs, ``1 <= k <= n``.
    linalg:
        Linear-algebra primitives; defaults to :class:`LapackLinearAlgebra`.

    Returns
    -------
    int
        Number of eigenpairs written (``k`` or ``n``). Remaining entries of
        both buffers are zeroed.

    Raises
    ------
    ValidationError, BoundsError, AllocationError, NumericalFailure
        Both output buffers are untouched when any of these is raised.
    """

    n = int(n)
    triangle = normalize_triangle(triangle)
    source = np.asarray(matrix)
    _check_matrix(source, n)
    count = _check_count(n, k)
    _check_outputs(eigenvalues, eigenvectors, n, count)

    if linalg is None:
        linalg = LapackLinearAlgebra()

    try:
        work = as_real(source[:n, :n])
        form = linalg.tridiagonalize(work, n, triangle)
        select = None if k is None else (n - count + 1, n)
        w, s = linalg.eigen_range(form.diagonal, form.off_diagonal, select)
        z = linalg.apply_orthogonal_factor(form.factor, s)
    except SlepcapError:
        raise
    except MemoryError as exc:
        raise AllocationError(f"problem allocating eigensolver workspace for n = {n}") from exc

    w = np.asarray(w, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    if w.shape != (count,) or z.shape != (n, count):
        raise NumericalFailure(
            NumericalStage.DIAGONALIZATION,
            f"expected {count} eigenpairs of order {n}, got values {w.shape} and vectors {z.shape}",
        )

    eigenvalues[...] = 0.0
    eigenvectors[...] = 0.0
    eigenvalues[:count] = w[::-1]
    eigenvectors[:n, :count] = z[:, ::-1]
    return count


__all__ = ["solve_symmetric_eigen"]
