"""Policy-aware facade over kernel assembly and the symmetric eigensolver."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Union
import warnings

import numpy as np
from jaxtyping import ArrayLike

from .config import (
    EigenConfig,
    ErrorPolicy,
    KernelConfig,
    Triangle,
    normalize_policy,
    normalize_triangle,
)
from .eigen import solve_symmetric_eigen
from .errors import BoundsError, SlepcapError, Status
from .kernel import DegreeMask, active_degrees, compute_kernel
from .linalg import LinearAlgebra
from .operators.legendre import BasisEvaluator
from .operators.quadrature import QuadratureProvider


@dataclass(frozen=True)
class CapWindows:
    """Concentration windows of one order for a spherical cap.

    ``eigenvectors[:, i]`` holds the degree-indexed coefficients (length
    ``lmax + 1``) of the window with concentration ``eigenvalues[i]``.
    """

    status: Status
    lmax: int
    m: int
    theta0: float
    kernel: np.ndarray
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    degrees: tuple[int, ...]

    @property
    def shannon_number(self: "CapWindows") -> float:
        """Sum of all concentration eigenvalues of this order (kernel trace)."""
        if self.kernel.size == 0:
            return 0.0
        return float(np.trace(self.kernel))


def _pop_legacy_eigen_overrides(
    *,
    triangle: Optional[Union[Triangle, str]],
    k: Optional[int],
    legacy_kwargs: dict[str, Any],
) -> tuple[Optional[Union[Triangle, str]], Optional[int], bool]:
    used = False
    legacy_ul = legacy_kwargs.pop("ul", None)
    if legacy_ul is not None:
        triangle = str(legacy_ul)
        used = True
    legacy_k = legacy_kwargs.pop("K", None)
    if legacy_k is not None:
        k = int(legacy_k)
        used = True
    return triangle, k, used


class CapWindowSolver:
    """Kernel assembly and eigendecomposition with a caller-chosen error policy.

    With ``policy="raise"`` (default) failures propagate as
    :class:`~slepcap.errors.SlepcapError` subclasses. With
    ``policy="status"`` the same failures are returned as
    :class:`~slepcap.errors.Status` codes and the caller decides what to do.
    """

    def __init__(
        self: "CapWindowSolver",
        *,
        policy: Union[ErrorPolicy, str] = ErrorPolicy.RAISE,
        kernel: KernelConfig = KernelConfig(),
        eigen: EigenConfig = EigenConfig(),
        quadrature: Optional[QuadratureProvider] = None,
        basis: Optional[BasisEvaluator] = None,
        linalg: Optional[LinearAlgebra] = None,
    ) -> None:
        self.policy = normalize_policy(policy)
        self.kernel = kernel
        self.eigen = replace(eigen, triangle=normalize_triangle(eigen.triangle))
        self.quadrature = quadrature
        self.basis = basis
        self.linalg = linalg

    def _run(self: "CapWindowSolver", call: Callable[[], Any]) -> Status:
        try:
            call()
        except SlepcapError as exc:
            if self.policy is ErrorPolicy.RAISE:
                raise
            return exc.status
        return Status.OK

    def compute_kernel(
        self: "CapWindowSolver",
        output: np.ndarray,
        lmax: int,
        m: int,
        theta0: float,
        mask: Optional[DegreeMask] = None,
    ) -> Status:
        """Fill ``output`` with the cap kernel; see :func:`slepcap.kernel.compute_kernel`."""

        return self._run(
            lambda: compute_kernel(
                output,
                lmax,
                m,
                theta0,
                mask,
                config=self.kernel,
                quadrature=self.quadrature,
                basis=self.basis,
            )
        )

    def solve_symmetric_eigen(
        self: "CapWindowSolver",
        matrix: ArrayLike,
        n: int,
        eigenvalues: np.ndarray,
        eigenvectors: np.ndarray,
        *,
        triangle: Optional[Union[Triangle, str]] = None,
        k: Optional[int] = None,
        **legacy_kwargs: Any,
    ) -> Status:
        """Top eigenpairs of ``matrix``; see :func:`slepcap.eigen.solve_symmetric_eigen`.

        ``triangle`` and ``k`` default to the solver's :class:`EigenConfig`.
        """

        legacy_kwargs = dict(legacy_kwargs)
        triangle, k, legacy_used = _pop_legacy_eigen_overrides(
            triangle=triangle, k=k, legacy_kwargs=legacy_kwargs
        )
        if legacy_used:
            warnings.warn(
                "The 'ul' and 'K' keywords are deprecated in "
                "slepcap.CapWindowSolver.solve_symmetric_eigen. Use 'triangle' and 'k'.",
                DeprecationWarning,
                stacklevel=2,
            )
        if legacy_kwargs:
            unknown = ", ".join(sorted(str(key) for key in legacy_kwargs.keys()))
            raise TypeError(f"Unknown slepcap.CapWindowSolver.solve_symmetric_eigen kwargs: {unknown}")

        chosen_triangle = self.eigen.triangle if triangle is None else triangle
        chosen_k = self.eigen.k if k is None else k
        return self._run(
            lambda: solve_symmetric_eigen(
                matrix,
                n,
                eigenvalues,
                eigenvectors,
                triangle=chosen_triangle,
                k=chosen_k,
                linalg=self.linalg,
            )
        )

    def cap_windows(
        self: "CapWindowSolver",
        lmax: int,
        m: int,
        theta0: float,
        *,
        k: Optional[int] = None,
        mask: Optional[DegreeMask] = None,
    ) -> CapWindows:
        """Kernel, concentration eigenvalues and windows for one order.

        The eigenproblem is solved on the active degrees only, so degrees
        below ``|m|`` or masked out never show up as spurious zero-concentration
        windows. ``k`` (default: all) must lie in ``[1, number of active
        degrees]``. Under the status policy a failure returns an instance
        with that status and empty arrays.
        """

        lmax = int(lmax)
        m = int(m)
        theta0 = float(theta0)
        windows: dict[str, Any] = {}

        def _build() -> None:
            if lmax < 0:
                raise BoundsError(f"lmax must be >= 0, got {lmax}")
            kernel = np.zeros((lmax + 1, lmax + 1), dtype=np.float64)
            compute_kernel(
                kernel,
                lmax,
                m,
                theta0,
                mask,
                config=self.kernel,
                quadrature=self.quadrature,
                basis=self.basis,
            )
            degrees = active_degrees(lmax, m, mask)
            n = len(degrees)
            if n == 0:
                raise BoundsError("the degree mask leaves no active degree")
            count = n if k is None else int(k)
            if count < 1 or count > n:
                raise BoundsError(
                    f"k must lie between 1 and the number of active degrees ({n}), got {count}"
                )
            index = np.asarray(degrees)
            values = np.zeros(count, dtype=np.float64)
            vectors = np.zeros((n, count), dtype=np.float64)
            solve_symmetric_eigen(
                kernel[np.ix_(index, index)],
                n,
                values,
                vectors,
                triangle=self.eigen.triangle,
                k=count,
                linalg=self.linalg,
            )
            full_vectors = np.zeros((lmax + 1, count), dtype=np.float64)
            full_vectors[index, :] = vectors
            windows.update(
                kernel=kernel,
                eigenvalues=values,
                eigenvectors=full_vectors,
                degrees=degrees,
            )

        status = self._run(_build)
        if status is not Status.OK:
            return CapWindows(
                status=status,
                lmax=lmax,
                m=m,
                theta0=theta0,
                kernel=np.zeros((0, 0), dtype=np.float64),
                eigenvalues=np.zeros(0, dtype=np.float64),
                eigenvectors=np.zeros((0, 0), dtype=np.float64),
                degrees=(),
            )
        return CapWindows(status=Status.OK, lmax=lmax, m=m, theta0=theta0, **windows)


__all__ = ["CapWindowSolver", "CapWindows"]
