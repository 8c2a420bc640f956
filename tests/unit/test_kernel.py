"""Kernel assembly: symmetry, limits, masks and the error contract."""

import math

import numpy as np
import pytest

from slepcap import KernelConfig, Normalization, compute_kernel
from slepcap.errors import (
    AllocationError,
    BoundsError,
    CollaboratorIOError,
    Status,
    ValidationError,
)
from slepcap.kernel import active_degrees
from slepcap.operators.legendre import NormalizedLegendre
from slepcap.operators.quadrature import GaussLegendreQuadrature


def _kernel(lmax: int, m: int, theta0: float, **kwargs) -> np.ndarray:
    out = np.zeros((lmax + 1, lmax + 1))
    compute_kernel(out, lmax, m, theta0, **kwargs)
    return out


def test_hemisphere_order_zero_matches_closed_form() -> None:
    dm = _kernel(2, 0, math.pi / 2)
    expected = np.array(
        [
            [0.5, math.sqrt(3.0) / 4.0, 0.0],
            [math.sqrt(3.0) / 4.0, 0.5, math.sqrt(15.0) / 16.0],
            [0.0, math.sqrt(15.0) / 16.0, 0.5],
        ]
    )
    assert np.allclose(dm, expected, rtol=0.0, atol=1e-14)


@pytest.mark.parametrize(
    "lmax,m,theta0",
    [(0, 0, 0.3), (5, 0, 1.0), (7, 3, 0.4), (7, -3, 2.5), (12, 12, math.pi / 6)],
)
def test_kernel_is_exactly_symmetric(lmax: int, m: int, theta0: float) -> None:
    dm = _kernel(lmax, m, theta0)
    assert np.array_equal(dm, dm.T)


@pytest.mark.parametrize("m", [0, 1, 4])
def test_full_sphere_kernel_is_identity_on_active_degrees(m: int) -> None:
    lmax = 6
    dm = _kernel(lmax, m, math.pi)
    expected = np.diag([1.0 if ell >= m else 0.0 for ell in range(lmax + 1)])
    assert np.allclose(dm, expected, rtol=0.0, atol=1e-12)


def test_vanishing_cap_kernel_vanishes() -> None:
    dm = _kernel(10, 2, 1e-6)
    assert np.max(np.abs(dm)) < 1e-9


def test_orthonormalized_basis_gives_same_kernel() -> None:
    four_pi = _kernel(6, 2, 0.8)
    ortho = _kernel(6, 2, 0.8, config=KernelConfig(normalization=Normalization.ORTHO))
    assert np.allclose(four_pi, ortho, rtol=1e-13, atol=1e-15)


def test_condon_shortley_phase_does_not_change_kernel() -> None:
    plain = _kernel(5, 3, 1.2)
    phased = _kernel(5, 3, 1.2, config=KernelConfig(csphase=-1))
    assert np.array_equal(plain, phased)


def test_negative_order_matches_positive_order() -> None:
    assert np.array_equal(_kernel(6, -2, 0.9), _kernel(6, 2, 0.9))


def test_diagonal_is_a_concentration_ratio() -> None:
    dm = _kernel(9, 1, 1.1)
    diag = np.diag(dm)[1:]
    assert np.all(diag > 0.0)
    assert np.all(diag < 1.0)


def test_mask_zero_fills_inactive_degrees() -> None:
    lmax, m = 6, 1
    mask = [True, True, False, True, True, False, True]
    out = np.full((lmax + 1, lmax + 1), np.nan)
    compute_kernel(out, lmax, m, 0.7, mask)

    inactive = [0, 2, 5]
    for ell in inactive:
        assert np.all(out[ell, :] == 0.0)
        assert np.all(out[:, ell] == 0.0)

    active = [1, 3, 4, 6]
    unmasked = _kernel(lmax, m, 0.7)
    assert np.array_equal(out[np.ix_(active, active)], unmasked[np.ix_(active, active)])


def test_mask_accepts_numpy_booleans() -> None:
    mask = np.array([True, False, True, True])
    assert active_degrees(3, 0, mask) == (0, 2, 3)
    assert active_degrees(3, 2, mask) == (2, 3)
    assert active_degrees(3, 1) == (1, 2, 3)


def test_only_leading_block_of_larger_buffer_is_written() -> None:
    out = np.full((6, 7), -3.0)
    compute_kernel(out, 3, 0, 1.0)
    assert np.all(out[4:, :] == -3.0)
    assert np.all(out[:, 4:] == -3.0)
    assert np.all(np.isfinite(out[:4, :4]))


def test_kernel_is_deterministic() -> None:
    assert np.array_equal(_kernel(8, 2, 0.6), _kernel(8, 2, 0.6))


def test_output_too_small_raises_validation_error_and_leaves_buffer() -> None:
    out = np.full((3, 4), np.nan)
    with pytest.raises(ValidationError) as excinfo:
        compute_kernel(out, 3, 0, 1.0)
    assert excinfo.value.status is Status.INVALID_DIMENSIONS
    assert np.all(np.isnan(out))

    with pytest.raises(ValidationError):
        compute_kernel(np.zeros(16), 3, 0, 1.0)


def test_read_only_output_is_rejected() -> None:
    out = np.zeros((3, 3))
    out.flags.writeable = False
    with pytest.raises(ValidationError):
        compute_kernel(out, 2, 0, 1.0)


@pytest.mark.parametrize("dtype", [np.int64, np.int32, bool, np.complex128])
def test_non_floating_output_is_rejected(dtype) -> None:
    out = np.ones((3, 3), dtype=dtype)
    before = out.copy()
    with pytest.raises(ValidationError):
        compute_kernel(out, 2, 0, 1.0)
    assert np.array_equal(out, before)


def test_single_precision_output_is_accepted() -> None:
    out = np.zeros((3, 3), dtype=np.float32)
    compute_kernel(out, 2, 0, math.pi / 2)
    assert out[0, 0] == pytest.approx(0.5)


@pytest.mark.parametrize("theta0", [0.0, -0.1, math.pi + 1e-9, 4.0, float("nan"), float("inf")])
def test_cap_angle_outside_range_raises_bounds_error(theta0: float) -> None:
    out = np.full((4, 4), 7.0)
    with pytest.raises(BoundsError):
        compute_kernel(out, 3, 0, theta0)
    assert np.all(out == 7.0)


def test_order_above_bandwidth_raises_bounds_error() -> None:
    out = np.zeros((4, 4))
    with pytest.raises(BoundsError) as excinfo:
        compute_kernel(out, 3, 4, 1.0)
    assert excinfo.value.status is Status.INVALID_BOUNDS
    with pytest.raises(BoundsError):
        compute_kernel(out, 3, -4, 1.0)
    with pytest.raises(BoundsError):
        compute_kernel(out, -1, 0, 1.0)


def test_mask_of_wrong_length_raises_validation_error() -> None:
    out = np.full((4, 4), 2.0)
    with pytest.raises(ValidationError):
        compute_kernel(out, 3, 0, 1.0, [True, True])
    assert np.all(out == 2.0)


class _RecordingBasis:
    def __init__(self) -> None:
        self.inner = NormalizedLegendre()
        self.calls: list[tuple[int, int]] = []

    @property
    def sphere_norm(self) -> float:
        return self.inner.sphere_norm

    def evaluate(self, degree, order, nodes):
        self.calls.append((degree, order))
        return self.inner.evaluate(degree, order, nodes)


class _RecordingQuadrature:
    def __init__(self) -> None:
        self.inner = GaussLegendreQuadrature()
        self.degrees: list[int] = []

    def nodes_and_weights(self, degree):
        self.degrees.append(degree)
        return self.inner.nodes_and_weights(degree)


def test_collaborators_are_queried_per_active_degree() -> None:
    basis = _RecordingBasis()
    quadrature = _RecordingQuadrature()
    out = np.zeros((6, 6))
    compute_kernel(
        out,
        5,
        2,
        0.9,
        [True, True, True, False, True, True],
        basis=basis,
        quadrature=quadrature,
    )
    assert quadrature.degrees == [10]
    assert sorted(basis.calls) == [(2, 2), (4, 2), (5, 2)]
    assert np.array_equal(out, _kernel(5, 2, 0.9, mask=[True, True, True, False, True, True]))


class _BrokenQuadrature:
    def nodes_and_weights(self, degree):
        raise OSError("quadrature table missing")


def test_collaborator_io_failure_is_mapped() -> None:
    out = np.full((3, 3), 5.0)
    with pytest.raises(CollaboratorIOError) as excinfo:
        compute_kernel(out, 2, 0, 1.0, quadrature=_BrokenQuadrature())
    assert excinfo.value.status is Status.IO_FAILURE
    assert np.all(out == 5.0)


@pytest.mark.parametrize("lmax, m", [(2400, 700), (2600, 1000)])
def test_full_sphere_identity_holds_at_high_order(lmax: int, m: int) -> None:
    mask = np.zeros(lmax + 1, dtype=bool)
    mask[lmax - 1 :] = True
    out = np.zeros((lmax + 1, lmax + 1))
    compute_kernel(out, lmax, m, math.pi, mask)
    block = out[lmax - 1 :, lmax - 1 :]
    assert np.allclose(block, np.eye(2), atol=1e-9)


def test_invalid_csphase_raises_bounds_error() -> None:
    out = np.full((3, 3), 4.0)
    with pytest.raises(BoundsError):
        compute_kernel(out, 2, 0, 1.0, config=KernelConfig(csphase=2))
    assert np.all(out == 4.0)


class _ExhaustedBasis(_RecordingBasis):
    def __init__(self, message: str) -> None:
        super().__init__()
        self.message = message

    def evaluate(self, degree, order, nodes):
        raise RuntimeError(self.message)


def test_device_out_of_memory_maps_to_allocation_error() -> None:
    out = np.full((3, 3), 6.0)
    basis = _ExhaustedBasis("RESOURCE_EXHAUSTED: Out of memory while trying to allocate")
    with pytest.raises(AllocationError) as excinfo:
        compute_kernel(out, 2, 0, 1.0, basis=basis)
    assert excinfo.value.status is Status.ALLOCATION_FAILURE
    assert np.all(out == 6.0)


def test_other_runtime_errors_propagate_unchanged() -> None:
    with pytest.raises(RuntimeError, match="compilation failed"):
        compute_kernel(np.zeros((3, 3)), 2, 0, 1.0, basis=_ExhaustedBasis("compilation failed"))
