"""slepcap: concentration windows of spherical caps (Slepian functions)."""

from ._typecheck import enable_runtime_typecheck

enable_runtime_typecheck()

from .dtypes import enable_float64

enable_float64()

from .config import (
    EigenConfig,
    ErrorPolicy,
    KernelConfig,
    Normalization,
    Triangle,
)
from .errors import (
    AllocationError,
    BoundsError,
    CollaboratorIOError,
    NumericalFailure,
    NumericalStage,
    SlepcapError,
    Status,
    ValidationError,
)
from .eigen import solve_symmetric_eigen
from .kernel import compute_kernel
from .solver import CapWindowSolver, CapWindows

__all__ = [
    "AllocationError",
    "BoundsError",
    "CapWindowSolver",
    "CapWindows",
    "CollaboratorIOError",
    "EigenConfig",
    "ErrorPolicy",
    "KernelConfig",
    "Normalization",
    "NumericalFailure",
    "NumericalStage",
    "SlepcapError",
    "Status",
    "Triangle",
    "ValidationError",
    "compute_kernel",
    "solve_symmetric_eigen",
]
