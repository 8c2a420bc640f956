"""Status codes and the exception taxonomy shared by all slepcap entry points.

Every failure raised by the kernel builder or the eigensolver is a
:class:`SlepcapError`. Each subclass carries the :class:`Status` it maps to,
so callers that prefer return codes can translate exceptions without
inspecting messages. The integer values of :class:`Status` are stable and
safe to persist or compare across releases.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Optional, Union


class Status(IntEnum):
    """Outcome of a status-returning call."""

    OK = 0
    INVALID_DIMENSIONS = 1
    INVALID_BOUNDS = 2
    ALLOCATION_FAILURE = 3
    IO_FAILURE = 4
    NUMERICAL_FAILURE = 5


class NumericalStage(str, Enum):
    """LAPACK stage that reported a failure."""

    TRIDIAGONALIZATION = "tridiagonalization"
    DIAGONALIZATION = "diagonalization"
    BACK_TRANSFORM = "back_transform"


class SlepcapError(Exception):
    """Base class for all slepcap failures."""

    status: Status = Status.NUMERICAL_FAILURE


class ValidationError(SlepcapError, ValueError):
    """Malformed array shapes or buffer sizes."""

    status = Status.INVALID_DIMENSIONS


class BoundsError(SlepcapError, ValueError):
    """Scalar parameter outside its admissible range."""

    status = Status.INVALID_BOUNDS


class AllocationError(SlepcapError, MemoryError):
    """Workspace could not be allocated."""

    status = Status.ALLOCATION_FAILURE


class CollaboratorIOError(SlepcapError, OSError):
    """A quadrature or basis collaborator failed to load a resource."""

    status = Status.IO_FAILURE


class NumericalFailure(SlepcapError, ArithmeticError):
    """The delegated linear-algebra primitive reported an internal fault.

    Never retried. ``stage`` tells which LAPACK step failed and ``info`` is
    the routine's ``info`` return value, when one exists.
    """

    status = Status.NUMERICAL_FAILURE

    def __init__(
        self: "NumericalFailure",
        stage: Union[NumericalStage, str],
        message: str,
        *,
        info: Optional[int] = None,
    ) -> None:
        detail = message if info is None else f"{message} (info = {info})"
        super().__init__(detail)
        self.stage = NumericalStage(stage)
        self.info = info


def status_for(exc: BaseException) -> Status:
    """Map an exception raised by a slepcap call onto its :class:`Status`.

    Exceptions outside the slepcap taxonomy are re-raised: they signal a bug
    rather than a contract violation.
    """

    if isinstance(exc, SlepcapError):
        return exc.status
    raise exc


__all__ = [
    "AllocationError",
    "BoundsError",
    "CollaboratorIOError",
    "NumericalFailure",
    "NumericalStage",
    "SlepcapError",
    "Status",
    "ValidationError",
    "status_for",
]
