"""Quadrature and basis-function collaborators of the kernel builder."""

from . import legendre, quadrature

__all__ = [
    "legendre",
    "quadrature",
]
