"""Working precision for slepcap.

Kernel entries are concentration ratios compared against eigensolver
tolerances around 1e-10, so everything runs in double precision. JAX
defaults to 32-bit floats; :func:`enable_float64` flips the global switch
once, on package import.
"""

import jax
import numpy as np
from jaxtyping import ArrayLike

REAL_DTYPE = np.float64


def enable_float64() -> bool:
    """Turn on 64-bit JAX arrays. Returns the resulting setting."""
    if not jax.config.jax_enable_x64:
        jax.config.update("jax_enable_x64", True)
    return bool(jax.config.jax_enable_x64)


def as_real(x: ArrayLike) -> np.ndarray:
    """Copy ``x`` into a fresh float64 numpy array."""
    return np.array(x, dtype=REAL_DTYPE, copy=True)


__all__ = ["REAL_DTYPE", "as_real", "enable_float64"]
