"""Opt-in runtime type checking.

Setting ``SLEPCAP_RUNTIME_TYPECHECK`` to a truthy value before the first
``import slepcap`` makes jaxtyping instrument every slepcap submodule with
beartype, so the annotated entry points check their arguments on each call.
The hook is installed at most once per process.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

ENV_VAR = "SLEPCAP_RUNTIME_TYPECHECK"

_FALSY = frozenset({"", "0", "false", "no", "off"})
_hook: Optional[Any] = None


def runtime_typecheck_requested(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Whether ``environ`` (default: ``os.environ``) asks for runtime checks."""
    source = os.environ if environ is None else environ
    return source.get(ENV_VAR, "0").strip().lower() not in _FALSY


def enable_runtime_typecheck() -> bool:
    """Install the jaxtyping import hook if requested; return whether it is active."""
    global _hook

    if _hook is None:
        if not runtime_typecheck_requested():
            return False
        from jaxtyping import install_import_hook

        _hook = install_import_hook(("slepcap",), typechecker="beartype.beartype")
    return True


__all__ = ["ENV_VAR", "enable_runtime_typecheck", "runtime_typecheck_requested"]
