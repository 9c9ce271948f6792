"""
Top-level clxor package exports (lightweight).

pyopencl is only imported when a pipeline symbol is first accessed, so
`import clxor` works on machines without an OpenCL runtime.
"""
from __future__ import annotations

from typing import Any

__version__ = "0.1.0"

__all__ = [
  "run_pipeline",
  "RunConfig",
  "RunResult",
  "verify_xor",
]


def __getattr__(name: str) -> Any:  # lazy attribute loader
  if name in ("run_pipeline", "RunResult"):
    from .pipeline import RunResult, run_pipeline

    globals()["run_pipeline"] = run_pipeline
    globals()["RunResult"] = RunResult
    return globals()[name]
  if name == "RunConfig":
    from .config import RunConfig

    globals()["RunConfig"] = RunConfig
    return RunConfig
  if name == "verify_xor":
    from .validation import verify_xor

    globals()["verify_xor"] = verify_xor
    return verify_xor
  raise AttributeError(f"module 'clxor' has no attribute {name!r}")
