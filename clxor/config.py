"""Central configuration for clxor.

Holds the fixed design constants of the XOR run together with a small
registry of CLXOR_* environment variables (typed accessors, introspection
for `clxor config list`). Problem size and iteration counts are constants,
not environment knobs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

# Design constants
PROBLEM_SIZE = 100 * 1000 * 1000
WORK_GROUP_SIZE = 128
DISPATCH_ITERATIONS = 20
READBACK_ITERATIONS = 20
KERNEL_NAME = "xor"

DEFAULT_KERNEL_PATH = Path(__file__).resolve().parent / "kernels" / "opencl" / "xor.cl"


@dataclass(frozen=True)
class RunConfig:
    n: int = PROBLEM_SIZE
    work_group_size: int = WORK_GROUP_SIZE
    dispatch_iterations: int = DISPATCH_ITERATIONS
    readback_iterations: int = READBACK_ITERATIONS
    kernel_name: str = KERNEL_NAME
    kernel_path: Optional[Path] = None
    seed: Optional[int] = None

    def resolved_kernel_path(self) -> Path:
        if self.kernel_path is not None:
            return Path(self.kernel_path)
        return Path(get("CLXOR_KERNEL_PATH"))


@dataclass(frozen=True)
class EnvVarMeta:
    name: str
    description: str
    default: Any
    parser: Callable[[str], Any]
    choices: Optional[List[str]] = None
    category: str = "general"


def _identity(val: str) -> str:
    return val


def _parse_level(val: str) -> str:
    return str(val).strip().upper()


_REGISTRY: Dict[str, EnvVarMeta] = {
    "CLXOR_LOG_LEVEL": EnvVarMeta(
        name="CLXOR_LOG_LEVEL",
        description="Override log verbosity (DEBUG,INFO,WARNING,ERROR)",
        default="INFO",
        parser=_parse_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        category="logging",
    ),
    "CLXOR_KERNEL_PATH": EnvVarMeta(
        name="CLXOR_KERNEL_PATH",
        description="Path of the OpenCL source defining the 'xor' kernel",
        default=str(DEFAULT_KERNEL_PATH),
        parser=_identity,
        category="opencl",
    ),
}


def get(name: str) -> Any:
    meta = _REGISTRY.get(name)
    if not meta:
        return os.environ.get(name)
    raw = os.environ.get(name, str(meta.default))
    try:
        return meta.parser(raw)
    except Exception:
        return meta.default


def describe() -> List[Dict[str, Any]]:
    info = []
    for meta in _REGISTRY.values():
        info.append(
            {
                "name": meta.name,
                "category": meta.category,
                "default": meta.default,
                "current": get(meta.name),
                "description": meta.description,
                "choices": meta.choices or [],
            }
        )
    return sorted(info, key=lambda x: (x["category"], x["name"]))


__all__ = [
    "PROBLEM_SIZE",
    "WORK_GROUP_SIZE",
    "DISPATCH_ITERATIONS",
    "READBACK_ITERATIONS",
    "KERNEL_NAME",
    "DEFAULT_KERNEL_PATH",
    "RunConfig",
    "EnvVarMeta",
    "get",
    "describe",
]
