"""Kernel argument binding, grid sizing and the dispatch/readback loops.

Both loops are bounded and strictly serial: every iteration enqueues one
operation and blocks on its completion event before the next one is
submitted. Host wall time per iteration is kept for reporting.
"""
from __future__ import annotations

import statistics
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as _np

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover - platform w/o OpenCL
    cl = None  # type: ignore

from .. import config as _cfg
from ..errors import ensure_opencl, ocl_safe_call
from ..utils.logging import get_logger
from .memory import DeviceBuffers

_log = get_logger("clxor.dispatch")

KERNEL_ARITY = 4


def global_work_size(n: int, local_size: int = _cfg.WORK_GROUP_SIZE) -> int:
    """Smallest multiple of `local_size` that is >= n.

    Excess work-items beyond n are expected to be masked by the kernel.
    """
    if local_size <= 0:
        raise ValueError(f"local work size must be positive, got {local_size}")
    if n < 0:
        raise ValueError(f"problem size must be non-negative, got {n}")
    return (n + local_size - 1) // local_size * local_size


def _timing_summary(times: List[float]) -> Dict[str, float]:
    if not times:
        return {"iterations": 0}
    return {
        "iterations": len(times),
        "mean": statistics.mean(times),
        "median": statistics.median(times),
        "min": min(times),
        "max": max(times),
        "total": sum(times),
    }


@dataclass
class DispatchReport:
    global_size: int
    local_size: int
    dispatch_times: List[float] = field(default_factory=list)
    readback_times: List[float] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        return {
            "global_size": self.global_size,
            "local_size": self.local_size,
            "dispatch": _timing_summary(self.dispatch_times),
            "readback": _timing_summary(self.readback_times),
        }


class DispatchEngine:
    def __init__(self, queue: Any, kernel: Any, local_size: int = _cfg.WORK_GROUP_SIZE):
        ensure_opencl()
        self.queue = queue
        self.kernel = kernel
        self.local_size = int(local_size)
        self.n = 0
        self.buffers: DeviceBuffers | None = None
        self._bound = 0

    @property
    def bound(self) -> bool:
        return self._bound == KERNEL_ARITY

    @property
    def global_size(self) -> int:
        return global_work_size(self.n, self.local_size)

    def bind(self, buffers: DeviceBuffers, n: int) -> None:
        """Bind a, b, c and the uint32 element count, checking every binding."""
        self._bound = 0
        args = (buffers.a, buffers.b, buffers.c, _np.uint32(n))
        for index, arg in enumerate(args):
            with ocl_safe_call():
                self.kernel.set_arg(index, arg)
            self._bound += 1
        self.buffers = buffers
        self.n = int(n)

    def run_dispatch(self, iterations: int = _cfg.DISPATCH_ITERATIONS) -> List[float]:
        if not self.bound:
            raise RuntimeError(f"kernel has {self._bound}/{KERNEL_ARITY} arguments bound")
        if iterations < 1:
            raise ValueError("at least one dispatch is required")
        gsz = (self.global_size,)
        lsz = (self.local_size,)
        times = []
        for _ in range(iterations):
            start = time.perf_counter()
            with ocl_safe_call():
                evt = cl.enqueue_nd_range_kernel(self.queue, self.kernel, gsz, lsz)
            with ocl_safe_call():
                evt.wait()
            times.append(time.perf_counter() - start)
        return times

    def run_readback(self, host_out: _np.ndarray, iterations: int = _cfg.READBACK_ITERATIONS) -> List[float]:
        if self.buffers is None:
            raise RuntimeError("no output buffer bound")
        if iterations < 1:
            raise ValueError("at least one readback is required")
        if host_out.nbytes != self.buffers.nbytes:
            raise ValueError(f"host output holds {host_out.nbytes} bytes, buffer holds {self.buffers.nbytes}")
        times = []
        for _ in range(iterations):
            start = time.perf_counter()
            with ocl_safe_call():
                evt = cl.enqueue_copy(self.queue, host_out, self.buffers.c, is_blocking=True)
            # Already blocking; the explicit wait keeps both loops symmetric.
            with ocl_safe_call():
                evt.wait()
            times.append(time.perf_counter() - start)
        return times


def run_xor(
    queue: Any,
    kernel: Any,
    buffers: DeviceBuffers,
    host_out: _np.ndarray,
    n: int,
    local_size: int = _cfg.WORK_GROUP_SIZE,
    dispatch_iterations: int = _cfg.DISPATCH_ITERATIONS,
    readback_iterations: int = _cfg.READBACK_ITERATIONS,
) -> DispatchReport:
    """Bind arguments, run the dispatch loop, then the readback loop."""
    engine = DispatchEngine(queue, kernel, local_size)
    engine.bind(buffers, n)
    report = DispatchReport(global_size=engine.global_size, local_size=engine.local_size)
    report.dispatch_times = engine.run_dispatch(dispatch_iterations)
    _log.info(
        "Dispatched %d x %d work-items (local %d)", len(report.dispatch_times), report.global_size, report.local_size
    )
    report.readback_times = engine.run_readback(host_out, readback_iterations)
    _log.info("Read back %d bytes %d times", buffers.nbytes, len(report.readback_times))
    return report


__all__ = ["DispatchEngine", "DispatchReport", "global_work_size", "run_xor", "KERNEL_ARITY"]
