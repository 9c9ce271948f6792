"""End-to-end XOR run on one OpenCL device.

Select device -> context/queue -> buffers -> program/kernel -> dispatch and
readback loops -> host verification. Every acquired resource is registered on
an ExitStack right after acquisition, so teardown runs in reverse order on
every exit path and a failing release does not skip the ones after it.
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from .config import RunConfig
from .errors import ensure_opencl
from .opencl.context import open_execution_context
from .opencl.dispatch import DispatchReport, run_xor
from .opencl.memory import allocate_buffers, as_byte_array
from .opencl.program import build_program, load_kernel_source
from .opencl.selector import DeviceSelection, select_device
from .utils.logging import get_logger
from .validation import generate_inputs, verify_xor

_log = get_logger("clxor.pipeline")


@dataclass
class RunResult:
    selection: DeviceSelection
    report: DispatchReport
    n: int
    output: Optional[np.ndarray] = None


def run_pipeline(
    config: Optional[RunConfig] = None,
    host_a: Any = None,
    host_b: Any = None,
    source: Optional[str] = None,
) -> RunResult:
    """Run one dispatch-and-verify cycle.

    `host_a`/`host_b` default to random inputs of `config.n` elements and
    `source` defaults to the contents of the configured kernel file.
    """
    config = config or RunConfig()
    if (host_a is None) != (host_b is None):
        raise ValueError("host_a and host_b must be given together")
    ensure_opencl()
    selection = select_device()

    with ExitStack() as stack:
        ectx = open_execution_context(selection)
        stack.callback(ectx.release)

        if host_a is None:
            host_a, host_b = generate_inputs(config.n, config.seed)
        host_a = as_byte_array(host_a)
        host_b = as_byte_array(host_b)
        n = int(host_a.size)

        buffers = allocate_buffers(ectx.context, host_a, host_b)
        stack.callback(buffers.release)

        origin = None
        if source is None:
            kernel_path = config.resolved_kernel_path()
            origin = str(kernel_path)
            source = load_kernel_source(kernel_path)
        built = build_program(ectx.context, selection.device, source, config.kernel_name, origin=origin)
        stack.callback(built.release)

        host_c = np.empty(n, dtype=np.uint8)
        report = run_xor(
            ectx.queue,
            built.kernel,
            buffers,
            host_c,
            n,
            local_size=config.work_group_size,
            dispatch_iterations=config.dispatch_iterations,
            readback_iterations=config.readback_iterations,
        )
        verify_xor(host_a, host_b, host_c)
        _log.info("Verified %d elements: CPU and GPU results match", n)

    return RunResult(selection=selection, report=report, n=n, output=host_c)


__all__ = ["RunResult", "run_pipeline"]
