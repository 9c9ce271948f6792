"""OpenCL context & queue ownership for a single selected device.

Responsibilities:
  * Create exactly one context bound to the selected (platform, device).
  * Create exactly one in-order, non-profiling command queue on it.
  * Release both, queue first, even when one of the releases fails.
"""
from __future__ import annotations

from contextlib import ExitStack
from typing import Any, Optional

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover - platform w/o OpenCL
    cl = None  # type: ignore

from ..errors import ContextCreationFailure, QueueCreationFailure, ensure_opencl, ocl_safe_call
from ..utils.logging import get_logger
from .selector import DeviceSelection

_log = get_logger("clxor.context")


def release_handle(handle: Any, what: str) -> None:
    """Release one driver handle; handles without an explicit release are dropped."""
    if handle is None:
        return
    release = getattr(handle, "release", None)
    if release is None:
        _log.debug("Dropped %s", what)
        return
    with ocl_safe_call():
        release()
    _log.debug("Released %s", what)


class ExecutionContext:
    def __init__(self, selection: DeviceSelection, context: Any, queue: Any):
        self.selection = selection
        self.context: Optional[Any] = context
        self.queue: Optional[Any] = queue

    @property
    def device(self) -> Any:
        return self.selection.device

    @property
    def released(self) -> bool:
        return self.context is None and self.queue is None

    def _release_queue(self) -> None:
        queue, self.queue = self.queue, None
        if queue is None:
            return
        try:
            with ocl_safe_call():
                queue.finish()
        finally:
            release_handle(queue, "command queue")

    def _release_context(self) -> None:
        context, self.context = self.context, None
        release_handle(context, "context")

    def release(self) -> None:
        with ExitStack() as stack:
            stack.callback(self._release_context)
            stack.callback(self._release_queue)


def create_context(selection: DeviceSelection) -> Any:
    ensure_opencl()
    properties = [(cl.context_properties.PLATFORM, selection.platform)]
    with ocl_safe_call(ContextCreationFailure):
        return cl.Context(devices=[selection.device], properties=properties)


def create_queue(context: Any, device: Any) -> Any:
    # Default properties: in-order execution, no profiling.
    with ocl_safe_call(QueueCreationFailure):
        return cl.CommandQueue(context, device)


def open_execution_context(selection: DeviceSelection) -> ExecutionContext:
    context = create_context(selection)
    try:
        queue = create_queue(context, selection.device)
    except Exception:
        release_handle(context, "context")
        raise
    _log.debug("Created context and command queue on '%s'", selection.name)
    return ExecutionContext(selection, context, queue)


__all__ = [
    "ExecutionContext",
    "create_context",
    "create_queue",
    "open_execution_context",
    "release_handle",
]
