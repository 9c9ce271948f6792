"""Device buffers for the XOR run: two read-only inputs, one write-only output."""
from __future__ import annotations

from contextlib import ExitStack
from typing import Any, Optional

import numpy as _np

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover - platform w/o OpenCL
    cl = None  # type: ignore

from ..errors import BufferAllocationFailure, ensure_opencl, ocl_safe_call
from ..utils.logging import get_logger
from .context import release_handle

_log = get_logger("clxor.memory")


def as_byte_array(x: Any) -> _np.ndarray:
    """One byte per boolean element, non-zero meaning true."""
    arr = _np.asarray(x)
    if arr.dtype == _np.bool_:
        arr = arr.view(_np.uint8)
    elif arr.dtype != _np.uint8:
        arr = (arr != 0).astype(_np.uint8)
    return _np.ascontiguousarray(arr.reshape(-1))


class DeviceBuffers:
    def __init__(self, a: Any, b: Any, c: Any, nbytes: int):
        self.a: Optional[Any] = a
        self.b: Optional[Any] = b
        self.c: Optional[Any] = c
        self.nbytes = nbytes

    @property
    def released(self) -> bool:
        return self.a is None and self.b is None and self.c is None

    def _drop(self, attr: str) -> None:
        handle = getattr(self, attr)
        setattr(self, attr, None)
        release_handle(handle, f"buffer '{attr}'")

    def release(self) -> None:
        with ExitStack() as stack:
            for attr in ("a", "b", "c"):
                stack.callback(self._drop, attr)


def _create_buffer(context: Any, flags: int, nbytes: int, hostbuf: Optional[_np.ndarray] = None) -> Any:
    with ocl_safe_call(BufferAllocationFailure):
        if hostbuf is None:
            return cl.Buffer(context, flags, size=nbytes)
        return cl.Buffer(context, flags, hostbuf=hostbuf)


def allocate_buffers(context: Any, host_a: _np.ndarray, host_b: _np.ndarray) -> DeviceBuffers:
    """Create `a`, `b` (read-only, copied from host) and `c` (write-only)."""
    ensure_opencl()
    if host_a.nbytes != host_b.nbytes:
        raise ValueError(f"input sizes differ: {host_a.nbytes} != {host_b.nbytes} bytes")
    nbytes = int(host_a.nbytes)
    if nbytes == 0:
        raise ValueError("problem size must be positive")
    mf = cl.mem_flags
    with ExitStack() as stack:
        a = _create_buffer(context, mf.READ_ONLY | mf.COPY_HOST_PTR, nbytes, host_a)
        stack.callback(release_handle, a, "buffer 'a'")
        b = _create_buffer(context, mf.READ_ONLY | mf.COPY_HOST_PTR, nbytes, host_b)
        stack.callback(release_handle, b, "buffer 'b'")
        c = _create_buffer(context, mf.WRITE_ONLY, nbytes)
        stack.pop_all()
    _log.debug("Allocated 3 device buffers of %d bytes", nbytes)
    return DeviceBuffers(a, b, c, nbytes)


__all__ = ["DeviceBuffers", "allocate_buffers", "as_byte_array"]
