"""Failure taxonomy and the accelerator call-checking helpers.

Every PyOpenCL call in the pipeline runs inside :class:`ocl_safe_call`, which
turns a ``cl.Error`` into a typed failure carrying the OpenCL status code and
the call site (file, line) of the wrapped call. Raw integer statuses go
through :func:`report_error`.
"""

from __future__ import annotations

from typing import Optional, Type

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover - platform w/o OpenCL
    cl = None  # type: ignore

CL_SUCCESS = 0


class ClxorError(RuntimeError):
    """Base class of every failure raised by the XOR pipeline."""


class OpenCLUnavailable(ClxorError):
    pass


class AcceleratorCallFailure(ClxorError):
    def __init__(self, code: int, filename: str, line: int, routine: Optional[str] = None):
        self.code = code
        self.filename = filename
        self.line = line
        self.routine = routine
        message = f"OpenCL error code {code} encountered at {filename}:{line}"
        if routine:
            message += f" ({routine})"
        super().__init__(message)


class ContextCreationFailure(AcceleratorCallFailure):
    pass


class QueueCreationFailure(AcceleratorCallFailure):
    pass


class BufferAllocationFailure(AcceleratorCallFailure):
    pass


class NoDeviceFound(ClxorError):
    def __init__(self, message: str = "No device found"):
        super().__init__(message)


class EmptySourceFailure(ClxorError):
    def __init__(self, path: Optional[str] = None):
        self.path = path
        message = "Empty source file! May be you forgot to configure working directory properly?"
        if path:
            message += f" (looked at {path})"
        super().__init__(message)


class ProgramBuildFailure(ClxorError):
    def __init__(self, status: int, log: str = ""):
        self.status = status
        self.log = log
        msg = f"OpenCL program build failed with status {status}"
        if log.strip():
            msg += f":\n{log.rstrip()}"
        super().__init__(msg)


class KernelNotFoundFailure(ClxorError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Kernel '{name}' not found in built program")


class ResultMismatch(ClxorError):
    def __init__(self, index: int):
        self.index = index
        super().__init__(f"CPU and GPU results differ at index {index}")


def ensure_opencl() -> None:
    if cl is None:
        raise OpenCLUnavailable("pyopencl is required to drive the accelerator. Install pyopencl.")


def report_error(code: int, filename: str, line: int,
                 failure: Type[AcceleratorCallFailure] = AcceleratorCallFailure) -> None:
    """Return if `code` is CL_SUCCESS, otherwise raise `failure` for the call site."""
    if code == CL_SUCCESS:
        return
    raise failure(int(code), filename, line)


def error_code(exc: BaseException) -> int:
    """Best-effort numeric OpenCL status of a PyOpenCL error."""
    try:
        return int(getattr(exc, "code"))
    except Exception:
        return -1


class ocl_safe_call:
    """Context manager re-raising PyOpenCL errors as typed failures.

    The reported call site is the line inside the ``with`` block that raised.
    Non-OpenCL exceptions pass through untouched.
    """

    def __init__(self, failure: Type[AcceleratorCallFailure] = AcceleratorCallFailure):
        self.failure = failure

    def __enter__(self) -> "ocl_safe_call":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is None or cl is None or not isinstance(exc, cl.Error):
            return False
        filename = tb.tb_frame.f_code.co_filename if tb is not None else "<unknown>"
        line = tb.tb_lineno if tb is not None else 0
        raise self.failure(error_code(exc), filename, line, getattr(exc, "routine", None)) from exc


__all__ = [
    "CL_SUCCESS",
    "ClxorError",
    "OpenCLUnavailable",
    "AcceleratorCallFailure",
    "ContextCreationFailure",
    "QueueCreationFailure",
    "BufferAllocationFailure",
    "NoDeviceFound",
    "EmptySourceFailure",
    "ProgramBuildFailure",
    "KernelNotFoundFailure",
    "ResultMismatch",
    "ensure_opencl",
    "report_error",
    "error_code",
    "ocl_safe_call",
]
