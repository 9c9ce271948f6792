"""Kernel program compilation with build diagnostics.

The build status of ``clBuildProgram`` is captured rather than raised, the
build log is fetched and logged, and only then is a failing status turned
into :class:`ProgramBuildFailure`. A log is never dropped, and warnings on a
successful build are shown too.
"""
from __future__ import annotations

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Optional, Union

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover - platform w/o OpenCL
    cl = None  # type: ignore

from .. import config as _cfg
from ..errors import (
    CL_SUCCESS,
    AcceleratorCallFailure,
    EmptySourceFailure,
    KernelNotFoundFailure,
    ProgramBuildFailure,
    ensure_opencl,
    error_code,
    ocl_safe_call,
)
from ..utils.logging import get_logger, log_text_block
from .context import release_handle

_log = get_logger("clxor.program")

INVALID_KERNEL_NAME = -46


def load_kernel_source(path: Union[str, Path, None] = None) -> str:
    """Read the whole kernel source; a missing or unreadable file reads as ''."""
    src_path = Path(path) if path is not None else Path(_cfg.get("CLXOR_KERNEL_PATH"))
    try:
        return src_path.read_text()
    except (OSError, UnicodeDecodeError) as exc:
        _log.debug("Could not read kernel source %s: %s", src_path, exc)
        return ""


class BuiltProgram:
    def __init__(self, program: Any, kernel: Any, log: str = ""):
        self.program: Optional[Any] = program
        self.kernel: Optional[Any] = kernel
        self.log = log

    @property
    def released(self) -> bool:
        return self.program is None and self.kernel is None

    def _drop(self, attr: str) -> None:
        handle = getattr(self, attr)
        setattr(self, attr, None)
        release_handle(handle, attr)

    def release(self) -> None:
        with ExitStack() as stack:
            stack.callback(self._drop, "program")
            stack.callback(self._drop, "kernel")


def fetch_build_log(program: Any, device: Any) -> str:
    with ocl_safe_call():
        log = program.get_build_info(device, cl.program_build_info.LOG)
    if isinstance(log, bytes):
        log = log.decode("utf-8", errors="replace")
    return (log or "").rstrip("\x00")


def extract_kernel(program: Any, name: str) -> Any:
    try:
        with ocl_safe_call():
            return cl.Kernel(program, name)
    except AcceleratorCallFailure as exc:
        if exc.code == INVALID_KERNEL_NAME:
            raise KernelNotFoundFailure(name) from exc
        raise


def build_program(
    context: Any,
    device: Any,
    source: str,
    kernel_name: str = _cfg.KERNEL_NAME,
    origin: Optional[str] = None,
) -> BuiltProgram:
    """Compile `source` for `device` and extract `kernel_name` from it.

    `origin` names where the source came from, for the empty-source message.
    """
    if not source:
        raise EmptySourceFailure(origin)
    ensure_opencl()
    with ocl_safe_call():
        program = cl.Program(context, source)

    status = CL_SUCCESS
    failure_text = ""
    try:
        program.build(devices=[device])
    except cl.Error as exc:
        status = error_code(exc)
        failure_text = str(exc)

    try:
        log = fetch_build_log(program, device)
        if status != CL_SUCCESS and not log.strip():
            # pyopencl may drop the failed program object; its error text carries the log.
            log = failure_text
        if log.strip():
            level = logging.ERROR if status != CL_SUCCESS else logging.WARNING
            log_text_block(_log, "Log:", log, level=level)
        if status != CL_SUCCESS:
            raise ProgramBuildFailure(status, log)
        kernel = extract_kernel(program, kernel_name)
    except Exception:
        release_handle(program, "program")
        raise
    _log.debug("Built program and extracted kernel '%s'", kernel_name)
    return BuiltProgram(program, kernel, log)


__all__ = [
    "BuiltProgram",
    "build_program",
    "extract_kernel",
    "fetch_build_log",
    "load_kernel_source",
]
