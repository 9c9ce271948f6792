"""Device selection policy.

Platforms are walked in enumeration order and, inside each platform, devices
in enumeration order:

  * the first GPU device found anywhere wins and enumeration stops;
  * otherwise the last CPU device seen over the whole walk is used;
  * otherwise :class:`NoDeviceFound` is raised.

The walk threads an explicit accumulator (``NotFound`` / ``FoundCpu`` /
``FoundGpu``) instead of mutable "selected" flags.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover - platform w/o OpenCL
    cl = None  # type: ignore

from ..errors import AcceleratorCallFailure, NoDeviceFound, ensure_opencl, ocl_safe_call
from ..utils.logging import get_logger

_log = get_logger("clxor.selector")

# Statuses that mean "nothing here" rather than a driver fault.
DEVICE_NOT_FOUND = -1
PLATFORM_NOT_FOUND_KHR = -1001


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class FoundCpu:
    platform: Any
    device: Any


@dataclass(frozen=True)
class FoundGpu:
    platform: Any
    device: Any


SelectionState = Union[NotFound, FoundCpu, FoundGpu]


@dataclass(frozen=True)
class DeviceSelection:
    platform: Any
    device: Any
    is_gpu: bool

    @property
    def name(self) -> str:
        return str(getattr(self.device, "name", "unknown"))

    @property
    def platform_name(self) -> str:
        return str(getattr(self.platform, "name", "unknown"))


def list_platforms() -> List[Any]:
    ensure_opencl()
    try:
        with ocl_safe_call():
            return list(cl.get_platforms())
    except AcceleratorCallFailure as exc:
        if exc.code == PLATFORM_NOT_FOUND_KHR:
            return []
        raise


def list_devices(platform: Any) -> List[Any]:
    try:
        with ocl_safe_call():
            return list(platform.get_devices(device_type=cl.device_type.ALL))
    except AcceleratorCallFailure as exc:
        if exc.code == DEVICE_NOT_FOUND:
            return []
        raise


def is_opencl_available() -> bool:
    """Return True if PyOpenCL is importable and at least one device is visible."""
    if cl is None:
        return False
    try:
        return any(list_devices(p) for p in list_platforms())
    except Exception:
        return False


def device_kind(device: Any) -> int:
    with ocl_safe_call():
        return int(device.type)


def _walk(platforms: Sequence[Any]) -> Iterator[Tuple[Any, Any, int]]:
    # Lazy so a GPU hit stops both the platform and the device loop.
    for platform in platforms:
        for device in list_devices(platform):
            yield platform, device, device_kind(device)


def advance(state: SelectionState, platform: Any, device: Any, kind: int) -> SelectionState:
    """Fold one enumerated device into the selection state."""
    if isinstance(state, FoundGpu):
        return state
    if kind & cl.device_type.GPU:
        return FoundGpu(platform, device)
    if kind & cl.device_type.CPU:
        return FoundCpu(platform, device)
    return state


def select_device(platforms: Optional[Sequence[Any]] = None) -> DeviceSelection:
    """Pick the (platform, device) pair for the run."""
    ensure_opencl()
    if platforms is None:
        platforms = list_platforms()
    state: SelectionState = NotFound()
    for platform, device, kind in _walk(platforms):
        state = advance(state, platform, device, kind)
        if isinstance(state, FoundGpu):
            break
    if isinstance(state, NotFound):
        raise NoDeviceFound()
    selection = DeviceSelection(state.platform, state.device, is_gpu=isinstance(state, FoundGpu))
    _log.info(
        "Selected %s device '%s' on platform '%s'",
        "GPU" if selection.is_gpu else "CPU",
        selection.name,
        selection.platform_name,
    )
    return selection


__all__ = [
    "NotFound",
    "FoundCpu",
    "FoundGpu",
    "SelectionState",
    "DeviceSelection",
    "list_platforms",
    "list_devices",
    "is_opencl_available",
    "device_kind",
    "advance",
    "select_device",
]
