# clxor/hardware.py
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import NoDeviceFound
from .opencl.selector import device_kind, list_devices, list_platforms, select_device

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover
    cl = None  # type: ignore


@dataclass
class DeviceEntry:
    platform_index: int
    device_index: int
    platform: str
    name: str
    kind: str
    vendor: Optional[str] = None
    version: Optional[str] = None
    selected: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "platform_index": self.platform_index,
            "device_index": self.device_index,
            "platform": self.platform,
            "name": self.name,
            "kind": self.kind,
            "vendor": self.vendor,
            "version": self.version,
            "selected": self.selected,
        }


def kind_label(kind: int) -> str:
    if kind & cl.device_type.GPU:
        return "GPU"
    if kind & cl.device_type.CPU:
        return "CPU"
    return str(kind)


def describe_devices() -> List[DeviceEntry]:
    """
    Enumerate every OpenCL device and mark the one the selection policy picks.
    """
    platforms = list_platforms()
    entries = []
    handles = []
    for pi, p in enumerate(platforms):
        for di, d in enumerate(list_devices(p)):
            entries.append(
                DeviceEntry(
                    platform_index=pi,
                    device_index=di,
                    platform=str(getattr(p, "name", "unknown")),
                    name=str(getattr(d, "name", "unknown")),
                    kind=kind_label(device_kind(d)),
                    vendor=getattr(d, "vendor", None),
                    version=getattr(d, "version", None),
                )
            )
            handles.append(d)
    try:
        chosen = select_device(platforms)
    except NoDeviceFound:
        return entries
    for e, d in zip(entries, handles):
        e.selected = d == chosen.device
    return entries
