"""Fake PyOpenCL driver used to exercise the pipeline without an OpenCL ICD.

The fake mirrors the slice of the pyopencl API clxor touches and records
every call, release and wait so tests can assert on ordering.
"""
import logging
import re
from types import SimpleNamespace

import numpy as np
import pytest

import clxor.errors
import clxor.hardware
import clxor.opencl.context
import clxor.opencl.dispatch
import clxor.opencl.memory
import clxor.opencl.program
import clxor.opencl.selector

PATCHED_MODULES = (
    clxor.errors,
    clxor.hardware,
    clxor.opencl.context,
    clxor.opencl.dispatch,
    clxor.opencl.memory,
    clxor.opencl.program,
    clxor.opencl.selector,
)

GPU = 1 << 2
CPU = 1 << 1
ACCELERATOR = 1 << 3


class FakeError(Exception):
    def __init__(self, code, routine=""):
        super().__init__(f"{routine} failed with {code}")
        self.code = code
        self.routine = routine


class FakeDevice:
    def __init__(self, name, type):
        self.name = name
        self.type = type
        self.vendor = "fake"
        self.version = "OpenCL 1.2 fake"

    def __repr__(self):
        return f"<FakeDevice {self.name}>"


class FakePlatform:
    def __init__(self, name, devices, driver=None):
        self.name = name
        self.devices = list(devices)
        self.driver = driver

    def get_devices(self, device_type=None):
        if self.driver is not None:
            self.driver.calls.append(("get_devices", self.name))
        if not self.devices:
            raise FakeError(-1, "clGetDeviceIDs")
        return list(self.devices)


class _Released:
    # pyopencl only exposes release() on memory objects; clxor drops contexts,
    # programs and kernels instead, so for those the label marks the drop point.
    label = "?"

    def release(self):
        self.driver.released.append(self.label)
        if self.label in self.driver.fail_release:
            raise FakeError(-5, "clRelease")


class FakeContext(_Released):
    label = "context"

    def __init__(self, driver, devices, properties):
        self.driver = driver
        self.devices = devices
        self.properties = properties


class FakeQueue(_Released):
    label = "queue"

    def __init__(self, driver, context, device, properties):
        self.driver = driver
        self.context = context
        self.device = device
        self.properties = properties
        self.finished = 0

    def finish(self):
        self.finished += 1


class FakeBuffer(_Released):
    def __init__(self, driver, context, flags, size=None, hostbuf=None):
        self.driver = driver
        self.flags = flags
        self.label = "buffer:" + "abc"[len(driver.buffers)]
        if hostbuf is not None:
            self.data = np.array(hostbuf, dtype=np.uint8, copy=True)
        else:
            # Uninitialised device memory.
            self.data = np.full(size, 0xAA, dtype=np.uint8)
        self.size = self.data.nbytes


class FakeProgram(_Released):
    label = "program"

    def __init__(self, driver, context, source):
        self.driver = driver
        self.source = source
        self.kernel_names = re.findall(r"__kernel\s+void\s+(\w+)", source)

    def build(self, devices=None, options=None):
        self.driver.build_calls += 1
        if self.driver.build_status != 0:
            raise FakeError(self.driver.build_status, "clBuildProgram")
        return self

    def get_build_info(self, device, param):
        self.driver.calls.append(("get_build_info", param))
        return self.driver.build_log


class FakeKernel(_Released):
    label = "kernel"

    def __init__(self, driver, program, name):
        self.driver = driver
        if name not in program.kernel_names:
            raise FakeError(-46, "clCreateKernel")
        self.name = name
        self.args = {}

    def set_arg(self, index, value):
        if self.driver.fail_set_arg == index:
            raise FakeError(-50, "clSetKernelArg")
        self.args[index] = value


class FakeEvent:
    def __init__(self, driver, kind):
        self.driver = driver
        self.kind = kind

    def wait(self):
        self.driver.waits.append(self.kind)


class FakeDriver:
    Error = FakeError
    device_type = SimpleNamespace(DEFAULT=1, CPU=CPU, GPU=GPU, ACCELERATOR=ACCELERATOR, ALL=0xFFFFFFFF)
    context_properties = SimpleNamespace(PLATFORM=0x1084)
    mem_flags = SimpleNamespace(READ_WRITE=1, WRITE_ONLY=2, READ_ONLY=4, USE_HOST_PTR=8, ALLOC_HOST_PTR=16,
                                COPY_HOST_PTR=32)
    program_build_info = SimpleNamespace(STATUS=0x1181, OPTIONS=0x1182, LOG=0x1183)

    def __init__(self, platforms=None, build_log="", build_status=0, faulty_kernel=False,
                 fail_set_arg=None, fail_buffer=None, fail_release=(), fail_context=None,
                 fail_queue=None):
        self.platforms = list(platforms if platforms is not None else [])
        for p in self.platforms:
            p.driver = self
        self.build_log = build_log
        self.build_status = build_status
        self.faulty_kernel = faulty_kernel
        self.fail_set_arg = fail_set_arg
        self.fail_buffer = fail_buffer
        self.fail_release = set(fail_release)
        self.fail_context = fail_context
        self.fail_queue = fail_queue
        self.calls = []
        self.released = []
        self.waits = []
        self.buffers = []
        self.build_calls = 0
        self.dispatches = []
        self.reads = 0
        self.contexts = []
        self.queues = []

    def get_platforms(self):
        self.calls.append(("get_platforms",))
        if not self.platforms:
            raise FakeError(-1001, "clGetPlatformIDs")
        return list(self.platforms)

    def Context(self, devices=None, properties=None):
        if self.fail_context is not None:
            raise FakeError(self.fail_context, "clCreateContext")
        ctx = FakeContext(self, devices, properties)
        self.contexts.append(ctx)
        return ctx

    def CommandQueue(self, context, device=None, properties=None):
        if self.fail_queue is not None:
            raise FakeError(self.fail_queue, "clCreateCommandQueue")
        q = FakeQueue(self, context, device, properties)
        self.queues.append(q)
        return q

    def Buffer(self, context, flags, size=0, hostbuf=None):
        if self.fail_buffer == len(self.buffers):
            raise FakeError(-4, "clCreateBuffer")
        buf = FakeBuffer(self, context, flags, size=size, hostbuf=hostbuf)
        self.buffers.append(buf)
        return buf

    def Program(self, context, source):
        self.calls.append(("create_program",))
        return FakeProgram(self, context, source)

    def Kernel(self, program, name):
        return FakeKernel(self, program, name)

    def enqueue_nd_range_kernel(self, queue, kernel, global_size, local_size):
        assert global_size[0] % local_size[0] == 0
        assert sorted(kernel.args) == [0, 1, 2, 3]
        a, b, c, n = (kernel.args[i] for i in range(4))
        n = int(n)
        assert global_size[0] >= n
        if self.faulty_kernel:
            c.data[:n] = (a.data[:n] != 0) | (b.data[:n] != 0)
        else:
            c.data[:n] = (a.data[:n] != 0) != (b.data[:n] != 0)
        self.dispatches.append((global_size, local_size))
        return FakeEvent(self, "dispatch")

    def enqueue_copy(self, queue, dest, src, is_blocking=True):
        assert is_blocking
        dest[...] = src.data
        self.reads += 1
        return FakeEvent(self, "read")


@pytest.fixture
def fake_cl(monkeypatch):
    """Factory installing a FakeDriver in place of pyopencl."""

    def install(platforms=None, **kwargs):
        driver = FakeDriver(platforms, **kwargs)
        for mod in PATCHED_MODULES:
            monkeypatch.setattr(mod, "cl", driver)
        return driver

    return install


@pytest.fixture
def gpu_platform():
    return FakePlatform("Fake GPU Platform", [FakeDevice("Fake GPU", GPU)])


@pytest.fixture
def log_records():
    """Collect records emitted under the `clxor` logger hierarchy."""
    records = []

    class _ListHandler(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = _ListHandler(level=logging.DEBUG)
    root = logging.getLogger("clxor")
    root.addHandler(handler)
    yield records
    root.removeHandler(handler)
