"""
Shared fixtures and fake backends for the sweep tests.
"""

import threading

import pytest

from param_sweep.backends import CPUBackend, InterpreterBackend
from param_sweep.core import BackendRegistry, SweepConfig, SweepOrchestrator


class BlockingBackend(InterpreterBackend):
    """Hangs until released, with no timeout of its own."""

    def __init__(self, name: str = "Blocking"):
        super().__init__(name)
        self.release = threading.Event()

    def fully_connected(self, x, w, b):
        self.release.wait()
        return super().fully_connected(x, w, b)

    def convolution(self, x, w, b, stride, pad):
        self.release.wait()
        return super().convolution(x, w, b, stride, pad)

    def batch_matmul(self, lhs, rhs):
        self.release.wait()
        return super().batch_matmul(lhs, rhs)


class ExplodingBackend(InterpreterBackend):
    """Raises from every kernel."""

    def __init__(self, name: str = "Exploding"):
        super().__init__(name)

    def convolution(self, x, w, b, stride, pad):
        raise RuntimeError("kernel crashed")

    def batch_matmul(self, lhs, rhs):
        raise RuntimeError("kernel crashed")

    def fully_connected(self, x, w, b):
        raise RuntimeError("kernel crashed")


class OffByOneBackend(InterpreterBackend):
    """Adds 1.0 to every fully connected output."""

    def __init__(self, name: str = "OffByOne"):
        super().__init__(name)

    def fully_connected(self, x, w, b):
        return super().fully_connected(x, w, b) + 1.0


class MissingBackend(InterpreterBackend):
    """Registered but never available."""

    def __init__(self, name: str = "Missing"):
        super().__init__(name)

    def is_available(self) -> bool:
        return False


@pytest.fixture
def blocking_backend():
    backend = BlockingBackend()
    yield backend
    backend.release.set()


@pytest.fixture
def registry(blocking_backend):
    return BackendRegistry([
        InterpreterBackend(),
        CPUBackend(),
        ExplodingBackend(),
        OffByOneBackend(),
        MissingBackend(),
        blocking_backend,
    ])


@pytest.fixture
def orchestrator(registry):
    return SweepOrchestrator(SweepConfig(deadline_s=30.0), registry)
