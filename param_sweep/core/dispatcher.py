"""
Execution dispatch to named backends.
"""

import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Dict, List, Optional

import torch

from .errors import BackendUnavailable, ExecutionTimeout
from .graph import Graph
from .quantization import Precision


class BackendRegistry:
    """
    Capability-queried registry of execution backends.

    Backends are stateless, so one registry may be shared by concurrent
    test cases.
    """

    def __init__(self, backends=()):
        self._backends: Dict[str, "ExecutionBackend"] = {}
        for backend in backends:
            self.register(backend)

    def register(self, backend):
        if backend.name in self._backends:
            raise ValueError(f"Backend '{backend.name}' is already registered")
        self._backends[backend.name] = backend
        return backend

    def names(self) -> List[str]:
        return list(self._backends)

    def get(self, name: str):
        try:
            return self._backends[name]
        except KeyError:
            raise BackendUnavailable(name, "not registered") from None

    def resolve(self, name: str, family: Optional[str], precision: Precision):
        """
        Return the backend if it can run ``family`` at ``precision`` here.

        Raises:
            BackendUnavailable: If unknown, unavailable, or not capable
        """
        backend = self.get(name)
        if not backend.is_available():
            raise BackendUnavailable(name, "not available in this environment")
        if family is not None and not backend.supports(family, precision):
            raise BackendUnavailable(name, f"{family} at {precision.label} is not supported")
        return backend

    def available(self, family: str, precision: Precision) -> List[str]:
        """Names of backends able to run ``family`` at ``precision``."""
        return [
            name for name, backend in self._backends.items()
            if backend.is_available() and backend.supports(family, precision)
        ]


_default_registry: Optional[BackendRegistry] = None
_default_lock = threading.Lock()


def default_registry() -> BackendRegistry:
    """Shared registry with the interpreter, CPU and CUDA backends."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            from ..backends import CPUBackend, CUDABackend, InterpreterBackend
            _default_registry = BackendRegistry(
                [InterpreterBackend(), CPUBackend(), CUDABackend()]
            )
        return _default_registry


def execute(graph: Graph,
            backend_id: str,
            deadline: Optional[float] = None,
            registry: Optional[BackendRegistry] = None) -> torch.Tensor:
    """
    Run a graph on a named backend.

    Args:
        graph: Complete graph
        backend_id: Backend identifier
        deadline: Seconds to wait for the backend (no limit if None)
        registry: Backend registry (shared default if None)

    Returns:
        Float32 output tensor bound to the graph's capture node

    Raises:
        BackendUnavailable: If the backend cannot run this graph here
        ExecutionTimeout: If the backend exceeds ``deadline``
    """
    registry = registry or default_registry()
    backend = registry.resolve(backend_id, graph.family, graph.precision)

    if deadline is None:
        return backend.compile_and_run(graph)

    # Daemon thread: a hung backend is abandoned and never joined at exit.
    future: Future = Future()

    def _run():
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(backend.compile_and_run(graph))
        except Exception as e:
            future.set_exception(e)

    worker = threading.Thread(target=_run, name=f"exec-{backend_id}", daemon=True)
    worker.start()
    try:
        return future.result(timeout=deadline)
    except FutureTimeout:
        if not future.done():
            raise ExecutionTimeout(backend_id, deadline) from None
        raise
