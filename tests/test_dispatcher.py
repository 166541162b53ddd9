"""
Tests for backend dispatch, capabilities and deadlines.
"""

import os
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest
import torch

from param_sweep.adapters import BATCH_MATMUL_SPEC, CONVOLUTION_SPEC, FULLY_CONNECTED_SPEC
from param_sweep.backends import CPUBackend, CUDABackend, InterpreterBackend
from param_sweep.core import (
    BackendRegistry,
    BackendUnavailable,
    ExecutionTimeout,
    Precision,
    adapt,
    build,
    default_registry,
    execute,
)
from param_sweep.core.graph import FULLY_CONNECTED


def _fc_graph():
    return build(FULLY_CONNECTED_SPEC, {"A": 2, "Z": 16, "B": 4}, seed=5)


HANGING_SWEEP = textwrap.dedent("""
    import threading

    from param_sweep.adapters import FULLY_CONNECTED_SPEC
    from param_sweep.backends import CPUBackend, InterpreterBackend
    from param_sweep.core import (
        BackendRegistry, Precision, SweepConfig, SweepOrchestrator, generate_configurations,
    )

    class HangingBackend(InterpreterBackend):
        def fully_connected(self, x, w, b):
            threading.Event().wait()

    registry = BackendRegistry([InterpreterBackend(), CPUBackend(), HangingBackend("Hang")])
    configs = generate_configurations(
        "fully_connected", [("A", (1,)), ("Z", (8,)), ("B", (4,))], ["Hang", "CPU"])
    orchestrator = SweepOrchestrator(SweepConfig(deadline_s=0.2), registry)
    report = orchestrator.run(FULLY_CONNECTED_SPEC, configs, [Precision.FULL])
    print([r.status.value for r in report.records])
""")


class TestRegistry:
    """Capability-queried backend lookup."""

    def test_default_registry_contents(self):
        names = default_registry().names()
        assert {"Interpreter", "CPU", "CUDA"} <= set(names)

    def test_unknown_backend(self, registry):
        with pytest.raises(BackendUnavailable):
            registry.resolve("OpenCL", FULLY_CONNECTED, Precision.FULL)

    def test_unavailable_backend(self, registry):
        with pytest.raises(BackendUnavailable) as excinfo:
            registry.resolve("Missing", FULLY_CONNECTED, Precision.FULL)
        assert excinfo.value.backend == "Missing"

    def test_unsupported_precision(self):
        registry = BackendRegistry([CUDABackend()])
        assert not registry.get("CUDA").supports(FULLY_CONNECTED, Precision.QUANTIZED)
        with pytest.raises(BackendUnavailable):
            registry.resolve("CUDA", FULLY_CONNECTED, Precision.QUANTIZED)

    def test_available_listing(self, registry):
        names = registry.available(FULLY_CONNECTED, Precision.QUANTIZED)
        assert "Interpreter" in names and "CPU" in names
        assert "Missing" not in names

    def test_duplicate_registration(self):
        registry = BackendRegistry([CPUBackend()])
        with pytest.raises(ValueError):
            registry.register(CPUBackend())


class TestExecute:
    """Synchronous execution with an optional deadline."""

    def test_returns_captured_float32(self, registry):
        graph = _fc_graph()
        out = execute(graph, "Interpreter", registry=registry)
        assert out.dtype == torch.float32
        assert tuple(out.shape) == (2, 4)
        assert graph.capture.result is out

    def test_matches_direct_computation(self, registry):
        graph = _fc_graph()
        out = execute(graph, "CPU", deadline=30.0, registry=registry)
        x, w, b = (graph.tensors[n].value for n in ("input", "weights", "bias"))
        assert torch.allclose(out, x @ w + b, atol=1e-6)

    def test_deadline_expiry(self, registry, blocking_backend):
        with pytest.raises(ExecutionTimeout) as excinfo:
            execute(_fc_graph(), "Blocking", deadline=0.2, registry=registry)
        assert excinfo.value.deadline == 0.2

    def test_hung_backend_does_not_block_exit(self):
        """A backend that never returns must not keep the process alive."""
        root = Path(__file__).resolve().parents[1]
        paths = [str(root), os.environ.get("PYTHONPATH", "")]
        env = dict(os.environ, PYTHONPATH=os.pathsep.join(p for p in paths if p))
        proc = subprocess.run([sys.executable, "-c", HANGING_SWEEP], cwd=root, env=env,
                              capture_output=True, text=True, timeout=60)
        assert proc.returncode == 0, proc.stderr
        assert "['failed', 'passed']" in proc.stdout

    def test_kernel_errors_propagate(self, registry):
        with pytest.raises(RuntimeError, match="kernel crashed"):
            execute(_fc_graph(), "Exploding", deadline=5.0, registry=registry)

    def test_unknown_backend(self, registry):
        with pytest.raises(BackendUnavailable):
            execute(_fc_graph(), "TPU", registry=registry)

    @pytest.mark.parametrize("precision", list(Precision))
    def test_reduced_and_quantized_outputs_are_float32(self, registry, precision):
        graph = adapt(_fc_graph(), precision)
        out = execute(graph, "Interpreter", registry=registry)
        assert out.dtype == torch.float32
        assert tuple(out.shape) == (2, 4)


class TestBackendKernels:
    """Candidate kernels agree with the reference interpreter."""

    @pytest.mark.parametrize("params", [
        {"size": 5, "depth": 8, "kernel": 1},
        {"size": 7, "depth": 8, "kernel": 3},
        {"size": 7, "depth": 8, "kernel": 3, "stride": 2, "pad": 1},
    ])
    def test_cpu_convolution(self, params):
        graph = build(CONVOLUTION_SPEC, params, seed=1)
        expected = InterpreterBackend().compile_and_run(graph.clone())
        actual = CPUBackend().compile_and_run(graph.clone())
        assert torch.allclose(expected, actual, atol=1e-5)

    def test_cpu_batch_matmul(self):
        graph = build(BATCH_MATMUL_SPEC, {"N": 4, "A": 10, "Z": 32}, seed=1)
        expected = InterpreterBackend().compile_and_run(graph.clone())
        actual = CPUBackend().compile_and_run(graph.clone())
        assert torch.allclose(expected, actual, atol=1e-5)

    def test_integer_path_is_exact_across_backends(self):
        """Integer arithmetic gives bit-identical results on both CPU kernels."""
        graph = adapt(build(FULLY_CONNECTED_SPEC, {"A": 4, "Z": 256, "B": 64}, seed=2),
                      Precision.QUANTIZED)
        expected = InterpreterBackend().compile_and_run(graph.clone())
        actual = CPUBackend().compile_and_run(graph.clone())
        assert torch.equal(expected, actual)

    @pytest.mark.skipif(not torch.cuda.is_available(), reason="CUDA not available")
    def test_cuda_fully_connected(self):
        graph = _fc_graph()
        expected = InterpreterBackend().compile_and_run(graph.clone())
        actual = CUDABackend().compile_and_run(graph.clone())
        assert torch.allclose(expected, actual, atol=1e-4)
