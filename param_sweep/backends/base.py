"""
Base execution backend interface.
"""

from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, Iterable, List, Optional

import torch

from ..core.graph import (
    BATCH_MATMUL,
    CONVOLUTION,
    FULLY_CONNECTED,
    KERNEL_KINDS,
    Graph,
    KernelNode,
    TensorRole,
)
from ..core.quantization import Precision, requantize


ALL_PRECISIONS = frozenset(Precision)


class ExecutionBackend(ABC):
    """
    Abstract base class for execution backends.

    Subclasses implement the three float kernels. Precision handling is
    shared: reduced precision accumulates in float32 and stores float16;
    quantized precision runs exact integer arithmetic in float64 and
    requantizes into the output's int8 domain.
    """

    def __init__(self, name: str,
                 capabilities: Optional[Dict[str, Iterable[Precision]]] = None):
        """
        Args:
            name: Backend identifier
            capabilities: Supported precisions per kernel family
                (all families and precisions if None)
        """
        self.name = name
        if capabilities is None:
            capabilities = {kind: ALL_PRECISIONS for kind in KERNEL_KINDS}
        self.capabilities: Dict[str, FrozenSet[Precision]] = {
            kind: frozenset(precisions) for kind, precisions in capabilities.items()
        }

    def is_available(self) -> bool:
        """Whether the backend can run in this environment."""
        return True

    def supports(self, family: str, precision: Precision) -> bool:
        return precision in self.capabilities.get(family, frozenset())

    @abstractmethod
    def convolution(self, x: torch.Tensor, w: torch.Tensor, b: torch.Tensor,
                    stride: int, pad: int) -> torch.Tensor:
        """NHWC convolution with an (F, k, k, C) filter."""
        pass

    @abstractmethod
    def batch_matmul(self, lhs: torch.Tensor, rhs: torch.Tensor) -> torch.Tensor:
        """{N, A, Z} x {N, Z, B} -> {N, A, B}."""
        pass

    @abstractmethod
    def fully_connected(self, x: torch.Tensor, w: torch.Tensor,
                        b: torch.Tensor) -> torch.Tensor:
        """{A, Z} x {Z, B} + {B} -> {A, B}."""
        pass

    def run_kernel(self, node: KernelNode, values: List[torch.Tensor]) -> torch.Tensor:
        if node.kind == CONVOLUTION:
            return self.convolution(*values, stride=node.attrs.get("stride", 1),
                                    pad=node.attrs.get("pad", 0))
        if node.kind == BATCH_MATMUL:
            return self.batch_matmul(*values)
        if node.kind == FULLY_CONNECTED:
            return self.fully_connected(*values)
        raise ValueError(f"Backend '{self.name}' cannot run kernel '{node.kind}'")

    def _run_quantized(self, graph: Graph) -> torch.Tensor:
        values = []
        accumulator_scale = 1.0
        for slot in graph.operands():
            values.append(slot.value.to(torch.float64) - slot.qparams.offset)
            if slot.role is not TensorRole.BIAS:
                accumulator_scale *= slot.qparams.scale
        accumulator = self.run_kernel(graph.kernel, values)
        return requantize(accumulator, accumulator_scale, graph.output.qparams)

    def compile_and_run(self, graph: Graph) -> torch.Tensor:
        """
        Execute the graph and return its captured output as float32.

        Args:
            graph: Complete graph at any precision

        Returns:
            Materialized output tensor bound to the graph's capture node
        """
        graph.validate()
        with torch.no_grad():
            if graph.precision is Precision.QUANTIZED:
                result = self._run_quantized(graph)
            elif graph.precision is Precision.REDUCED:
                values = [slot.value.to(torch.float32) for slot in graph.operands()]
                result = self.run_kernel(graph.kernel, values).to(torch.float16)
            else:
                values = [slot.value for slot in graph.operands()]
                result = self.run_kernel(graph.kernel, values)
        return graph.bind_output(result)

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r})"
