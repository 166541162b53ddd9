"""
Minimal computation graph for single-kernel sweep tests.

A graph owns its tensors, exactly one kernel node and exactly one capture
node. Backends read the graph; only the capture slot is written after
construction.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import torch

from .errors import InvalidConfiguration
from .quantization import Precision, QuantizationParams, dequantize


CONVOLUTION = "convolution"
BATCH_MATMUL = "batch_matmul"
FULLY_CONNECTED = "fully_connected"

KERNEL_KINDS = (CONVOLUTION, BATCH_MATMUL, FULLY_CONNECTED)


class TensorRole(Enum):
    """Role of a tensor in the graph. Drives the quantization policy."""

    INPUT = "input"
    WEIGHT = "weight"
    BIAS = "bias"
    OUTPUT = "output"


# ---------------------------------------------------------------------------
# Initialization policies
# ---------------------------------------------------------------------------

class InitPolicy(ABC):
    """How a tensor is filled at construction time."""

    @abstractmethod
    def materialize(self, shape: Tuple[int, ...],
                    generator: Optional[torch.Generator]) -> torch.Tensor:
        """Return a float32 tensor of ``shape``, drawing from ``generator`` if random."""
        pass


@dataclass(frozen=True)
class Constant(InitPolicy):
    """Fill every element with ``value``."""

    value: float

    def materialize(self, shape, generator=None):
        return torch.full(shape, float(self.value), dtype=torch.float32)


@dataclass(frozen=True)
class Uniform(InitPolicy):
    """Seeded uniform draw in ``[low, high)``."""

    low: float
    high: float

    def materialize(self, shape, generator=None):
        if generator is None:
            raise ValueError("Random initialization requires a seeded generator")
        values = torch.rand(shape, generator=generator, dtype=torch.float32)
        return values * (self.high - self.low) + self.low


@dataclass(frozen=True)
class Xavier(InitPolicy):
    """
    Seeded uniform draw scaled by fan-in.

    Values lie in ``[-sqrt(3 / fan_in), sqrt(3 / fan_in)]``, which gives unit
    variance times ``1 / fan_in``.
    """

    fan_in: int

    def materialize(self, shape, generator=None):
        if self.fan_in <= 0:
            raise ValueError(f"fan_in must be positive, got {self.fan_in}")
        scale = math.sqrt(3.0 / self.fan_in)
        return Uniform(-scale, scale).materialize(shape, generator)


# ---------------------------------------------------------------------------
# Graph elements
# ---------------------------------------------------------------------------

@dataclass
class TensorSlot:
    """A named tensor owned by a graph."""

    name: str
    shape: Tuple[int, ...]
    dtype: torch.dtype
    role: TensorRole
    value: Optional[torch.Tensor] = None
    qparams: Optional[QuantizationParams] = None
    immutable: bool = False

    def set_value(self, value: torch.Tensor, qparams: Optional[QuantizationParams] = None):
        """Replace the slot's storage. Logical shape must not change."""
        if self.immutable:
            raise RuntimeError(f"Tensor '{self.name}' is immutable")
        if tuple(value.shape) != self.shape:
            raise ValueError(
                f"Tensor '{self.name}' shape {tuple(value.shape)} != {self.shape}"
            )
        self.value = value
        self.dtype = value.dtype
        self.qparams = qparams

    @property
    def is_floating(self) -> bool:
        return self.dtype.is_floating_point


@dataclass
class KernelNode:
    kind: str
    inputs: List[str]
    output: str
    attrs: Dict[str, int] = field(default_factory=dict)


@dataclass
class CaptureNode:
    """Makes the kernel's output retrievable as float32 after execution."""

    source: str
    result: Optional[torch.Tensor] = None


def infer_output_shape(kind: str, shapes: Sequence[Tuple[int, ...]],
                       attrs: Dict[str, int]) -> Tuple[int, ...]:
    """
    Compute the output shape of a kernel from its operand shapes.

    Convolution operands are NHWC input, (F, k, k, C) filter and (F,) bias.

    Raises:
        InvalidConfiguration: If the operands cannot produce a valid output
    """
    if kind == CONVOLUTION:
        (n, h, w, c), (f, kh, kw, fc), (b,) = shapes
        stride = attrs.get("stride", 1)
        pad = attrs.get("pad", 0)
        if stride < 1 or pad < 0:
            raise InvalidConfiguration(f"Invalid stride {stride} / pad {pad}")
        if fc != c or b != f:
            raise InvalidConfiguration(f"Incompatible convolution operands {shapes}")
        out_h = (h + 2 * pad - kh) // stride + 1
        out_w = (w + 2 * pad - kw) // stride + 1
        shape = (n, out_h, out_w, f)
    elif kind == BATCH_MATMUL:
        (n, a, z), (n2, z2, b) = shapes
        if n != n2 or z != z2:
            raise InvalidConfiguration(f"Incompatible batch matmul operands {shapes}")
        shape = (n, a, b)
    elif kind == FULLY_CONNECTED:
        (a, z), (z2, b), (bias,) = shapes
        if z != z2 or bias != b:
            raise InvalidConfiguration(f"Incompatible fully connected operands {shapes}")
        shape = (a, b)
    else:
        raise ValueError(f"Unknown kernel kind: {kind}")

    if any(d <= 0 for d in shape):
        raise InvalidConfiguration(f"{kind} output shape {shape} is not positive", shape)
    return shape


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

class Graph:
    """
    A single-kernel computation graph.

    Build with ``add_input_tensor`` / ``add_weight_tensor``, then one
    ``add_kernel_node`` and one ``add_capture_node``.
    """

    def __init__(self, name: str):
        self.name = name
        self.tensors: Dict[str, TensorSlot] = {}
        self.kernel: Optional[KernelNode] = None
        self.capture: Optional[CaptureNode] = None
        self.precision = Precision.FULL

    @property
    def family(self) -> Optional[str]:
        return self.kernel.kind if self.kernel is not None else None

    @property
    def output(self) -> TensorSlot:
        if self.capture is None:
            raise RuntimeError(f"Graph '{self.name}' has no capture node")
        return self.tensors[self.capture.source]

    @property
    def output_shape(self) -> Tuple[int, ...]:
        return self.output.shape

    def operands(self) -> List[TensorSlot]:
        """Kernel operands in kernel input order."""
        if self.kernel is None:
            raise RuntimeError(f"Graph '{self.name}' has no kernel node")
        return [self.tensors[name] for name in self.kernel.inputs]

    def _add_tensor(self, name, shape, dtype, role, init, generator) -> TensorSlot:
        if name in self.tensors:
            raise ValueError(f"Duplicate tensor name: {name}")
        shape = tuple(int(d) for d in shape)
        if any(d <= 0 for d in shape):
            raise InvalidConfiguration(f"Tensor '{name}' has invalid shape {shape}", shape)
        slot = TensorSlot(name, shape, dtype, role)
        if init is not None:
            slot.set_value(init.materialize(shape, generator).to(dtype))
        self.tensors[name] = slot
        return slot

    def add_input_tensor(self, name: str, shape: Sequence[int],
                         dtype: torch.dtype = torch.float32,
                         init: Optional[InitPolicy] = None,
                         generator: Optional[torch.Generator] = None) -> TensorSlot:
        return self._add_tensor(name, shape, dtype, TensorRole.INPUT, init, generator)

    def add_weight_tensor(self, name: str, shape: Sequence[int],
                          dtype: torch.dtype = torch.float32,
                          init: Optional[InitPolicy] = None,
                          generator: Optional[torch.Generator] = None,
                          role: TensorRole = TensorRole.WEIGHT) -> TensorSlot:
        if role not in (TensorRole.WEIGHT, TensorRole.BIAS):
            raise ValueError(f"Weight tensors must be WEIGHT or BIAS, got {role}")
        return self._add_tensor(name, shape, dtype, role, init, generator)

    def add_kernel_node(self, kind: str, inputs: Sequence[TensorSlot], **attrs) -> KernelNode:
        """Add the single kernel node. Its output shape is inferred."""
        if self.kernel is not None:
            raise RuntimeError(f"Graph '{self.name}' already has a kernel node")
        if kind not in KERNEL_KINDS:
            raise ValueError(f"Unknown kernel kind: {kind}")
        shape = infer_output_shape(kind, [slot.shape for slot in inputs], attrs)
        out = TensorSlot(f"{kind}.out", shape, torch.float32, TensorRole.OUTPUT)
        self.tensors[out.name] = out
        self.kernel = KernelNode(kind, [slot.name for slot in inputs], out.name, dict(attrs))
        return self.kernel

    def add_capture_node(self, node: KernelNode) -> TensorSlot:
        """Designate ``node``'s output as the graph output."""
        if self.capture is not None:
            raise RuntimeError(f"Graph '{self.name}' already has a capture node")
        if node is not self.kernel:
            raise ValueError("Capture node must consume this graph's kernel node")
        self.capture = CaptureNode(node.output)
        return self.tensors[node.output]

    def mark_immutable(self):
        """Mark every initialized input and weight as never mutated again."""
        for slot in self.tensors.values():
            if slot.role is not TensorRole.OUTPUT and slot.value is not None:
                slot.immutable = True

    def validate(self):
        """Check the graph is complete and executable."""
        if self.kernel is None or self.capture is None:
            raise RuntimeError(f"Graph '{self.name}' is incomplete")
        for slot in self.operands():
            if slot.value is None:
                raise RuntimeError(f"Tensor '{slot.name}' has no value")
            if self.precision is Precision.QUANTIZED and slot.qparams is None:
                raise RuntimeError(f"Tensor '{slot.name}' lacks quantization params")

    def bind_output(self, result: torch.Tensor) -> torch.Tensor:
        """
        Materialize a raw kernel result through the capture node.

        Quantized results are dequantized; reduced-precision results are
        converted back to float32.
        """
        out = self.output
        if tuple(result.shape) != out.shape:
            raise RuntimeError(
                f"Backend produced shape {tuple(result.shape)}, expected {out.shape}"
            )
        if out.qparams is not None:
            captured = dequantize(result, out.qparams)
        else:
            captured = result.detach().to(torch.float32)
        self.capture.result = captured.cpu()
        return self.capture.result

    def clone(self, name: Optional[str] = None) -> "Graph":
        """Deep copy with fresh, mutable tensor storage and no bound result."""
        copy = Graph(name or self.name)
        copy.precision = self.precision
        for slot_name, slot in self.tensors.items():
            copy.tensors[slot_name] = TensorSlot(
                slot.name, slot.shape, slot.dtype, slot.role,
                value=slot.value.clone() if slot.value is not None else None,
                qparams=slot.qparams,
            )
        if self.kernel is not None:
            copy.kernel = KernelNode(self.kernel.kind, list(self.kernel.inputs),
                                     self.kernel.output, dict(self.kernel.attrs))
        if self.capture is not None:
            copy.capture = CaptureNode(self.capture.source)
        return copy

    def __repr__(self):
        return (f"Graph(name={self.name!r}, kind={self.family!r}, "
                f"precision={self.precision.name}, tensors={list(self.tensors)})")


def create_graph(name: str) -> Graph:
    return Graph(name)
