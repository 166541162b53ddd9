"""
Graph construction from a kernel spec and a parameter tuple.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple, Union

import torch

from .config_space import Domain, ParameterTuple
from .errors import InvalidConfiguration, ShapeMismatch
from .graph import Graph, InitPolicy, TensorRole, create_graph


Params = Dict[str, int]
ShapeFormula = Callable[[Params], Tuple[int, ...]]


def _no_attrs(params: Params) -> Dict[str, int]:
    return {}


def _no_derived(params: Params) -> Dict[str, int]:
    return {}


@dataclass(frozen=True)
class OperandSpec:
    """One kernel operand: its shape formula, initialization and role."""

    name: str
    shape: ShapeFormula
    init: InitPolicy
    role: TensorRole = TensorRole.INPUT


@dataclass(frozen=True)
class KernelSpec:
    """
    How to realize a kernel family as a graph.

    Attributes:
        family: Kernel kind, one of the graph's KERNEL_KINDS
        label: Short name used in log lines
        param_names: Parameters swept by default, in domain order
        operands: Operands in kernel input order
        output_shape: Declared output shape formula
        attrs: Kernel attributes derived from the parameters
        defaults: Values for optional parameters not present in a tuple
        derived: Parameters computed from the others (e.g. B = A)
        default_domains: Sweep domains used when none are given
    """

    family: str
    label: str
    param_names: Tuple[str, ...]
    operands: Tuple[OperandSpec, ...]
    output_shape: ShapeFormula
    attrs: Callable[[Params], Dict[str, int]] = _no_attrs
    defaults: Mapping[str, int] = field(default_factory=dict)
    derived: Callable[[Params], Dict[str, int]] = _no_derived
    default_domains: Tuple[Domain, ...] = ()

    def resolve(self, params: Union[ParameterTuple, Mapping[str, int]]) -> Params:
        """Merge defaults, the given parameters and derived parameters."""
        given = params.as_dict() if isinstance(params, ParameterTuple) else dict(params)
        missing = [name for name in self.param_names if name not in given]
        if missing:
            raise InvalidConfiguration(f"{self.label}: missing parameters {missing}")
        values = dict(self.defaults)
        values.update(given)
        values.update(self.derived(values))
        return values


def _check_shape(spec: KernelSpec, what: str, shape: Tuple[int, ...]) -> Tuple[int, ...]:
    shape = tuple(int(d) for d in shape)
    if not shape or any(d <= 0 for d in shape):
        raise InvalidConfiguration(f"{spec.label}: {what} shape {shape} is invalid", shape)
    return shape


def build(kernel_spec: KernelSpec,
          params: Union[ParameterTuple, Mapping[str, int]],
          seed: int,
          generator: Optional[torch.Generator] = None) -> Graph:
    """
    Build a self-contained graph for one parameter tuple.

    Args:
        kernel_spec: Kernel family description
        params: Concrete parameters
        seed: Seed for random initialization
        generator: Optional pre-built generator; a fresh one seeded with
            ``seed`` is created otherwise

    Returns:
        Graph with inputs, initialized weights, one kernel node and a capture
        node. Inputs and weights are marked immutable.

    Raises:
        InvalidConfiguration: If any shape formula yields an invalid dimension
        ShapeMismatch: If the inferred output shape disagrees with the
            declared formula
    """
    values = kernel_spec.resolve(params)
    try:
        expected = _check_shape(kernel_spec, "output", kernel_spec.output_shape(values))
    except ZeroDivisionError:
        raise InvalidConfiguration(f"{kernel_spec.label}: invalid parameters {values}") from None

    if generator is None:
        generator = torch.Generator().manual_seed(seed)

    graph = create_graph(kernel_spec.family)
    operands = []
    for operand in kernel_spec.operands:
        shape = _check_shape(kernel_spec, operand.name, operand.shape(values))
        if operand.role is TensorRole.INPUT:
            slot = graph.add_input_tensor(operand.name, shape, init=operand.init,
                                          generator=generator)
        else:
            slot = graph.add_weight_tensor(operand.name, shape, init=operand.init,
                                           generator=generator, role=operand.role)
        operands.append(slot)

    node = graph.add_kernel_node(kernel_spec.family, operands, **kernel_spec.attrs(values))
    output = graph.add_capture_node(node)
    if output.shape != expected:
        raise ShapeMismatch(expected, output.shape)

    graph.mark_immutable()
    return graph
