"""
Precision adaptation of sweep graphs.

Produces the reduced-precision or quantized variant of a full-precision
graph. Quantization policy per tensor role:

- weights: symmetric int8, offset 0; fully-connected weights are rounded
  against the graph's inputs (see ``round_to_inputs``)
- inputs and kernel output (activations): asymmetric int8 over the observed
  range extended to include zero
- bias: symmetric int32 with scale = product of the other operands' scales,
  so it adds directly into the integer accumulator
"""

from typing import Dict, Optional, Tuple

import torch

from .dispatcher import execute
from .errors import DegenerateRange
from .graph import FULLY_CONNECTED, Graph, TensorRole, TensorSlot
from .quantization import (
    Precision,
    QuantizationParams,
    choose_quantization_params,
    dequantize,
    quantize,
    substitute_range,
)


Profile = Dict[str, Tuple[float, float]]

_SYMMETRIC_ROLES = (TensorRole.WEIGHT,)


def observed_range(tensor: torch.Tensor) -> Tuple[float, float]:
    return float(tensor.min()), float(tensor.max())


def derive_params(min_val: float, max_val: float, role: TensorRole) -> QuantizationParams:
    """
    Quantization params for a tensor of the given role.

    A degenerate range is replaced by ``substitute_range``; the result is
    deterministic for a given input.
    """
    symmetric = role in _SYMMETRIC_ROLES
    try:
        return choose_quantization_params(min_val, max_val, symmetric=symmetric)
    except DegenerateRange as e:
        lo, hi = substitute_range(e.min_val)
        return choose_quantization_params(lo, hi, symmetric=symmetric)


def profile_graph(graph: Graph, backend: str = "Interpreter",
                  deadline: Optional[float] = None, registry=None) -> Profile:
    """
    Run the full-precision graph on a reference backend and record the output range.

    Args:
        graph: Full-precision graph; a clone is executed
        backend: Registered backend name used as reference
        deadline: Seconds allowed for the run, or None to wait indefinitely
        registry: Registry to resolve ``backend`` from; defaults to the shared one

    Raises:
        BackendUnavailable: If the reference backend cannot run the graph
        ExecutionTimeout: If the run exceeds ``deadline``
    """
    if graph.precision is not Precision.FULL:
        raise ValueError("Only full-precision graphs can be profiled")
    result = execute(graph.clone(), backend, deadline, registry)
    return {graph.output.name: observed_range(result)}


def _to_reduced(graph: Graph) -> Graph:
    adapted = graph.clone()
    for slot in adapted.tensors.values():
        if slot.value is not None and slot.is_floating:
            slot.set_value(slot.value.to(torch.float16))
        elif slot.value is None and slot.is_floating:
            slot.dtype = torch.float16
    adapted.precision = Precision.REDUCED
    adapted.mark_immutable()
    return adapted


def _quantize_slot(slot: TensorSlot, qparams: QuantizationParams):
    slot.set_value(quantize(slot.value, qparams), qparams)


def round_to_inputs(weights: torch.Tensor, inputs: torch.Tensor,
                    qinputs: torch.Tensor, qparams: QuantizationParams) -> torch.Tensor:
    """
    Quantize fully-connected weights against the inputs they will be applied to.

    Each weight is rounded to one of its two neighbouring grid points, so it
    stays within one step of its real value. Rows are visited in order and
    the neighbour is picked that keeps ``qinputs @ dequantized_weights``
    closest to ``inputs @ weights``, absorbing the error of earlier rows
    and of the input quantization.

    Args:
        weights: Real weights of shape (Z, B)
        inputs: Real inputs of shape (A, Z)
        qinputs: Dequantized quantized inputs of shape (A, Z)
        qparams: Per-tensor weight params (symmetric)

    Returns:
        Integer weights in ``qparams.dtype``
    """
    scale = qparams.scale
    w = weights.to(torch.float64)
    x = inputs.to(torch.float64)
    xq = qinputs.to(torch.float64)

    scaled = w / scale
    nearest = torch.round(scaled).clamp(qparams.qmin, qparams.qmax)
    other = torch.where(scaled >= nearest, nearest + 1, nearest - 1)
    other = other.clamp(qparams.qmin, qparams.qmax)

    q = nearest.clone()
    residual = torch.zeros(x.shape[0], w.shape[1], dtype=torch.float64)
    for z in range(w.shape[0]):
        residual += torch.outer(x[:, z], w[z])
        proj = xq[:, z] @ residual
        norm = xq[:, z] @ xq[:, z]
        near, alt = nearest[z] * scale, other[z] * scale
        # ||residual - outer(xq, c)||^2 up to a constant
        pick = torch.where(alt * alt * norm - 2 * alt * proj < near * near * norm - 2 * near * proj,
                           other[z], nearest[z])
        q[z] = pick
        residual -= torch.outer(xq[:, z], pick * scale)
    return q.to(qparams.dtype)


def _to_quantized(graph: Graph, profile: Optional[Profile], **profile_options) -> Graph:
    output_name = graph.output.name
    if profile is None or output_name not in profile:
        profile = dict(profile or {})
        profile.update(profile_graph(graph, **profile_options))

    adapted = graph.clone()
    accumulator_scale = 1.0
    biases = []
    activation = None
    for slot in adapted.operands():
        if slot.role is TensorRole.BIAS:
            biases.append(slot)
            continue
        real = slot.value
        lo, hi = profile.get(slot.name, observed_range(real))
        qparams = derive_params(lo, hi, slot.role)
        if (slot.role is TensorRole.WEIGHT and activation is not None
                and adapted.family == FULLY_CONNECTED):
            inputs, qinputs = activation
            slot.set_value(round_to_inputs(real, inputs, qinputs, qparams), qparams)
        else:
            _quantize_slot(slot, qparams)
        if slot.role is TensorRole.INPUT:
            activation = (real, dequantize(slot.value, qparams))
        accumulator_scale *= qparams.scale

    for slot in biases:
        _quantize_slot(slot, QuantizationParams(accumulator_scale, 0, torch.int32))

    out = adapted.output
    lo, hi = profile[output_name]
    out.qparams = derive_params(lo, hi, TensorRole.OUTPUT)
    out.dtype = out.qparams.dtype

    adapted.precision = Precision.QUANTIZED
    adapted.mark_immutable()
    return adapted


def adapt(graph: Graph, precision: Precision, profile: Optional[Profile] = None,
          **profile_options) -> Graph:
    """
    Produce a precision-adjusted variant of a full-precision graph.

    Args:
        graph: Full-precision base graph; never modified
        precision: Target precision
        profile: Observed ``(min, max)`` per tensor name. The kernel output
            range is profiled when missing.
        **profile_options: ``backend``, ``deadline`` and ``registry`` for
            that profiling run (see ``profile_graph``)

    Returns:
        ``graph`` itself for FULL, otherwise a new graph with identical
        logical shapes
    """
    if graph.precision is not Precision.FULL:
        raise ValueError(f"Can only adapt full-precision graphs, got {graph.precision}")
    if precision is Precision.FULL:
        return graph
    if precision is Precision.REDUCED:
        return _to_reduced(graph)
    if precision is Precision.QUANTIZED:
        return _to_quantized(graph, profile, **profile_options)
    raise ValueError(f"Unknown precision: {precision}")
