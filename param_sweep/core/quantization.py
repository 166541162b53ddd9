"""
Numeric precisions and integer quantization helpers.

Quantized tensors use an affine mapping ``real = (q - offset) * scale``.
Activations are quantized asymmetrically over a range extended to include
zero; weights are quantized symmetrically (offset 0).
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import torch

from .errors import DegenerateRange


# Smallest range substituted for a degenerate (constant) tensor.
MIN_RANGE = 1e-6


class Precision(Enum):
    """Numeric representation under test."""

    FULL = "float32"
    REDUCED = "float16"
    QUANTIZED = "int8"

    @property
    def storage_dtype(self) -> torch.dtype:
        return _STORAGE_DTYPES[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


_STORAGE_DTYPES = {
    Precision.FULL: torch.float32,
    Precision.REDUCED: torch.float16,
    Precision.QUANTIZED: torch.int8,
}

_LABELS = {
    Precision.FULL: "Float",
    Precision.REDUCED: "Float16",
    Precision.QUANTIZED: "Int8",
}


def integer_range(dtype: torch.dtype) -> Tuple[int, int]:
    """Return (qmin, qmax) of a signed integer dtype."""
    if dtype not in (torch.int8, torch.int16, torch.int32):
        raise ValueError(f"Not a supported quantized dtype: {dtype}")
    info = torch.iinfo(dtype)
    return info.min, info.max


@dataclass(frozen=True)
class QuantizationParams:
    """Per-tensor scale and zero offset."""

    scale: float
    offset: int
    dtype: torch.dtype = torch.int8

    def __post_init__(self):
        if not (self.scale > 0 and math.isfinite(self.scale)):
            raise ValueError(f"Quantization scale must be positive, got {self.scale}")
        qmin, qmax = integer_range(self.dtype)
        if not qmin <= self.offset <= qmax:
            raise ValueError(f"Offset {self.offset} outside [{qmin}, {qmax}]")

    @property
    def qmin(self) -> int:
        return integer_range(self.dtype)[0]

    @property
    def qmax(self) -> int:
        return integer_range(self.dtype)[1]


def choose_quantization_params(
    min_val: float,
    max_val: float,
    symmetric: bool = False,
    dtype: torch.dtype = torch.int8,
) -> QuantizationParams:
    """
    Derive scale and offset from an observed value range.

    Args:
        min_val: Observed minimum
        max_val: Observed maximum
        symmetric: Use a zero offset and a range symmetric around zero
        dtype: Target signed integer dtype

    Returns:
        QuantizationParams covering [min_val, max_val] and zero

    Raises:
        DegenerateRange: If min_val == max_val
    """
    if not (math.isfinite(min_val) and math.isfinite(max_val)):
        raise ValueError(f"Range must be finite, got [{min_val}, {max_val}]")
    if min_val > max_val:
        raise ValueError(f"Inverted range [{min_val}, {max_val}]")
    if min_val == max_val:
        raise DegenerateRange(min_val, max_val)

    qmin, qmax = integer_range(dtype)
    min_val = min(min_val, 0.0)
    max_val = max(max_val, 0.0)

    if symmetric:
        scale = max(-min_val, max_val) / qmax
        return QuantizationParams(scale, 0, dtype)

    scale = (max_val - min_val) / (qmax - qmin)
    offset = int(round(qmin - min_val / scale))
    offset = max(qmin, min(qmax, offset))
    return QuantizationParams(scale, offset, dtype)


def substitute_range(value: float) -> Tuple[float, float]:
    """
    Deterministic replacement range for a tensor holding a single value.

    The range spans zero and the value, widened to at least MIN_RANGE.
    """
    lo = min(value, 0.0)
    hi = max(value, 0.0)
    if hi - lo < MIN_RANGE:
        hi = lo + MIN_RANGE
    return lo, hi


def quantize(tensor: torch.Tensor, qparams: QuantizationParams) -> torch.Tensor:
    """Map real values to the integer domain, rounding and saturating."""
    q = torch.round(tensor.to(torch.float64) / qparams.scale) + qparams.offset
    return q.clamp(qparams.qmin, qparams.qmax).to(qparams.dtype)


def dequantize(tensor: torch.Tensor, qparams: QuantizationParams) -> torch.Tensor:
    """Map integer values back to float32."""
    real = (tensor.to(torch.float64) - qparams.offset) * qparams.scale
    return real.to(torch.float32)


def requantize(
    accumulator: torch.Tensor,
    accumulator_scale: float,
    qparams: QuantizationParams,
) -> torch.Tensor:
    """
    Rescale an integer accumulator into the output's quantized domain.

    Args:
        accumulator: Integer-valued accumulator (any dtype holding exact ints)
        accumulator_scale: Real value of one accumulator unit
        qparams: Output quantization parameters
    """
    q = torch.round(accumulator.to(torch.float64) * (accumulator_scale / qparams.scale))
    q = q + qparams.offset
    return q.clamp(qparams.qmin, qparams.qmax).to(qparams.dtype)
