"""
Element-wise equivalence checking under precision-specific tolerances.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import torch

from .config import ToleranceSpec
from .errors import ShapeMismatch


@dataclass
class ComparisonResult:
    """Outcome of comparing one candidate output to its reference."""

    passed: bool
    max_abs_delta: float
    worst_index: Optional[Tuple[int, ...]]
    expected_value: Optional[float]
    actual_value: Optional[float]
    num_mismatched: int
    num_elements: int
    tolerance: ToleranceSpec

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "max_abs_delta": self.max_abs_delta,
            "worst_index": self.worst_index,
            "expected_value": self.expected_value,
            "actual_value": self.actual_value,
            "num_mismatched": self.num_mismatched,
            "num_elements": self.num_elements,
            "atol": self.tolerance.absolute,
            "rtol": self.tolerance.relative,
        }


def compare(expected: torch.Tensor, actual: torch.Tensor,
            tolerance: ToleranceSpec) -> ComparisonResult:
    """
    Compare two tensors element-wise.

    An element passes if ``|a - e| <= absolute`` or, when a relative bound is
    set, ``|a - e| <= relative * |e|``. NaN in either tensor is a mismatch.

    Args:
        expected: Reference output
        actual: Candidate output
        tolerance: Bounds for this kernel family and precision

    Returns:
        ComparisonResult with the worst absolute delta and its index

    Raises:
        ShapeMismatch: If the shapes differ
    """
    if tuple(expected.shape) != tuple(actual.shape):
        raise ShapeMismatch(tuple(expected.shape), tuple(actual.shape))

    e = expected.detach().cpu().to(torch.float64)
    a = actual.detach().cpu().to(torch.float64)
    numel = e.numel()
    if numel == 0:
        return ComparisonResult(True, 0.0, None, None, None, 0, 0, tolerance)

    delta = (a - e).abs()
    delta = torch.where(torch.isnan(delta), torch.full_like(delta, float("inf")), delta)

    ok = delta <= tolerance.absolute
    if tolerance.relative is not None:
        ok = ok | (delta <= tolerance.relative * e.abs())

    flat = int(torch.argmax(delta.reshape(-1)))
    index = tuple(int(i) for i in np.unravel_index(flat, tuple(e.shape)))
    num_mismatched = int((~ok).sum())

    return ComparisonResult(
        passed=num_mismatched == 0,
        max_abs_delta=float(delta.reshape(-1)[flat]),
        worst_index=index,
        expected_value=float(e.reshape(-1)[flat]),
        actual_value=float(a.reshape(-1)[flat]),
        num_mismatched=num_mismatched,
        num_elements=numel,
        tolerance=tolerance,
    )


def format_diagnostic(result: ComparisonResult) -> str:
    """Human-readable worst-delta diagnostic."""
    if result.worst_index is None:
        return "empty output"
    text = (f"max |delta| = {result.max_abs_delta:.6g} at {result.worst_index} "
            f"(expected {result.expected_value:.6g}, actual {result.actual_value:.6g}); "
            f"{result.num_mismatched}/{result.num_elements} elements outside "
            f"atol={result.tolerance.absolute:g}")
    if result.tolerance.relative is not None:
        text += f", rtol={result.tolerance.relative:g}"
    return text
