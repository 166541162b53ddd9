"""
Error taxonomy for parameter sweep testing.

Each error is scoped to a single (configuration, precision) test case. The
orchestrator decides whether an error skips or fails the case; none of them
aborts the sweep.
"""

from typing import Optional, Tuple


class SweepError(Exception):
    """Base class for all sweep errors."""


class InvalidConfiguration(SweepError, ValueError):
    """
    A parameter tuple yields an unbuildable graph.

    Raised by the graph builder when a shape formula produces a non-positive
    or otherwise invalid dimension, e.g. a kernel larger than its input.
    """

    def __init__(self, message: str, shape: Optional[Tuple[int, ...]] = None):
        super().__init__(message)
        self.shape = shape


class DegenerateRange(SweepError, ValueError):
    """Observed value range has min == max, so no scale can be derived."""

    def __init__(self, min_val: float, max_val: float):
        super().__init__(
            f"Degenerate quantization range: min={min_val!r}, max={max_val!r}"
        )
        self.min_val = min_val
        self.max_val = max_val


class BackendUnavailable(SweepError, RuntimeError):
    """The named backend is not registered, not available, or not capable."""

    def __init__(self, backend: str, reason: str):
        super().__init__(f"Backend '{backend}' unavailable: {reason}")
        self.backend = backend
        self.reason = reason


class ExecutionTimeout(SweepError, TimeoutError):
    """A backend did not finish a single case within its deadline."""

    def __init__(self, backend: str, deadline: float):
        super().__init__(
            f"Backend '{backend}' did not finish within {deadline:.1f}s"
        )
        self.backend = backend
        self.deadline = deadline


class ShapeMismatch(SweepError, AssertionError):
    """Expected and actual outputs differ in shape. Indicates a logic bug."""

    def __init__(self, expected: Tuple[int, ...], actual: Tuple[int, ...]):
        super().__init__(f"Shape mismatch: {tuple(expected)} vs {tuple(actual)}")
        self.expected = tuple(expected)
        self.actual = tuple(actual)
