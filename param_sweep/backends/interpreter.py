"""
Reference interpreter backend.

Straightforward torch functional kernels on CPU. Its full-precision output is
treated as ground truth.
"""

import torch
import torch.nn.functional as F

from .base import ExecutionBackend


def _to_nchw(t: torch.Tensor) -> torch.Tensor:
    return t.permute(0, 3, 1, 2)


def _to_nhwc(t: torch.Tensor) -> torch.Tensor:
    return t.permute(0, 2, 3, 1).contiguous()


class InterpreterBackend(ExecutionBackend):
    """Reference kernels, all families and precisions."""

    def __init__(self, name: str = "Interpreter"):
        super().__init__(name)

    def convolution(self, x, w, b, stride, pad):
        out = F.conv2d(_to_nchw(x), _to_nchw(w), b, stride=stride, padding=pad)
        return _to_nhwc(out)

    def batch_matmul(self, lhs, rhs):
        return torch.bmm(lhs, rhs)

    def fully_connected(self, x, w, b):
        return torch.matmul(x, w) + b
