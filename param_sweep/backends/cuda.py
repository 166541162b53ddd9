"""
CUDA candidate backend.

Runs the interpreter kernels on a CUDA device. Available only when torch
sees a GPU; the integer path is not offered.
"""

import torch

from ..core.graph import KERNEL_KINDS
from ..core.quantization import Precision
from .interpreter import InterpreterBackend


class CUDABackend(InterpreterBackend):
    """Interpreter kernels executed on ``device``."""

    def __init__(self, name: str = "CUDA", device: str = "cuda"):
        super().__init__(name)
        self.device = device
        self.capabilities = {
            kind: frozenset({Precision.FULL, Precision.REDUCED}) for kind in KERNEL_KINDS
        }

    def is_available(self) -> bool:
        return torch.cuda.is_available()

    def _on_device(self, *tensors):
        return [t.to(self.device) for t in tensors]

    def convolution(self, x, w, b, stride, pad):
        return super().convolution(*self._on_device(x, w, b), stride, pad).cpu()

    def batch_matmul(self, lhs, rhs):
        return super().batch_matmul(*self._on_device(lhs, rhs)).cpu()

    def fully_connected(self, x, w, b):
        return super().fully_connected(*self._on_device(x, w, b)).cpu()
