"""
CPU candidate backend.

Uses different kernel formulations from the interpreter: im2col convolution,
einsum batched matmul and addmm fully connected.
"""

import torch
import torch.nn.functional as F

from .base import ExecutionBackend


class CPUBackend(ExecutionBackend):
    """Candidate kernels on CPU, all families and precisions."""

    def __init__(self, name: str = "CPU"):
        super().__init__(name)

    def convolution(self, x, w, b, stride, pad):
        n, h, width, _ = x.shape
        filters, kernel = w.shape[0], w.shape[1]
        out_h = (h + 2 * pad - kernel) // stride + 1
        out_w = (width + 2 * pad - kernel) // stride + 1

        # (N, C*k*k, L) columns; filter flattened in the same (C, kh, kw) order
        cols = F.unfold(x.permute(0, 3, 1, 2), kernel_size=kernel, padding=pad, stride=stride)
        w_mat = w.permute(0, 3, 1, 2).reshape(filters, -1)
        out = torch.matmul(w_mat, cols) + b.view(1, filters, 1)
        return out.view(n, filters, out_h, out_w).permute(0, 2, 3, 1).contiguous()

    def batch_matmul(self, lhs, rhs):
        return torch.einsum("naz,nzb->nab", lhs, rhs)

    def fully_connected(self, x, w, b):
        return torch.addmm(b, x, w)
