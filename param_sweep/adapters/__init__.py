"""
Kernel spec adapters, one per kernel family.
"""

from .convolution_adapter import CONVOLUTION_SPEC
from .batch_matmul_adapter import BATCH_MATMUL_SPEC
from .fully_connected_adapter import FULLY_CONNECTED_SPEC

KERNEL_SPECS = {
    spec.family: spec
    for spec in (CONVOLUTION_SPEC, BATCH_MATMUL_SPEC, FULLY_CONNECTED_SPEC)
}


def get_kernel_spec(family: str):
    try:
        return KERNEL_SPECS[family]
    except KeyError:
        raise KeyError(f"Unknown kernel family: {family}") from None


__all__ = [
    "CONVOLUTION_SPEC",
    "BATCH_MATMUL_SPEC",
    "FULLY_CONNECTED_SPEC",
    "KERNEL_SPECS",
    "get_kernel_spec",
]
