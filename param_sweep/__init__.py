"""
Parameter Sweep Framework
Cross-backend numerical equivalence testing for tensor kernels.
"""

__version__ = "0.1.0"
__author__ = "Research Team"

from .core import (
    Precision,
    SweepConfig,
    SweepOrchestrator,
    SweepReport,
    build,
    adapt,
    execute,
    compare,
    generate_configurations,
)
from .adapters import (
    CONVOLUTION_SPEC,
    BATCH_MATMUL_SPEC,
    FULLY_CONNECTED_SPEC,
    get_kernel_spec,
)

__all__ = [
    "Precision",
    "SweepConfig",
    "SweepOrchestrator",
    "SweepReport",
    "build",
    "adapt",
    "execute",
    "compare",
    "generate_configurations",
    "CONVOLUTION_SPEC",
    "BATCH_MATMUL_SPEC",
    "FULLY_CONNECTED_SPEC",
    "get_kernel_spec",
]
