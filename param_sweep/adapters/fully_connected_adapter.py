"""
Fully connected kernel spec.

Input {A, Z} times weights {Z, B} plus bias {B} gives {A, B}.
"""

from ..core.graph import FULLY_CONNECTED, TensorRole, Uniform
from ..core.graph_builder import KernelSpec, OperandSpec


FULLY_CONNECTED_SPEC = KernelSpec(
    family=FULLY_CONNECTED,
    label="FC",
    param_names=("A", "Z", "B"),
    operands=(
        OperandSpec("input", lambda p: (p["A"], p["Z"]), Uniform(-0.2, 0.2)),
        OperandSpec("weights", lambda p: (p["Z"], p["B"]), Uniform(-0.4, 0.4),
                    TensorRole.WEIGHT),
        OperandSpec("bias", lambda p: (p["B"],), Uniform(0.0, 0.000005), TensorRole.BIAS),
    ),
    output_shape=lambda p: (p["A"], p["B"]),
    default_domains=(
        ("A", (1, 4, 16, 64)),
        ("Z", (256, 512, 1024, 2048, 4096)),
        ("B", (64, 256, 1024)),
    ),
)
