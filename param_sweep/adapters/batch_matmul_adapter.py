"""
Batched matrix multiply kernel spec.

Multiplies LHS {N, A, Z} by RHS {N, Z, B} to get {N, A, B}, with B = A.
"""

from ..core.graph import BATCH_MATMUL, Xavier
from ..core.graph_builder import KernelSpec, OperandSpec


BATCH_MATMUL_SPEC = KernelSpec(
    family=BATCH_MATMUL,
    label="BatchMatMul",
    param_names=("N", "A", "Z"),
    operands=(
        OperandSpec("LHS", lambda p: (p["N"], p["A"], p["Z"]), Xavier(10)),
        OperandSpec("RHS", lambda p: (p["N"], p["Z"], p["B"]), Xavier(10)),
    ),
    output_shape=lambda p: (p["N"], p["A"], p["B"]),
    derived=lambda p: {"B": p.get("B", p["A"])},
    default_domains=(
        ("N", (1, 4, 16, 24)),
        ("A", range(10, 16)),
        ("Z", (32, 64, 128, 256)),
    ),
)
