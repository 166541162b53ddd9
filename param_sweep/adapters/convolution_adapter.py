"""
Convolution kernel spec.

A single NHWC convolution over a {1, size, size, depth} input with ``depth``
output channels, a constant filter and bias, and a Xavier-initialized input.
"""

from ..core.errors import InvalidConfiguration
from ..core.graph import CONVOLUTION, Constant, TensorRole, Xavier
from ..core.graph_builder import KernelSpec, OperandSpec


def conv_output_size(size: int, kernel: int, stride: int, pad: int) -> int:
    if kernel < 1 or stride < 1 or pad < 0:
        raise InvalidConfiguration(
            f"Conv kernel {kernel} / stride {stride} / pad {pad} is invalid"
        )
    return (size + 2 * pad - kernel) // stride + 1


def _output_shape(p):
    out = conv_output_size(p["size"], p["kernel"], p["stride"], p["pad"])
    return (1, out, out, p["depth"])


CONVOLUTION_SPEC = KernelSpec(
    family=CONVOLUTION,
    label="Conv",
    param_names=("size", "depth", "kernel"),
    operands=(
        OperandSpec("var", lambda p: (1, p["size"], p["size"], p["depth"]), Xavier(1)),
        OperandSpec("filter", lambda p: (p["depth"], p["kernel"], p["kernel"], p["depth"]),
                    Constant(0.1), TensorRole.WEIGHT),
        OperandSpec("bias", lambda p: (p["depth"],), Constant(0.1), TensorRole.BIAS),
    ),
    output_shape=_output_shape,
    attrs=lambda p: {"stride": p["stride"], "pad": p["pad"]},
    defaults={"stride": 1, "pad": 0},
    default_domains=(
        ("size", (5, 7, 15)),
        ("depth", (8, 64)),
        ("kernel", (1, 3)),
    ),
)
