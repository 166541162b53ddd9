"""
Sweep configuration and tolerance tables.
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .graph import BATCH_MATMUL, CONVOLUTION, FULLY_CONNECTED
from .quantization import Precision


# Precisions ordered from tightest to loosest tolerance.
PRECISION_ORDER = (Precision.FULL, Precision.REDUCED, Precision.QUANTIZED)


@dataclass(frozen=True)
class ToleranceSpec:
    """Absolute bound and optional relative bound for one comparison."""

    absolute: float
    relative: Optional[float] = None

    def __post_init__(self):
        if self.absolute < 0:
            raise ValueError(f"Absolute tolerance must be >= 0, got {self.absolute}")
        if self.relative is not None and self.relative < 0:
            raise ValueError(f"Relative tolerance must be >= 0, got {self.relative}")

    def covers(self, other: "ToleranceSpec") -> bool:
        """True if every delta accepted by ``other`` is accepted by self."""
        return (self.absolute >= other.absolute
                and (self.relative or 0.0) >= (other.relative or 0.0))


class ToleranceTable:
    """
    Fixed tolerances per kernel family and precision.

    Quantized bounds must cover reduced bounds, which must cover full bounds.
    """

    def __init__(self, table: Mapping[str, Mapping[Precision, ToleranceSpec]]):
        self._table: Dict[str, Dict[Precision, ToleranceSpec]] = {
            family: dict(specs) for family, specs in table.items()
        }
        for family, specs in self._table.items():
            present = [p for p in PRECISION_ORDER if p in specs]
            for tighter, looser in zip(present, present[1:]):
                if not specs[looser].covers(specs[tighter]):
                    raise ValueError(
                        f"{family}: {looser.label} tolerance {specs[looser]} is tighter "
                        f"than {tighter.label} tolerance {specs[tighter]}"
                    )

    def lookup(self, family: str, precision: Precision) -> ToleranceSpec:
        try:
            return self._table[family][precision]
        except KeyError:
            raise KeyError(f"No tolerance for {family} at {precision.label}") from None

    def families(self):
        return list(self._table)


DEFAULT_TOLERANCES = ToleranceTable({
    CONVOLUTION: {
        Precision.FULL: ToleranceSpec(0.0001),
        Precision.REDUCED: ToleranceSpec(0.005),
        Precision.QUANTIZED: ToleranceSpec(0.045),
    },
    BATCH_MATMUL: {
        Precision.FULL: ToleranceSpec(0.0001),
        Precision.REDUCED: ToleranceSpec(0.005),
        Precision.QUANTIZED: ToleranceSpec(0.06),
    },
    FULLY_CONNECTED: {
        Precision.FULL: ToleranceSpec(0.0001),
        Precision.REDUCED: ToleranceSpec(0.004),
        Precision.QUANTIZED: ToleranceSpec(0.065),
    },
})


@dataclass
class SweepConfig:
    """Configuration for a parameter sweep.

    Attributes:
        reference_backend: Backend whose full-precision output is ground truth
        deadline_s: Per-execution deadline in seconds (None disables it)
        workers: Number of test cases run concurrently
        verbose: Print per-case progress and a final summary
        base_seed: Mixed into every per-case seed
        tolerances: Tolerance table applied by the judge
    """
    reference_backend: str = "Interpreter"
    deadline_s: Optional[float] = 60.0
    workers: int = 1
    verbose: bool = False
    base_seed: int = 0
    tolerances: ToleranceTable = field(default_factory=lambda: DEFAULT_TOLERANCES)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.deadline_s is not None and self.deadline_s <= 0:
            raise ValueError(f"deadline_s must be positive, got {self.deadline_s}")
