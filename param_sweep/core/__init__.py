"""
Core module initialization.
"""

from .errors import (
    SweepError,
    InvalidConfiguration,
    DegenerateRange,
    BackendUnavailable,
    ExecutionTimeout,
    ShapeMismatch,
)
from .quantization import Precision, QuantizationParams, choose_quantization_params
from .config_space import (
    ParameterTuple,
    Configuration,
    case_seed,
    generate_configurations,
    count_configurations,
)
from .graph import Graph, TensorRole, Constant, Uniform, Xavier, create_graph
from .graph_builder import KernelSpec, OperandSpec, build
from .precision import adapt, profile_graph
from .config import SweepConfig, ToleranceSpec, ToleranceTable, DEFAULT_TOLERANCES
from .dispatcher import BackendRegistry, default_registry, execute
from .judge import ComparisonResult, compare, format_diagnostic
from .sweep import CaseRecord, CaseStatus, SweepOrchestrator, SweepReport

__all__ = [
    "SweepError",
    "InvalidConfiguration",
    "DegenerateRange",
    "BackendUnavailable",
    "ExecutionTimeout",
    "ShapeMismatch",
    "Precision",
    "QuantizationParams",
    "choose_quantization_params",
    "ParameterTuple",
    "Configuration",
    "case_seed",
    "generate_configurations",
    "count_configurations",
    "Graph",
    "TensorRole",
    "Constant",
    "Uniform",
    "Xavier",
    "create_graph",
    "KernelSpec",
    "OperandSpec",
    "build",
    "adapt",
    "profile_graph",
    "SweepConfig",
    "ToleranceSpec",
    "ToleranceTable",
    "DEFAULT_TOLERANCES",
    "BackendRegistry",
    "default_registry",
    "execute",
    "ComparisonResult",
    "compare",
    "format_diagnostic",
    "CaseRecord",
    "CaseStatus",
    "SweepOrchestrator",
    "SweepReport",
]
