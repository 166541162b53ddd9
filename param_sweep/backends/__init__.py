"""
Execution backend initialization.
"""

from .base import ExecutionBackend
from .interpreter import InterpreterBackend
from .cpu import CPUBackend
from .cuda import CUDABackend

__all__ = [
    "ExecutionBackend",
    "InterpreterBackend",
    "CPUBackend",
    "CUDABackend",
]
