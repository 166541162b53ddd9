"""
Configuration space generation.

Enumerates the Cartesian product of per-kernel integer parameter domains and
candidate backends. Order is deterministic: backend outermost, then
lexicographic over the domains in the order given.
"""

import hashlib
import itertools
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

import numpy as np


Domain = Tuple[str, Sequence[int]]


@dataclass(frozen=True)
class ParameterTuple:
    """Ordered, immutable set of named integer parameters."""

    names: Tuple[str, ...]
    values: Tuple[int, ...]

    def __post_init__(self):
        if len(self.names) != len(self.values):
            raise ValueError(f"{len(self.names)} names for {len(self.values)} values")
        if len(set(self.names)) != len(self.names):
            raise ValueError(f"Duplicate parameter names: {self.names}")

    @classmethod
    def from_dict(cls, params: Dict[str, int]) -> "ParameterTuple":
        return cls(tuple(params), tuple(int(v) for v in params.values()))

    def __getitem__(self, name: str) -> int:
        try:
            return self.values[self.names.index(name)]
        except ValueError:
            raise KeyError(name) from None

    def __contains__(self, name: str) -> bool:
        return name in self.names

    def as_dict(self) -> Dict[str, int]:
        return dict(zip(self.names, self.values))

    def describe(self) -> str:
        return "; ".join(f"{n}: {v}" for n, v in zip(self.names, self.values))


@dataclass(frozen=True)
class Configuration:
    """One (parameter tuple, backend) pair for a kernel family."""

    family: str
    params: ParameterTuple
    backend: str

    @property
    def case_id(self) -> str:
        parts = "-".join(f"{n}{v}" for n, v in zip(self.params.names, self.params.values))
        return f"{self.backend}-{parts}" if parts else self.backend

    @property
    def seed(self) -> int:
        return case_seed(self)


def case_seed(configuration: Configuration, base_seed: int = 0) -> int:
    """
    Derive a reproducible seed from a configuration's identity.

    Stable across processes and runs; independent of precision so that every
    precision of a configuration sees identical inputs.
    """
    key = "|".join([
        configuration.family,
        configuration.params.describe(),
        configuration.backend,
        str(base_seed),
    ])
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "little") & 0x7FFF_FFFF_FFFF_FFFF


def _domain_values(values: Iterable[int]) -> Tuple[int, ...]:
    result = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, np.integer)):
            raise TypeError(f"Parameter values must be integers, got {v!r}")
        result.append(int(v))
    return tuple(result)


def iter_configurations(
    family: str,
    domains: Sequence[Domain],
    backends: Sequence[str],
) -> Iterator[Configuration]:
    """Lazily yield every configuration. See ``generate_configurations``."""
    names = tuple(name for name, _ in domains)
    value_lists = [_domain_values(values) for _, values in domains]
    for backend in backends:
        for combo in itertools.product(*value_lists):
            yield Configuration(family, ParameterTuple(names, combo), backend)


def generate_configurations(
    family: str,
    domains: Sequence[Domain],
    backends: Sequence[str],
) -> List[Configuration]:
    """
    Produce the full Cartesian product of parameter domains and backends.

    Args:
        family: Kernel family name
        domains: Ordered ``(name, values)`` pairs; values may be a ``range``
        backends: Candidate backend identifiers

    Returns:
        List of configurations. Empty if any domain or the backend list is
        empty. Nothing is skipped or deduplicated.
    """
    return list(iter_configurations(family, domains, backends))


def count_configurations(domains: Sequence[Domain], backends: Sequence[str]) -> int:
    """Number of configurations ``generate_configurations`` would produce."""
    sizes = [len(_domain_values(values)) for _, values in domains]
    return int(np.prod(sizes, dtype=np.int64)) * len(backends)
