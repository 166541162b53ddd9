"""
Sweep orchestration.

Runs every (configuration x precision) pair as an isolated test case:
build the base graph, run the full-precision reference, run the candidate
at the requested precision, and judge the two outputs.
"""

from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .config import SweepConfig
from .config_space import Configuration, case_seed, generate_configurations
from .dispatcher import BackendRegistry, default_registry, execute
from .errors import BackendUnavailable, InvalidConfiguration
from .graph_builder import KernelSpec, build
from .judge import ComparisonResult, compare, format_diagnostic
from .precision import adapt, observed_range
from .quantization import Precision


class CaseStatus(Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class CaseRecord:
    """Result of one (configuration, precision) test case."""

    configuration: Configuration
    precision: Precision
    status: CaseStatus
    comparison: Optional[ComparisonResult] = None
    message: Optional[str] = None

    @property
    def family(self) -> str:
        return self.configuration.family

    def diagnostic(self) -> str:
        if self.comparison is not None and not self.comparison.passed:
            return format_diagnostic(self.comparison)
        return self.message or ""

    def to_dict(self) -> dict:
        """Flat record for reporting."""
        record = {
            "family": self.family,
            "backend": self.configuration.backend,
            "precision": self.precision.label,
            "status": self.status.value,
        }
        record.update(self.configuration.params.as_dict())
        if self.comparison is not None:
            record["max_abs_delta"] = self.comparison.max_abs_delta
        if self.status is not CaseStatus.PASSED:
            record["diagnostic"] = self.diagnostic()
        return record


class SweepReport:
    """Collection of case records with per-family, per-precision counts."""

    def __init__(self, records: Sequence[CaseRecord]):
        self.records = list(records)

    def summary(self) -> Dict[Tuple[str, str], Dict[str, int]]:
        counts: Dict[Tuple[str, str], Dict[str, int]] = OrderedDict()
        for record in self.records:
            key = (record.family, record.precision.label)
            bucket = counts.setdefault(key, {s.value: 0 for s in CaseStatus})
            bucket[record.status.value] += 1
        for bucket in counts.values():
            bucket["total"] = sum(bucket[s.value] for s in CaseStatus)
        return counts

    def by_status(self, status: CaseStatus) -> List[CaseRecord]:
        return [r for r in self.records if r.status is status]

    def failures(self) -> List[CaseRecord]:
        return self.by_status(CaseStatus.FAILED)

    @property
    def passed(self) -> bool:
        return not self.failures()

    def print_results(self):
        """Pretty print the sweep summary and every failure."""
        print("\nParameter Sweep Results")
        print("=" * 72)
        print(f"{'Family':<18} {'Precision':<10} {'Passed':<8} {'Failed':<8} "
              f"{'Skipped':<8} {'Total':<8}")
        print("-" * 72)
        for (family, precision), c in self.summary().items():
            print(f"{family:<18} {precision:<10} {c['passed']:<8} {c['failed']:<8} "
                  f"{c['skipped']:<8} {c['total']:<8}")

        failures = self.failures()
        if failures:
            print("-" * 72)
            for record in failures:
                print(f"✗ {record.family} [{record.configuration.case_id}] "
                      f"{record.precision.label}")
                print(f"    {record.diagnostic()}")
        print("=" * 72)
        print(f"Overall: {'PASSED' if self.passed else 'FAILED'}")


class SweepOrchestrator:
    """
    Drive a kernel family through configurations and precisions.

    Test cases share only the kernel spec, the tolerance table and the
    backend registry, all read-only.
    """

    def __init__(self, config: Optional[SweepConfig] = None,
                 registry: Optional[BackendRegistry] = None):
        self.config = config or SweepConfig()
        self.registry = registry or default_registry()

    def _log(self, message: str):
        if self.config.verbose:
            print(f"  [{self.__class__.__name__}] {message}")

    def run_case(self, kernel_spec: KernelSpec, configuration: Configuration,
                 precision: Precision) -> CaseRecord:
        """
        Run a single test case.

        InvalidConfiguration and BackendUnavailable skip the case; any other
        error fails this case only.
        """
        self._log(f"Testing {kernel_spec.label} with {configuration.params.describe()} "
                  f"on {configuration.backend} ({precision.label})")
        deadline = self.config.deadline_s
        try:
            self.registry.resolve(configuration.backend, kernel_spec.family, precision)
            self.registry.resolve(self.config.reference_backend, kernel_spec.family,
                                  Precision.FULL)

            seed = case_seed(configuration, self.config.base_seed)
            base = build(kernel_spec, configuration.params, seed)

            expected = execute(adapt(base, Precision.FULL),
                               self.config.reference_backend, deadline, self.registry)
            profile = {base.output.name: observed_range(expected)}
            candidate = adapt(base, precision, profile)
            actual = execute(candidate, configuration.backend, deadline, self.registry)

            tolerance = self.config.tolerances.lookup(kernel_spec.family, precision)
            comparison = compare(expected, actual, tolerance)
        except (InvalidConfiguration, BackendUnavailable) as e:
            self._log(f"  skipped: {e}")
            return CaseRecord(configuration, precision, CaseStatus.SKIPPED, message=str(e))
        except Exception as e:
            self._log(f"  error: {type(e).__name__}: {e}")
            return CaseRecord(configuration, precision, CaseStatus.FAILED,
                              message=f"{type(e).__name__}: {e}")

        status = CaseStatus.PASSED if comparison.passed else CaseStatus.FAILED
        self._log(f"  {'✓' if comparison.passed else '✗'} "
                  f"max |delta| = {comparison.max_abs_delta:.2e}")
        return CaseRecord(configuration, precision, status, comparison)

    def run(self, kernel_spec: KernelSpec, configurations: Sequence[Configuration],
            precisions: Sequence[Precision]) -> SweepReport:
        """
        Run every configuration at every precision.

        Returns:
            SweepReport with records in (configuration, precision) order
        """
        cases = [(c, p) for c in configurations for p in precisions]
        if self.config.workers == 1:
            records = [self.run_case(kernel_spec, c, p) for c, p in cases]
        else:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                records = list(pool.map(lambda cp: self.run_case(kernel_spec, *cp), cases))

        report = SweepReport(records)
        if self.config.verbose:
            report.print_results()
        return report

    def sweep(self, kernel_spec: KernelSpec, backends: Sequence[str],
              precisions: Sequence[Precision] = tuple(Precision),
              domains=None) -> SweepReport:
        """Generate configurations (default domains if none given) and run them."""
        if domains is None:
            domains = kernel_spec.default_domains
        configurations = generate_configurations(kernel_spec.family, domains, backends)
        return self.run(kernel_spec, configurations, precisions)


# Example usage
if __name__ == "__main__":
    from ..adapters import CONVOLUTION_SPEC

    orchestrator = SweepOrchestrator(SweepConfig())
    report = orchestrator.sweep(
        CONVOLUTION_SPEC,
        backends=["CPU"],
        domains=(("size", (5, 7)), ("depth", (8,)), ("kernel", (1, 3, 15))),
    )
    report.print_results()
    print(f"By status: passed={len(report.by_status(CaseStatus.PASSED))} "
          f"skipped={len(report.by_status(CaseStatus.SKIPPED))}")
