"""
Tests for configuration space generation.
"""

import pytest

from param_sweep.adapters import BATCH_MATMUL_SPEC, CONVOLUTION_SPEC, FULLY_CONNECTED_SPEC
from param_sweep.core import (
    Configuration,
    ParameterTuple,
    case_seed,
    count_configurations,
    generate_configurations,
)


class TestGenerateConfigurations:
    """Cartesian product over domains and backends."""

    def test_full_product_size(self):
        """Every combination appears exactly once."""
        configs = generate_configurations(
            "convolution", CONVOLUTION_SPEC.default_domains, ["CPU", "Interpreter"]
        )
        assert len(configs) == 3 * 2 * 2 * 2
        assert len(set(configs)) == len(configs)

    def test_backend_outermost_lexicographic(self):
        """Backend varies slowest, the last domain fastest."""
        configs = generate_configurations(
            "fully_connected", [("A", (1, 2)), ("Z", (3, 4))], ["X", "Y"]
        )
        observed = [(c.backend, c.params.values) for c in configs]
        assert observed == [
            ("X", (1, 3)), ("X", (1, 4)), ("X", (2, 3)), ("X", (2, 4)),
            ("Y", (1, 3)), ("Y", (1, 4)), ("Y", (2, 3)), ("Y", (2, 4)),
        ]

    def test_order_is_stable(self):
        """Two generations produce identical sequences."""
        first = generate_configurations("batch_matmul", BATCH_MATMUL_SPEC.default_domains, ["CPU"])
        second = generate_configurations("batch_matmul", BATCH_MATMUL_SPEC.default_domains, ["CPU"])
        assert first == second

    def test_range_domain(self):
        """Integer ranges are half-open like range()."""
        configs = generate_configurations("batch_matmul", [("A", range(10, 16))], ["CPU"])
        assert [c.params["A"] for c in configs] == [10, 11, 12, 13, 14, 15]

    def test_empty_domain_yields_nothing(self):
        """An empty domain is not an error."""
        assert generate_configurations("fully_connected", [("A", ()), ("Z", (1,))], ["CPU"]) == []
        assert generate_configurations("fully_connected", [("A", (1,))], []) == []

    def test_single_point(self):
        configs = generate_configurations(
            "convolution", [("size", (5,)), ("depth", (8,)), ("kernel", (1,))], ["CPU"]
        )
        assert len(configs) == 1
        assert configs[0].params.as_dict() == {"size": 5, "depth": 8, "kernel": 1}

    def test_duplicates_are_kept(self):
        configs = generate_configurations("fully_connected", [("A", (4, 4))], ["CPU"])
        assert len(configs) == 2

    def test_non_integer_values_rejected(self):
        with pytest.raises(TypeError):
            generate_configurations("fully_connected", [("A", (1.5,))], ["CPU"])

    def test_count_matches_generation(self):
        domains = FULLY_CONNECTED_SPEC.default_domains
        assert count_configurations(domains, ["CPU", "CUDA"]) == len(
            generate_configurations("fully_connected", domains, ["CPU", "CUDA"])
        )


class TestParameterTuple:
    """Immutable named parameters."""

    def test_access(self):
        params = ParameterTuple(("size", "depth"), (5, 8))
        assert params["depth"] == 8
        assert "size" in params
        assert params.describe() == "size: 5; depth: 8"
        with pytest.raises(KeyError):
            params["kernel"]

    def test_immutable(self):
        params = ParameterTuple.from_dict({"A": 1})
        with pytest.raises(AttributeError):
            params.values = (2,)

    def test_mismatched_lengths(self):
        with pytest.raises(ValueError):
            ParameterTuple(("A", "B"), (1,))


class TestCaseSeed:
    """Seeds derive from configuration identity."""

    def test_reproducible(self):
        config = Configuration("convolution", ParameterTuple(("size",), (5,)), "CPU")
        same = Configuration("convolution", ParameterTuple(("size",), (5,)), "CPU")
        assert case_seed(config) == case_seed(same) == config.seed

    def test_distinct_configurations_differ(self):
        a = Configuration("convolution", ParameterTuple(("size",), (5,)), "CPU")
        b = Configuration("convolution", ParameterTuple(("size",), (7,)), "CPU")
        assert case_seed(a) != case_seed(b)
        assert case_seed(a) != case_seed(a, base_seed=1)

    def test_fits_generator(self):
        config = Configuration("fully_connected", ParameterTuple(("A",), (64,)), "CUDA")
        assert 0 <= case_seed(config) < 2 ** 63
