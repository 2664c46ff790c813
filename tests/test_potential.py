"""
Tests for the flat potential algebra.
"""

import numpy as np
import pytest

from lazyprop.algebra.potential import (
    combination_to_index,
    compact_potential,
    compacted_levels,
    evaluate_marginal,
    evaluate_product,
    index_to_combination,
    normalize,
    normalize_blocks,
    potential_size,
    stable_sum,
)


class TestIndexing:
    def test_first_variable_most_significant(self):
        assert index_to_combination(5, (2, 3)) == (1, 2)
        assert index_to_combination(3, (2, 3)) == (1, 0)
        assert combination_to_index((1, 2), (2, 3)) == 5

    def test_empty_domain(self):
        assert index_to_combination(0, ()) == ()
        assert combination_to_index((), ()) == 0
        assert potential_size(()) == 1

    def test_potential_size(self):
        assert potential_size((2, 3, 4)) == 24


class TestProduct:
    def test_outer_product(self):
        a = np.array([1.0, 2.0])
        b = np.array([10.0, 20.0, 30.0])
        result = evaluate_product([(a, (0,), (2,)), (b, (1,), (3,))], (0, 1), (2, 3))
        assert np.allclose(result, [10, 20, 30, 20, 40, 60])

    def test_permuted_factor_domain(self):
        values = np.arange(6, dtype=float)  # over (1, 0) with levels (3, 2)
        result = evaluate_product([(values, (1, 0), (3, 2))], (0, 1), (2, 3))
        assert np.allclose(result, values.reshape(3, 2).T.reshape(-1))

    def test_shared_variable(self):
        a = np.array([1.0, 2.0, 3.0, 4.0])  # over (0, 1)
        b = np.array([2.0, 3.0])  # over (1,)
        result = evaluate_product([(a, (0, 1), (2, 2)), (b, (1,), (2,))], (0, 1), (2, 2))
        assert np.allclose(result, [2, 6, 6, 12])

    def test_no_factors_gives_ones(self):
        assert np.allclose(evaluate_product([], (0,), (3,)), np.ones(3))

    def test_missing_variable_raises(self):
        with pytest.raises(ValueError):
            evaluate_product([(np.ones(2), (5,), (2,))], (0,), (2,))

    def test_level_mismatch_raises(self):
        with pytest.raises(ValueError):
            evaluate_product([(np.ones(3), (0,), (3,))], (0,), (2,))


class TestMarginal:
    def setup_method(self):
        self.values = np.arange(6, dtype=float)  # over (0, 1) with levels (2, 3)

    def test_sum_out_second(self):
        assert np.allclose(evaluate_marginal(self.values, (0, 1), (2, 3), [0]), [3, 12])

    def test_sum_out_first(self):
        assert np.allclose(evaluate_marginal(self.values, (0, 1), (2, 3), [1]), [3, 5, 7])

    def test_permutation(self):
        result = evaluate_marginal(self.values, (0, 1), (2, 3), [1, 0])
        assert np.allclose(result, [0, 3, 1, 4, 2, 5])

    def test_sum_everything(self):
        assert np.allclose(evaluate_marginal(self.values, (0, 1), (2, 3), []), [15])

    def test_duplicate_keep_raises(self):
        with pytest.raises(ValueError):
            evaluate_marginal(self.values, (0, 1), (2, 3), [0, 0])

    def test_unknown_keep_raises(self):
        with pytest.raises(ValueError):
            evaluate_marginal(self.values, (0, 1), (2, 3), [7])


class TestCompaction:
    def test_compact_one_axis(self):
        values = np.arange(6, dtype=float)
        restrictions = {1: [0, 2]}
        assert compacted_levels((0, 1), (2, 3), restrictions) == (2, 2)
        assert np.allclose(compact_potential(values, (0, 1), (2, 3), restrictions), [0, 2, 3, 5])

    def test_compact_ignores_other_variables(self):
        values = np.arange(6, dtype=float)
        assert np.allclose(compact_potential(values, (0, 1), (2, 3), {9: [0]}), values)


class TestNormalization:
    def test_normalize(self):
        assert np.allclose(normalize(np.array([1.0, 3.0])), [0.25, 0.75])

    def test_normalize_zero_total(self):
        assert np.allclose(normalize(np.zeros(3)), np.zeros(3))

    def test_blocks_are_columns(self):
        # heads (size 2) x parents (size 2); second parent column is all zero
        values = np.array([1.0, 0.0, 3.0, 0.0])
        assert np.allclose(normalize_blocks(values, 2), [0.25, 0.0, 0.75, 0.0])

    def test_blocks_without_parents(self):
        assert np.allclose(normalize_blocks(np.array([2.0, 6.0]), 2), [0.25, 0.75])


class TestStableSum:
    def test_cancellation(self):
        assert stable_sum([1e16, 1.0, -1e16]) == 1.0

    def test_small_terms(self):
        eps = np.finfo(float).eps
        assert stable_sum([1.0, eps, -eps, 1.0, eps, -eps]) == 2.0

    def test_accepts_arrays(self):
        assert stable_sum(np.ones((2, 3))) == 6.0
