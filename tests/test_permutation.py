"""Tests for the edge-wise permutation test and p-value adjustment."""

import numpy as np
import pandas as pd
import pytest

import tnacore


SAMPLE_SEQUENCES = [
    ['A', 'B', 'C', 'A', 'B'],
    ['B', 'C', 'A', 'B', 'C'],
    ['A', 'C', 'B', 'A', 'C'],
    ['C', 'A', 'B', 'C', 'A'],
    ['A', 'B', 'A', 'C', 'B'],
    ['B', 'A', 'C', 'B', 'A'],
    ['C', 'B', 'A', 'C', 'B'],
    ['A', 'C', 'A', 'B', 'C'],
    ['B', 'C', 'B', 'A', 'C'],
    ['C', 'A', 'C', 'B', 'A'],
]

SAMPLE_SEQUENCES_2 = [
    ['A', 'A', 'B', 'C', 'C'],
    ['B', 'B', 'A', 'C', 'C'],
    ['A', 'A', 'A', 'B', 'C'],
    ['C', 'C', 'B', 'A', 'A'],
    ['B', 'B', 'B', 'A', 'C'],
]


class TestPermutationTest:
    """Structure and invariants on two relative models."""

    @pytest.fixture
    def models(self):
        return tnacore.tna(SAMPLE_SEQUENCES), tnacore.tna(SAMPLE_SEQUENCES_2)

    @pytest.fixture
    def result(self, models):
        x, y = models
        return tnacore.permutation_test(x, y, iter=20, seed=42)

    def test_structure(self, models, result):
        x, _ = models
        a = len(x.labels)
        assert isinstance(result.edge_stats, pd.DataFrame)
        assert len(result.edge_stats) == a * a
        assert list(result.edge_stats.columns) == [
            'from', 'to', 'diff_true', 'effect_size', 'p_value'
        ]
        assert result.diff_true.shape == (a * a,)
        assert result.diff_sig.shape == (a * a,)
        assert result.p_values.shape == (a * a,)
        assert result.labels == x.labels
        assert result.n_states == a
        assert result.level == 0.05
        assert result.iter == 20

    def test_deterministic(self, models):
        x, y = models
        r1 = tnacore.permutation_test(x, y, iter=20, seed=42)
        r2 = tnacore.permutation_test(x, y, iter=20, seed=42)
        np.testing.assert_array_equal(r1.p_values, r2.p_values)
        np.testing.assert_array_equal(r1.diff_true, r2.diff_true)
        pd.testing.assert_frame_equal(r1.edge_stats, r2.edge_stats)

    def test_raw_p_value_bounds(self, result):
        assert np.all(result.p_values >= 1 / 21)
        assert np.all(result.p_values <= 1)

    def test_diff_true_is_weight_difference(self, models, result):
        x, y = models
        np.testing.assert_allclose(result.diff_true, (x.weights - y.weights).flatten())

    def test_diff_sig(self, result):
        sig = result.p_values < result.level
        np.testing.assert_array_equal(result.diff_sig[~sig], 0)
        np.testing.assert_array_equal(result.diff_sig[sig], result.diff_true[sig])

    def test_effect_size_computed(self, result):
        assert np.isfinite(result.edge_stats['effect_size']).any()

    def test_edge_order_column_major(self, models, result):
        x, _ = models
        a = len(x.labels)
        diff = result.diff_true.reshape(a, a)
        for k, row in result.edge_stats.iterrows():
            i, j = k % a, k // a
            assert row['from'] == x.labels[i]
            assert row['to'] == x.labels[j]
            assert row['diff_true'] == diff[i, j]

    def test_as_matrix(self, models, result):
        x, _ = models
        mat = result.as_matrix("p_values")
        assert list(mat.index) == x.labels
        np.testing.assert_array_equal(mat.values.flatten(), result.p_values)

    def test_identical_models(self, models):
        x, _ = models
        result = tnacore.permutation_test(x, x, iter=20, seed=42)
        np.testing.assert_array_equal(result.diff_true, 0)
        # Every permuted |diff| >= 0, so every edge reaches p = 1
        np.testing.assert_array_equal(result.p_values, 1.0)
        assert len(result.significant_edges()) == 0


class TestPreconditions:

    def test_requires_sequence_data(self):
        x = tnacore.build_model(np.eye(3))
        y = tnacore.tna(SAMPLE_SEQUENCES)
        with pytest.raises(ValueError, match="sequence data"):
            tnacore.permutation_test(x, y)

    def test_requires_same_labels(self):
        x = tnacore.tna(SAMPLE_SEQUENCES)
        y = tnacore.tna([['A', 'B', 'A'], ['B', 'A', 'B']])
        with pytest.raises(ValueError, match="same state labels"):
            tnacore.permutation_test(x, y)

    def test_paired_requires_equal_sizes(self):
        x = tnacore.tna(SAMPLE_SEQUENCES)
        y = tnacore.tna(SAMPLE_SEQUENCES_2)
        with pytest.raises(ValueError, match="equal group sizes"):
            tnacore.permutation_test(x, y, paired=True)

    def test_unknown_adjust(self):
        x = tnacore.tna(SAMPLE_SEQUENCES)
        with pytest.raises(ValueError, match="p.adjust"):
            tnacore.permutation_test(x, x, adjust="sidak")

    def test_cancelled_token(self):
        x = tnacore.tna(SAMPLE_SEQUENCES)
        token = tnacore.CancellationToken()
        token.cancel()
        with pytest.raises(tnacore.AnalysisCancelled):
            tnacore.permutation_test(x, x, iter=50, token=token)


class TestTwoCohorts:
    """Two cohorts cycling A,B,C,A,B versus A,C,B,A,C."""

    @pytest.fixture
    def cohorts(self):
        x = tnacore.ftna([['A', 'B', 'C', 'A', 'B']] * 5)
        y = tnacore.ftna([['A', 'C', 'B', 'A', 'C']] * 5)
        return x, y

    def test_deterministic(self, cohorts):
        x, y = cohorts
        r1 = tnacore.permutation_test(x, y, iter=200, seed=42)
        r2 = tnacore.permutation_test(x, y, iter=200, seed=42)
        assert r1.diff_true.tobytes() == r2.diff_true.tobytes()
        assert r1.p_values.tobytes() == r2.p_values.tobytes()
        assert r1.diff_sig.tobytes() == r2.diff_sig.tobytes()

    def test_detects_reversed_cycle(self, cohorts):
        x, y = cohorts
        result = tnacore.permutation_test(x, y, iter=200, seed=42)
        p = result.as_matrix("p_values")
        diff = result.as_matrix("diff_true")
        assert diff.loc['A', 'B'] == 10
        assert diff.loc['A', 'C'] == -10
        assert p.loc['A', 'B'] < 0.05
        assert p.loc['A', 'C'] < 0.05
        # No A -> A transitions in either cohort
        assert p.loc['A', 'A'] == 1.0

    def test_paired(self, cohorts):
        x, y = cohorts
        r1 = tnacore.permutation_test(x, y, iter=100, seed=7, paired=True)
        r2 = tnacore.permutation_test(x, y, iter=100, seed=7, paired=True)
        np.testing.assert_array_equal(r1.p_values, r2.p_values)
        assert np.all(r1.p_values >= 1 / 101)

    def test_adjustment_is_conservative(self, cohorts):
        x, y = cohorts
        raw = tnacore.permutation_test(x, y, iter=100, seed=1).p_values
        for method in ['bonferroni', 'holm', 'fdr', 'BH']:
            adj = tnacore.permutation_test(x, y, iter=100, seed=1, adjust=method).p_values
            assert np.all(adj >= raw - 1e-12)


class TestGroupPermutation:

    def test_all_pairs(self):
        seqs = SAMPLE_SEQUENCES[:9]
        groups = tnacore.group_tna(seqs, group=['g1'] * 3 + ['g2'] * 3 + ['g3'] * 3)
        results = tnacore.group_permutation_test(groups, iter=10, seed=3)
        assert list(results) == ['g1 vs. g2', 'g1 vs. g3', 'g2 vs. g3']
        assert all(isinstance(r, tnacore.PermutationResult) for r in results.values())

    def test_needs_two_groups(self):
        groups = tnacore.group_tna(SAMPLE_SEQUENCES, group=['only'] * 10)
        with pytest.raises(ValueError):
            tnacore.group_permutation_test(groups)


class TestPAdjust:

    P = np.array([0.01, 0.04, 0.03, 0.005, 0.2])

    def test_none(self):
        np.testing.assert_array_equal(tnacore.p_adjust(self.P, "none"), self.P)

    def test_bonferroni(self):
        np.testing.assert_allclose(
            tnacore.p_adjust(self.P, "bonferroni"), np.minimum(self.P * 5, 1)
        )

    def test_holm_matches_r(self):
        # p.adjust(c(0.01, 0.04, 0.03, 0.005, 0.2), "holm")
        np.testing.assert_allclose(
            tnacore.p_adjust(self.P, "holm"), [0.04, 0.09, 0.09, 0.025, 0.2]
        )

    def test_bh_matches_r(self):
        # p.adjust(c(0.01, 0.04, 0.03, 0.005, 0.2), "BH")
        np.testing.assert_allclose(
            tnacore.p_adjust(self.P, "BH"), [0.025, 0.05, 0.05, 0.025, 0.2]
        )
        np.testing.assert_array_equal(
            tnacore.p_adjust(self.P, "fdr"), tnacore.p_adjust(self.P, "BH")
        )

    def test_conservativeness_order(self):
        bonf = tnacore.p_adjust(self.P, "bonferroni")
        holm = tnacore.p_adjust(self.P, "holm")
        bh = tnacore.p_adjust(self.P, "BH")
        assert np.all(bonf >= holm)
        assert np.all(holm >= bh)
        assert np.all(bh >= self.P)

    def test_unknown(self):
        with pytest.raises(ValueError):
            tnacore.p_adjust(self.P, "hommel")
