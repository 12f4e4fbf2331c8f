"""Tests for omnibus and post-hoc group comparisons.

Reference values are from R: aov(), kruskal.test() and
pairwise.t.test(pool.sd = FALSE).
"""

import math

import pandas as pd
import pytest

import tnacore


GROUPS = {
    'A': [2.1, 3.4, 2.8, 3.1, 2.5],
    'B': [5.2, 4.8, 5.5, 4.9, 5.1],
    'C': [3.5, 3.8, 4.1, 3.2, 3.9],
}


def _pair(results, a, b):
    return next(r for r in results if r.group_a == a and r.group_b == b)


class TestOneWayAnova:

    def test_matches_r(self):
        res = tnacore.one_way_anova(GROUPS)
        assert res.statistic == pytest.approx(44.7965, abs=5e-3)
        assert res.df1 == 2
        assert res.df2 == 12
        assert res.p_value == pytest.approx(2.715844e-06, abs=1e-8)
        assert res.effect_size == pytest.approx(0.8818816, abs=5e-5)
        assert res.method == 'anova'
        assert res.effect_label == 'eta_sq'

    def test_identical_groups(self):
        res = tnacore.one_way_anova({'A': [1, 1, 1], 'B': [1, 1, 1]})
        assert res.statistic == 0
        assert res.p_value == 1

    def test_two_groups(self):
        res = tnacore.one_way_anova({'A': GROUPS['A'], 'B': GROUPS['B']})
        assert res.df1 == 1
        assert res.df2 == 8
        assert res.p_value < 0.001

    def test_no_within_df(self):
        res = tnacore.one_way_anova({'A': [1.0], 'B': [2.0]})
        assert res.df2 == 0
        assert res.p_value == 1

    def test_needs_two_groups(self):
        with pytest.raises(ValueError, match="two groups"):
            tnacore.one_way_anova({'A': [1, 2, 3]})

    def test_rejects_empty_group(self):
        with pytest.raises(ValueError, match="without values"):
            tnacore.one_way_anova({'A': [1, 2], 'B': []})


class TestKruskalWallis:

    def test_matches_r(self):
        res = tnacore.kruskal_wallis(GROUPS)
        assert res.statistic == pytest.approx(12.02, abs=0.05)
        assert res.df1 == 2
        assert math.isnan(res.df2)
        assert res.p_value == pytest.approx(0.002454088, abs=5e-5)
        assert res.method == 'kruskal'
        assert res.effect_label == 'epsilon_sq'

    def test_tied_values(self):
        res = tnacore.kruskal_wallis({'A': [1, 1, 2, 3], 'B': [4, 5, 5, 6]})
        assert res.p_value < 0.05

    def test_effect_size_not_negative(self):
        res = tnacore.kruskal_wallis({'A': [1, 2, 3], 'B': [1, 2, 3]})
        assert res.effect_size == 0


class TestPairwiseTests:

    def test_welch_no_spread(self):
        t, df, p = tnacore.welch_t_test([2, 2, 2], [2, 2, 2])
        assert t == 0
        assert df == 4
        assert p == 1

    def test_welch_sign(self):
        t, _, _ = tnacore.welch_t_test(GROUPS['A'], GROUPS['B'])
        assert t < 0

    def test_mann_whitney_separated(self):
        # No overlap: U = 0, z = -12.5 / sqrt(25 / 12 * 11)
        u, p = tnacore.mann_whitney_u(GROUPS['A'], GROUPS['B'])
        assert u == 0
        z = -12.5 / math.sqrt(25 / 12 * 11)
        assert p == pytest.approx(2 * tnacore.normal_cdf(z))

    def test_mann_whitney_constant(self):
        u, p = tnacore.mann_whitney_u([1, 1], [1, 1])
        assert p == 1


class TestPostHoc:

    def test_bonferroni_matches_r(self):
        results = tnacore.post_hoc_pairwise(GROUPS, parametric=True, adjust='bonferroni')
        assert [(r.group_a, r.group_b) for r in results] == [('A', 'B'), ('A', 'C'), ('B', 'C')]
        assert _pair(results, 'A', 'B').p_value == pytest.approx(0.000273482, abs=5e-5)
        assert _pair(results, 'A', 'C').p_value == pytest.approx(0.036728249, abs=5e-4)
        assert _pair(results, 'B', 'C').p_value == pytest.approx(0.0004513364, abs=5e-5)
        assert all(r.significant for r in results)

    def test_holm_matches_r(self):
        results = tnacore.post_hoc_pairwise(GROUPS, parametric=True, adjust='holm')
        assert _pair(results, 'A', 'B').p_value == pytest.approx(0.000273482, abs=5e-5)
        assert _pair(results, 'A', 'C').p_value == pytest.approx(0.012242750, abs=5e-5)
        assert _pair(results, 'B', 'C').p_value == pytest.approx(0.000300891, abs=5e-5)

    def test_fdr_matches_r(self):
        results = tnacore.post_hoc_pairwise(GROUPS, parametric=True, adjust='fdr')
        assert _pair(results, 'A', 'B').p_value == pytest.approx(0.0002256682, abs=5e-5)
        assert _pair(results, 'A', 'C').p_value == pytest.approx(0.0122427495, abs=5e-5)
        assert _pair(results, 'B', 'C').p_value == pytest.approx(0.0002256682, abs=5e-5)

    def test_non_parametric(self):
        results = tnacore.post_hoc_pairwise(GROUPS, parametric=False, adjust='bonferroni')
        assert len(results) == 3
        assert _pair(results, 'A', 'B').p_value == pytest.approx(0.02380952, abs=0.05)
        for r in results:
            assert r.p_value < 0.06

    def test_unknown_adjust(self):
        with pytest.raises(ValueError, match="Unknown adjust"):
            tnacore.post_hoc_pairwise(GROUPS, adjust='BY')


class TestCompareGroups:

    def test_parametric(self):
        res = tnacore.compare_groups(GROUPS, metric='density')
        assert res.metric == 'density'
        assert res.omnibus.method == 'anova'
        assert len(res.post_hoc) == 3

    def test_non_parametric(self):
        res = tnacore.compare_groups(GROUPS, parametric=False, adjust='holm')
        assert res.omnibus.method == 'kruskal'
        assert all(isinstance(r, tnacore.PostHocResult) for r in res.post_hoc)

    def test_to_dataframe(self):
        df = tnacore.compare_groups(GROUPS).to_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == ['group_a', 'group_b', 'statistic', 'p_value', 'significant']
        assert len(df) == 3
