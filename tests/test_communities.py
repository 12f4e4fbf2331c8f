"""Tests for community detection."""

import numpy as np
import pandas as pd
import pytest

import tnacore


TWO_CLIQUE = np.array([
    # Clique 1: nodes 0, 1, 2; clique 2: nodes 3, 4, 5; weak bridge 2 - 3
    [0, 5, 5, 0, 0, 0],
    [5, 0, 5, 0, 0, 0],
    [5, 5, 0, 1, 0, 0],
    [0, 0, 1, 0, 5, 5],
    [0, 0, 0, 5, 0, 5],
    [0, 0, 0, 5, 5, 0],
])

COMPLETE3 = np.array([
    [0, 1, 1],
    [1, 0, 1],
    [1, 1, 0],
])

METHODS = ['louvain', 'walktrap', 'fast_greedy', 'label_prop', 'leading_eigen', 'edge_betweenness']


@pytest.fixture
def two_clique():
    return tnacore.build_model(TWO_CLIQUE, type_="co-occurrence", labels=list("ABCDEF"))


class TestResultStructure:

    @pytest.mark.parametrize("method", METHODS)
    def test_valid_result(self, two_clique, method):
        result = tnacore.detect_communities(two_clique, method)
        assert result.labels == list("ABCDEF")
        assert len(result.assignments[method]) == 6
        assert result.counts[method] == len(set(result.assignments[method].tolist()))

    @pytest.mark.parametrize("method", METHODS)
    def test_ids_contiguous_from_zero(self, two_clique, method):
        a = tnacore.detect_communities(two_clique, method).assignments[method]
        unique = sorted(set(a.tolist()))
        assert unique == list(range(len(unique)))
        # First node always opens community 0
        assert a[0] == 0

    @pytest.mark.parametrize("method", METHODS)
    def test_deterministic(self, two_clique, method):
        r1 = tnacore.detect_communities(two_clique, method)
        r2 = tnacore.detect_communities(two_clique, method)
        np.testing.assert_array_equal(r1.assignments[method], r2.assignments[method])

    def test_unknown_method_gives_singletons(self, two_clique):
        result = tnacore.detect_communities(two_clique, "spinglass")
        assert result.counts["spinglass"] == 6
        np.testing.assert_array_equal(result.assignments["spinglass"], np.arange(6))


class TestTwoCliques:

    @pytest.mark.parametrize("method", ['louvain', 'fast_greedy', 'edge_betweenness'])
    def test_finds_both_cliques(self, two_clique, method):
        result = tnacore.detect_communities(two_clique, method)
        a = result.assignments[method]
        assert result.counts[method] == 2
        assert a[0] == a[1] == a[2]
        assert a[3] == a[4] == a[5]
        assert a[0] != a[3]

    @pytest.mark.parametrize("method", METHODS)
    def test_at_most_three(self, two_clique, method):
        n = tnacore.detect_communities(two_clique, method).counts[method]
        assert 1 <= n <= 3

    def test_walktrap_matches_louvain(self, two_clique):
        a = tnacore.detect_communities(two_clique, "walktrap").assignments["walktrap"]
        b = tnacore.detect_communities(two_clique, "louvain").assignments["louvain"]
        np.testing.assert_array_equal(a, b)

    def test_split_has_positive_modularity(self, two_clique):
        a = tnacore.detect_communities(two_clique, "louvain").assignments["louvain"]
        assert tnacore.modularity(two_clique, a) > 0.3
        assert tnacore.modularity(two_clique, np.zeros(6, dtype=int)) == pytest.approx(0.0)


class TestDegenerateGraphs:

    @pytest.mark.parametrize("method", METHODS)
    def test_single_node(self, method):
        model = tnacore.build_model(np.array([[0]]), type_="frequency", labels=['A'])
        result = tnacore.detect_communities(model, method)
        assert result.counts[method] == 1
        np.testing.assert_array_equal(result.assignments[method], [0])

    @pytest.mark.parametrize("method", METHODS)
    def test_complete_graph(self, method):
        model = tnacore.build_model(COMPLETE3, type_="co-occurrence", labels=list("ABC"))
        assert tnacore.detect_communities(model, method).counts[method] <= 3

    @pytest.mark.parametrize("method", ['louvain', 'fast_greedy', 'label_prop', 'leading_eigen'])
    def test_empty_graph_is_singletons(self, method):
        model = tnacore.build_model(np.zeros((4, 4)), type_="frequency")
        assert tnacore.detect_communities(model, method).counts[method] == 4


class TestCommunitiesWrapper:

    def test_default_method(self, two_clique):
        result = tnacore.communities(two_clique)
        assert list(result.counts) == ['leading_eigen']

    def test_several_methods(self, two_clique):
        result = tnacore.communities(two_clique, methods=['louvain', 'fast_greedy'])
        df = result.to_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == ['louvain', 'fast_greedy']
        assert list(df.index) == list("ABCDEF")

    def test_members(self, two_clique):
        result = tnacore.communities(two_clique, methods='louvain')
        assert result.members('louvain') == {0: ['A', 'B', 'C'], 1: ['D', 'E', 'F']}

    def test_unknown_method_raises(self, two_clique):
        with pytest.raises(ValueError, match="Unknown methods"):
            tnacore.communities(two_clique, methods=['spinglass'])

    def test_group_input(self):
        seqs = [['A', 'B', 'C', 'A'], ['B', 'C', 'A', 'B'], ['C', 'A', 'B', 'C'], ['A', 'C', 'B', 'A']]
        groups = tnacore.group_ftna(seqs, group=['x', 'x', 'y', 'y'])
        result = tnacore.communities(groups, methods='louvain')
        assert set(result) == {'x', 'y'}
        assert all(isinstance(r, tnacore.CommunityResult) for r in result.values())


class TestRenumber:

    def test_first_appearance_order(self):
        from tnacore.communities import renumber
        np.testing.assert_array_equal(renumber([5, 5, 2, 9, 2]), [0, 0, 1, 2, 1])


class TestSelfLoops:

    def test_symmetric_adjacency_doubles_diagonal(self):
        from tnacore.communities import symmetric_adjacency
        w = np.array([[2.0, 1.0], [0.0, 3.0]])
        np.testing.assert_array_equal(symmetric_adjacency(w), [[4, 1], [1, 6]])

    def test_modularity_counts_self_loops_twice(self):
        # sym = [[4, 2], [2, 0]]: 2m = 8, k = (6, 2)
        # Q = ((4 - 36/8) + (0 - 4/8)) / 8 = -0.125
        model = tnacore.build_model(np.array([[2, 1], [1, 0]]), type_="frequency")
        assert tnacore.modularity(model, [0, 1]) == pytest.approx(-0.125)
        assert tnacore.modularity(model, [0, 0]) == pytest.approx(0.0)


class TestLabelPropagationTies:

    def test_current_label_kept_on_tie(self):
        # Node A is isolated. D has a self-loop and an edge to B of equal
        # weight, and B links C and D equally. Tied nodes keep their label.
        w = np.zeros((4, 4))
        w[1, 2] = w[2, 1] = 1
        w[1, 3] = w[3, 1] = 1
        w[3, 3] = 1
        model = tnacore.build_model(w, type_="frequency", labels=list("ABCD"))
        result = tnacore.detect_communities(model, "label_prop")
        np.testing.assert_array_equal(result.assignments["label_prop"], [0, 1, 1, 2])
        assert result.counts["label_prop"] == 3
