"""Tests for background execution and cancellation."""

import threading

import pytest

import tnacore


SEQUENCES = [
    ['A', 'B', 'C', 'A', 'B'],
    ['B', 'C', 'A', 'B', 'C'],
    ['A', 'C', 'B', 'A', 'C'],
    ['C', 'A', 'B', 'C', 'A'],
]


class TestCancellationToken:

    def test_initial_state(self):
        token = tnacore.CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel(self):
        token = tnacore.CancellationToken()
        token.cancel()
        assert token.cancelled
        with pytest.raises(tnacore.AnalysisCancelled):
            token.raise_if_cancelled()

    def test_cancelled_is_runtime_error(self):
        assert issubclass(tnacore.AnalysisCancelled, RuntimeError)


class TestAnalysisRunner:

    def test_runs_analysis(self):
        model = tnacore.tna(SEQUENCES)
        with tnacore.AnalysisRunner() as runner:
            task = runner.submit(tnacore.permutation_test, model, model, iter=5)
            result = task.result(timeout=60)
        assert isinstance(result, tnacore.PermutationResult)
        assert task.done()
        assert not task.cancelled()

    def test_matches_direct_call(self):
        model = tnacore.tna(SEQUENCES)
        direct = tnacore.estimate_stability(model, iter=5, seed=3)
        with tnacore.AnalysisRunner() as runner:
            result = runner.submit(tnacore.estimate_stability, model, iter=5, seed=3).result()
        assert result.cs_coefficients == direct.cs_coefficients

    def test_token_injected(self):
        seen = {}

        def job(token=None):
            seen['token'] = token
            return 1

        with tnacore.AnalysisRunner() as runner:
            task = runner.submit(job)
            assert task.result() == 1
        assert seen['token'] is task.token

    def test_no_token_for_plain_functions(self):
        with tnacore.AnalysisRunner() as runner:
            task = runner.submit(pow, 2, 10)
            assert task.result() == 1024

    def test_cancel_running_task(self):
        started = threading.Event()

        def job(token=None):
            started.set()
            while True:
                token.raise_if_cancelled()
                threading.Event().wait(0.01)

        with tnacore.AnalysisRunner() as runner:
            task = runner.submit(job)
            assert started.wait(timeout=10)
            assert task.cancel()
            with pytest.raises(tnacore.AnalysisCancelled):
                task.result(timeout=10)
        assert task.cancelled()

    def test_cancel_finished_task(self):
        with tnacore.AnalysisRunner() as runner:
            task = runner.submit(pow, 2, 3)
            task.result()
            assert not task.cancel()
