"""Background execution of long-running analyses with cooperative cancellation.

The permutation test, stability estimation and bootstrap accept a ``token``
keyword and check it once per iteration. :class:`AnalysisRunner` runs such a
function on a worker thread and hands back an :class:`AnalysisTask` that can
cancel it.

Examples
--------
>>> with AnalysisRunner() as runner:
...     task = runner.submit(permutation_test, model1, model2, iter=5000)
...     task.cancel()
"""

from __future__ import annotations

import inspect
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


class AnalysisCancelled(RuntimeError):
    """Raised inside an analysis loop once its token has been cancelled."""


class CancellationToken:
    """Thread-safe cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis was cancelled")


class AnalysisTask:
    """Handle to an analysis submitted to an :class:`AnalysisRunner`.

    Attributes
    ----------
    future : concurrent.futures.Future
        Future of the running call
    token : CancellationToken
        Token passed to the call, if it accepts one
    name : str
        Name of the submitted function
    """

    def __init__(self, future: Future, token: CancellationToken, name: str = ""):
        self.future = future
        self.token = token
        self.name = name

    def __repr__(self) -> str:
        if self.future.cancelled():
            state = "cancelled"
        elif self.future.done():
            state = "done"
        else:
            state = "running"
        return f"AnalysisTask({self.name!r}, {state})"

    def cancel(self) -> bool:
        """Cancel the task.

        A pending task is removed from the queue; a running task stops at its
        next token check and its ``result()`` raises :class:`AnalysisCancelled`.
        Returns False if the task had already finished.
        """
        if self.future.done():
            return False
        self.token.cancel()
        self.future.cancel()
        logger.debug("Cancellation requested for %s", self.name)
        return True

    def cancelled(self) -> bool:
        return self.token.cancelled

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: float | None = None) -> Any:
        return self.future.result(timeout=timeout)


def _accepts_token(func: Callable) -> bool:
    try:
        params = inspect.signature(func).parameters
    except (TypeError, ValueError):
        return False
    return 'token' in params or any(
        p.kind is inspect.Parameter.VAR_KEYWORD for p in params.values()
    )


class AnalysisRunner:
    """Run analyses on a thread pool.

    Parameters
    ----------
    max_workers : int
        Number of worker threads (default: 1, analyses run one at a time)
    """

    def __init__(self, max_workers: int = 1):
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tnacore"
        )

    def __enter__(self) -> 'AnalysisRunner':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def submit(self, func: Callable, *args: Any, **kwargs: Any) -> AnalysisTask:
        """Schedule ``func(*args, **kwargs)`` and return its task.

        A fresh :class:`CancellationToken` is passed as ``token=`` when
        ``func`` accepts one and the caller did not supply it.
        """
        token = kwargs.get('token')
        if token is None:
            token = CancellationToken()
            if _accepts_token(func):
                kwargs['token'] = token
        name = getattr(func, '__name__', repr(func))
        logger.debug("Submitting %s", name)
        future = self._executor.submit(func, *args, **kwargs)
        return AnalysisTask(future, token, name=name)

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)
