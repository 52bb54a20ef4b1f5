"""
Runs a report's aggregators and waits for all of them.

Aggregators run one after another on the request thread, or on a thread
pool when ``REPORTS_PARALLEL_AGGREGATION`` is enabled. Either way the caller
gets every result or an error; a partial set is never returned.
"""
import logging
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Optional

from django.conf import settings
from django.db import DatabaseError, connections

from reports.exceptions import ReportDataUnavailable, ReportTimeout


logger = logging.getLogger(__name__)


def _close_thread_connections(task: Callable[[], Any]) -> Callable[[], Any]:
    """Worker threads open their own connections; release them when done."""
    def run():
        try:
            return task()
        finally:
            connections.close_all()
    return run


class AggregationRunner:
    """Execute named aggregator callables under a per-request deadline."""

    def __init__(self, parallel: Optional[bool] = None, max_workers: Optional[int] = None,
                 timeout: Optional[float] = None):
        self.parallel = settings.REPORTS_PARALLEL_AGGREGATION if parallel is None else parallel
        self.max_workers = max_workers or settings.REPORTS_MAX_WORKERS
        self.timeout = settings.REPORTS_REQUEST_TIMEOUT_SECONDS if timeout is None else timeout

    def run(self, tasks: Dict[str, Callable[[], Any]]) -> Dict[str, Any]:
        started = time.monotonic()
        try:
            if self.parallel and len(tasks) > 1:
                results = self._run_parallel(tasks, started)
            else:
                results = self._run_sequential(tasks, started)
        except DatabaseError as exc:
            logger.error("Aggregator query failed: %s", exc, exc_info=True)
            raise ReportDataUnavailable() from exc

        logger.debug("Ran %d aggregators in %.3fs", len(tasks), time.monotonic() - started)
        return results

    def _remaining(self, started):
        return self.timeout - (time.monotonic() - started)

    def _timed_out(self, pending):
        logger.warning("Report aggregation exceeded %ss; pending: %s", self.timeout, ', '.join(pending))
        return ReportTimeout(
            f'The report did not complete within {self.timeout:g} seconds.',
            {'timeoutSeconds': self.timeout},
        )

    def _run_sequential(self, tasks, started):
        results = {}
        names = list(tasks)
        for index, name in enumerate(names):
            if self._remaining(started) <= 0:
                raise self._timed_out(names[index:])
            results[name] = tasks[name]()
        if self._remaining(started) <= 0:
            raise self._timed_out([])
        return results

    def _run_parallel(self, tasks, started):
        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(tasks)))
        try:
            futures = {
                executor.submit(_close_thread_connections(task)): name
                for name, task in tasks.items()
            }
            done, not_done = wait(futures, timeout=max(self._remaining(started), 0),
                                  return_when=FIRST_EXCEPTION)

            failed = [future for future in done if future.exception() is not None]
            if failed:
                raise failed[0].exception()

            if not_done:
                raise self._timed_out(sorted(futures[future] for future in not_done))

            return {futures[future]: future.result() for future in done}
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
