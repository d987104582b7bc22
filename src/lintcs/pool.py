"""
Analysis Pool - fixed-size pool of worker threads.

Workers pull file paths from a shared queue and run the per-file pipeline.
Each worker buffers its own results; the buffers are merged once every
worker has finished, so no result collection is shared between threads.

Cancellation is cooperative: cancel() sets an Event that workers check
between files and between pipeline stages. Files already finished stay in
the result.

Threads share the interpreter lock, so CPU-bound analysis does not scale
linearly with workers; the pool mainly overlaps file I/O and keeps the
pipeline isolated per file.

Usage:
    pool = AnalysisPool(engine, num_workers=4)
    run = pool.run(paths)
    for violation in run.violations:
        ...
"""

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from queue import Empty, Queue
from typing import List, Optional, Sequence

from lintcs.analyzer import INTERNAL_ERROR, AnalysisCancelled, FileResult, analyze_file, diagnostic
from lintcs.rules.base import Violation
from lintcs.rules.engine import RuleEngine

logger = logging.getLogger(__name__)


DEFAULT_NUM_WORKERS = os.cpu_count() or 2
JOIN_POLL_SECONDS = 0.1     # lets KeyboardInterrupt reach the main thread while waiting


@dataclass
class RunResult:
    """Merged results of one pool run."""
    results: List[FileResult] = field(default_factory=list)
    files_total: int = 0
    cancelled: bool = False
    elapsed: float = 0.0

    @property
    def files_done(self) -> int:
        return len(self.results)

    @property
    def violations(self) -> List[Violation]:
        return [v for r in self.results for v in r.violations]

    @property
    def has_io_error(self) -> bool:
        return any(r.has_io_error for r in self.results)


class WorkerThread(threading.Thread):
    """One worker: drains the queue until it is empty or the run is cancelled."""

    def __init__(self, worker_id: int, queue: "Queue[str]", engine: RuleEngine,
                 cancel_event: threading.Event):
        super().__init__(name=f"lintcs-worker-{worker_id}", daemon=True)
        self.worker_id = worker_id
        self.queue = queue
        self.engine = engine
        self.cancel_event = cancel_event
        self.results: List[FileResult] = []

    def run(self) -> None:
        while not self.cancel_event.is_set():
            try:
                path = self.queue.get_nowait()
            except Empty:
                return
            try:
                self.results.append(analyze_file(path, self.engine, self.cancel_event))
            except AnalysisCancelled:
                logger.debug(f"[{self.name}] cancelled while analyzing {path}")
                return
            except Exception as e:
                # Recorded as a diagnostic; the worker moves on to the next file
                logger.exception(f"[{self.name}] internal error analyzing {path}")
                self.results.append(FileResult(path=path, violations=[
                    diagnostic(path, INTERNAL_ERROR, f"{type(e).__name__}: {e}")
                ]))
            finally:
                self.queue.task_done()


class AnalysisPool:
    """
    Pool of analysis worker threads.

    Manages one run at a time:
    - Queues every path, then starts the workers
    - Waits for them, cancelling cleanly on Ctrl-C
    - Merges the per-worker buffers in path order
    """

    def __init__(self, engine: RuleEngine, num_workers: Optional[int] = None):
        self.engine = engine
        self.num_workers = max(1, num_workers or DEFAULT_NUM_WORKERS)
        self._cancel_event = threading.Event()
        self._workers: List[WorkerThread] = []
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Ask all workers to stop after their current stage."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(self, paths: Sequence[str]) -> RunResult:
        """Analyze every path. Returns partial results if cancelled or interrupted."""
        with self._lock:
            start = time.monotonic()
            queue: "Queue[str]" = Queue()
            for path in paths:
                queue.put(str(path))

            count = min(self.num_workers, max(len(paths), 1))
            self._workers = [
                WorkerThread(i, queue, self.engine, self._cancel_event) for i in range(count)
            ]
            logger.info(f"Analyzing {len(paths)} file(s) with {count} worker(s)")
            for worker in self._workers:
                worker.start()

            try:
                self._wait()
            except KeyboardInterrupt:
                logger.warning("Interrupted, cancelling remaining files")
                self.cancel()
                for worker in self._workers:
                    worker.join()

            results = [r for worker in self._workers for r in worker.results]
            results.sort(key=lambda r: r.path)
            run = RunResult(
                results=results,
                files_total=len(paths),
                cancelled=self.cancelled,
                elapsed=time.monotonic() - start,
            )
            if run.cancelled:
                logger.warning(f"Run cancelled: {run.files_done}/{run.files_total} file(s) analyzed")
            else:
                logger.info(f"Analyzed {run.files_done} file(s) in {run.elapsed:.2f}s")
            return run

    def _wait(self) -> None:
        for worker in self._workers:
            while worker.is_alive():
                worker.join(JOIN_POLL_SECONDS)

    def get_stats(self) -> dict:
        """Get pool statistics."""
        return {
            "num_workers": self.num_workers,
            "cancelled": self.cancelled,
            "workers": [
                {
                    "id": w.worker_id,
                    "alive": w.is_alive(),
                    "files_done": len(w.results),
                }
                for w in self._workers
            ],
        }


def analyze_paths(paths: Sequence[str], engine: RuleEngine,
                  num_workers: Optional[int] = None) -> RunResult:
    """Convenience function: run a fresh pool over paths."""
    return AnalysisPool(engine, num_workers).run(paths)
