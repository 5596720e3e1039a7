"""Background queue for pairing score aggregation.

Rating submission enqueues a job and returns; a daemon worker thread runs
aggregate_pairing_scores() against the database the job was enqueued for.
Since every job is a full recompute, at most one job per database waits in
the queue at a time.  Job failures are logged and never reach the submitter.
"""

import logging
import queue
import threading
from pathlib import Path
from typing import Callable

from kitchen_rotation.core.pairing_scores import aggregate_pairing_scores
from kitchen_rotation.db.database import get_db_path, override_db_path

logger = logging.getLogger(__name__)


class AggregationQueue:
    def __init__(self, job: Callable[[], int] = aggregate_pairing_scores):
        self._job = job
        self._queue: "queue.Queue[Path]" = queue.Queue()
        self._pending: set[Path] = set()
        self._lock = threading.Lock()
        self._worker: threading.Thread = None

    def enqueue(self, db_path: Path = None) -> bool:
        """Schedule an aggregation. Returns False if one is already waiting for that DB."""
        path = db_path or get_db_path()
        with self._lock:
            if path in self._pending:
                return False
            self._pending.add(path)
            if self._worker is None or not self._worker.is_alive():
                self._worker = threading.Thread(
                    target=self._run, name="pairing-aggregation", daemon=True
                )
                self._worker.start()
        self._queue.put(path)
        return True

    def join(self) -> None:
        """Block until every enqueued job has finished."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            path = self._queue.get()
            with self._lock:
                self._pending.discard(path)
            try:
                with override_db_path(path):
                    written = self._job()
                logger.info("Pairing aggregation for %s wrote %s scores", path, written)
            except Exception:
                logger.exception("Pairing aggregation for %s failed", path)
            finally:
                self._queue.task_done()


aggregation_queue = AggregationQueue()
