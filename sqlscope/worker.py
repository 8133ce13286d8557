"""Background maintenance of a database metadata cache."""

from __future__ import annotations

import logging
import queue
import threading

from sqlscope.cache import DBCache, DBCacheGenerator
from sqlscope.database import ColumnDesc, DBRepository

logger = logging.getLogger(__name__)

_UPDATE = object()
_STOP = object()


class Worker:
    """Holds a DBCache and fills in the full column list on a background thread."""

    def __init__(self) -> None:
        self._repo: DBRepository | None = None
        self._cache: DBCache | None = None
        self._lock = threading.Lock()
        self._requests: queue.Queue[object] = queue.Queue()
        self._thread: threading.Thread | None = None

    def cache(self) -> DBCache | None:
        return self._cache

    def start(self) -> None:
        """Start the background thread that handles secondary cache updates."""
        self._thread = threading.Thread(target=self._run, name="db-worker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Ask the background thread to finish after pending updates, and wait for it."""
        self._requests.put(_STOP)
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()

    def recache(self, repo: DBRepository) -> None:
        """Rebuild the primary cache from ``repo`` now and queue the secondary update."""
        self._repo = repo
        cache = DBCacheGenerator(repo).generate_primary()
        with self._lock:
            self._cache = cache
        logger.info("db worker: Update db cache primary complete")
        self._requests.put(_UPDATE)

    def _set_column_cache(self, columns: dict[str, list[ColumnDesc]]) -> None:
        with self._lock:
            if self._cache is not None:
                self._cache.columns_with_parent = columns

    def _run(self) -> None:
        logger.info("db worker: start")
        while True:
            request = self._requests.get()
            if request is _STOP:
                logger.info("db worker: done")
                return
            columns: dict[str, list[ColumnDesc]] = {}
            try:
                columns = DBCacheGenerator(self._repo).generate_secondary()
            except Exception:
                logger.exception("db worker: secondary cache update failed")
            self._set_column_cache(columns)
            logger.info("db worker: Update db cache secondary complete")