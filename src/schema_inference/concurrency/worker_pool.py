"""
Bounded worker pool for model-calling work items
"""
from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from ..config import WorkerPoolConfig
from ..utils import get_logger, get_log_context, log_context, OperationCancelledError

logger = get_logger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, int], None]


@dataclass
class WorkItem(Generic[T]):
    """One independent unit of work, identified by a stable ID"""
    id: str
    execute: Callable[[], T]


@dataclass
class WorkResult(Generic[T]):
    """Outcome of a work item"""
    id: str
    result: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def index_results(results: Sequence[WorkResult[T]]) -> Dict[str, WorkResult[T]]:
    """Index results by work-item ID; completion order carries no meaning"""
    return {r.id: r for r in results}


class WorkerPool:
    """
    Executes work items with bounded parallelism

    A single pool is shared by all phases of a run. Concurrent ``process``
    calls share the same executor, so the bound holds across them.
    """

    def __init__(self, max_concurrent: int = 8, thread_name_prefix: str = "inference-worker"):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._thread_name_prefix = thread_name_prefix
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_config(cls, config: WorkerPoolConfig) -> "WorkerPool":
        return cls(max_concurrent=config.max_concurrent)

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            with self._lock:
                if self._closed:
                    raise RuntimeError("WorkerPool has been shut down")
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=self.max_concurrent,
                        thread_name_prefix=self._thread_name_prefix,
                    )
        return self._executor

    def process(
        self,
        items: Sequence[WorkItem[T]],
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[WorkResult[T]]:
        """
        Run every item and collect one WorkResult per item

        Results come back in completion order; use ``index_results`` to
        reassemble. Item failures are captured on the result, never raised.
        ``progress_callback(completed, total)`` runs on the calling thread
        after each completion.
        """
        total = len(items)
        if total == 0:
            return []

        executor = self._get_executor()
        context = get_log_context()

        def run(item: WorkItem[T]) -> T:
            with log_context(**context):
                if cancel_event is not None and cancel_event.is_set():
                    raise OperationCancelledError(operation=item.id)
                return item.execute()

        futures: Dict[Future, str] = {
            executor.submit(run, item): item.id for item in items
        }

        results: List[WorkResult[T]] = []
        for future in as_completed(futures):
            item_id = futures[future]
            try:
                results.append(WorkResult(id=item_id, result=future.result()))
            except Exception as e:
                results.append(WorkResult(id=item_id, error=e))
                logger.debug(
                    "Work item failed",
                    extra={"extra_fields": {"work_item_id": item_id, "error": str(e)}}
                )

            if progress_callback is not None:
                self._report_progress(progress_callback, len(results), total)

        return results

    @staticmethod
    def _report_progress(callback: ProgressCallback, completed: int, total: int) -> None:
        try:
            callback(completed, total)
        except Exception as e:
            logger.warning(f"Progress callback raised: {e}")

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
