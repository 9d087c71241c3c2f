"""Batched, optionally parallel execution of a simulation run set.

:class:`SimulationRunner` partitions run indexes into fixed-size batches and
executes them sequentially or on a ``concurrent.futures`` thread or process
pool.  Per-run seeding makes the result independent of ``batch_size``,
``executor`` and completion order.

Progress is reported after every merged batch as
``progress_callback(completed_runs, total_runs)`` from the collecting thread.
Cancellation is cooperative: set the ``threading.Event`` passed as
``cancel_event`` and ``run`` returns ``None`` at the next batch boundary, or
within :data:`CANCEL_POLL_SECONDS` on a pool.
Queued pool batches are cancelled and batches already running are not
waited for.
"""

from __future__ import annotations

import logging
import threading
from concurrent import futures
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from .aggregate import SimulationResult
from .config import DEFAULT_BATCH_SIZE
from .historical import HistoricalDataset
from .monte_carlo import BatchResult, prepare_run, run_batch, summarise
from .parameters import SimulationParameters
from .portfolio import PortfolioSnapshot

logger = logging.getLogger(__name__)

EXECUTORS = ("sequential", "thread", "process")

# how often a pool run re-checks the cancel event while batches are running
CANCEL_POLL_SECONDS = 0.05

ProgressCallback = Callable[[int, int], None]


class SimulationRunner:
    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        executor: str = "sequential",
        max_workers: Optional[int] = None,
        progress_bar: bool = False,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if executor not in EXECUTORS:
            raise ValueError(f"executor must be one of {', '.join(EXECUTORS)}, got {executor!r}")
        self.batch_size = batch_size
        self.executor = executor
        self.max_workers = max_workers
        self.progress_bar = progress_bar
        self._background: Optional[ThreadPoolExecutor] = None

    def _batches(self, n_runs: int) -> List[Tuple[int, int]]:
        return [(s, min(s + self.batch_size, n_runs)) for s in range(0, n_runs, self.batch_size)]

    def run(
        self,
        parameters: SimulationParameters,
        snapshot: PortfolioSnapshot,
        dataset: Optional[HistoricalDataset] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        keep_runs: bool = False,
    ) -> Optional[SimulationResult]:
        """Run the full set; ``None`` if cancelled."""
        plan = prepare_run(parameters, snapshot, dataset)
        n_runs, horizon = plan.number_of_runs, plan.horizon
        batches = self._batches(n_runs)
        logger.info(
            "Simulating %d runs over %d years in %d batches (%s, %s, seed=%d)",
            n_runs, horizon, len(batches), self.executor,
            "bootstrap" if plan.model.is_bootstrap else "parametric", plan.seed,
        )

        balances = np.zeros((n_runs, horizon + 1), dtype=float)
        withdrawals = np.zeros((n_runs, horizon), dtype=float)
        ruin_years = np.zeros(n_runs, dtype=int)
        completed = 0
        pbar = tqdm(total=n_runs, desc="Simulating", unit="run", disable=not self.progress_bar)

        def _cancelled() -> bool:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Cancellation requested after %d/%d runs", completed, n_runs)
                return True
            return False

        def _merge(batch: BatchResult) -> None:
            nonlocal completed
            balances[batch.start:batch.stop] = batch.balances
            withdrawals[batch.start:batch.stop] = batch.withdrawals
            ruin_years[batch.start:batch.stop] = batch.ruin_years
            completed += batch.stop - batch.start
            pbar.update(batch.stop - batch.start)
            logger.debug("Batch %d-%d done (%d/%d)", batch.start, batch.stop, completed, n_runs)
            if progress_callback is not None:
                progress_callback(completed, n_runs)

        try:
            if self.executor == "sequential":
                for start, stop in batches:
                    if _cancelled():
                        return None
                    _merge(run_batch(plan, start, stop))
            else:
                pool_cls = ThreadPoolExecutor if self.executor == "thread" else ProcessPoolExecutor
                pool = pool_cls(max_workers=self.max_workers)
                try:
                    if _cancelled():
                        return None
                    pending = {pool.submit(run_batch, plan, start, stop) for start, stop in batches}
                    poll = None if cancel_event is None else CANCEL_POLL_SECONDS
                    while pending:
                        done, pending = futures.wait(pending, timeout=poll, return_when=futures.FIRST_COMPLETED)
                        if _cancelled():
                            return None
                        for future in done:
                            _merge(future.result())
                finally:
                    # never block on batches still running after a cancel
                    pool.shutdown(wait=False, cancel_futures=True)
        finally:
            pbar.close()

        return summarise(plan, balances, withdrawals, ruin_years, keep_runs)

    def submit(self, *args, **kwargs) -> "Future[Optional[SimulationResult]]":
        """Start :meth:`run` on a background thread and return its future.

        The background thread is created on first use and lives until
        :meth:`shutdown` is called, the runner is used as a context manager,
        or the runner is garbage collected.  Calls are served one at a time.
        """
        if self._background is None:
            self._background = ThreadPoolExecutor(max_workers=1, thread_name_prefix="firecalc")
        return self._background.submit(self.run, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background thread started by :meth:`submit`."""
        background, self._background = self._background, None
        if background is not None:
            background.shutdown(wait=wait)

    def __enter__(self) -> "SimulationRunner":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    def __del__(self):
        # attribute may be missing if __init__ raised
        if getattr(self, "_background", None) is not None:
            self.shutdown(wait=False)


__all__ = ["EXECUTORS", "SimulationRunner"]
