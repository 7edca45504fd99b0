"""
Periodic scan cycle: fetch -> find -> evaluate -> hand off.

One cycle at a time. A tick that fires while a cycle is still running is
skipped rather than queued, and a single failing pool, evaluation or
submission never aborts the rest of the cycle.
"""

import asyncio
import time
from typing import Callable, List, Optional, Sequence

from .exceptions import ConfigurationError, DataUnavailable, EvaluationError
from .interfaces import PoolStateFetcher, TradeSubmitter
from .profitability import ProfitabilityEvaluator, rejection_category
from .types import CycleSummary, Decision, Opportunity, PoolConfig, PoolState
from .utils import format_duration, get_logger, short_address

logger = get_logger(__name__)

SnapshotListener = Callable[[List[PoolState]], None]


class CycleScheduler:
    """
    Drives scan cycles on a fixed interval.

    Args:
        pool_configs: Pools to fetch every cycle
        fetcher: Pool-state fetcher
        finders: Objects with find(pools) -> List[Opportunity]
        evaluator: Profitability evaluator
        submitter: Receives descriptors of profitable trades
        signer: Address trades would be sent from
        poll_interval_sec: Seconds between cycle starts
        max_concurrent_fetches: Bound on in-flight pool fetches
        snapshot_listeners: Called with the fetched pools before searching
            (e.g. a snapshot-based price oracle)
    """

    def __init__(
        self,
        pool_configs: Sequence[PoolConfig],
        fetcher: PoolStateFetcher,
        finders: Sequence[object],
        evaluator: ProfitabilityEvaluator,
        submitter: TradeSubmitter,
        signer: str,
        poll_interval_sec: float = 5.0,
        max_concurrent_fetches: int = 8,
        snapshot_listeners: Optional[Sequence[SnapshotListener]] = None,
    ):
        if max_concurrent_fetches < 1:
            raise ConfigurationError(
                f"max_concurrent_fetches must be at least 1: {max_concurrent_fetches}"
            )
        self.pool_configs = list(pool_configs)
        self.fetcher = fetcher
        self.finders = list(finders)
        self.evaluator = evaluator
        self.submitter = submitter
        self.signer = signer
        self.poll_interval_sec = poll_interval_sec
        self.max_concurrent_fetches = max_concurrent_fetches
        self.snapshot_listeners = list(snapshot_listeners or [])

        self.cycle_count = 0
        self.skipped_ticks = 0
        self._in_flight = False
        self._stopping = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def stop(self) -> None:
        """Do not start another cycle; a running cycle finishes normally."""
        self._stopping = True

    async def run_cycle(self) -> Optional[CycleSummary]:
        """
        Run one full cycle.

        Returns:
            The cycle summary, or None when another cycle is still in progress

        Raises:
            ConfigurationError: Fatal configuration problem found mid-cycle
        """
        if self._in_flight:
            self.skipped_ticks += 1
            logger.info("Previous cycle still running, skipping tick")
            return None

        self._in_flight = True
        self.cycle_count += 1
        summary = CycleSummary(
            cycle_number=self.cycle_count, pools_configured=len(self.pool_configs)
        )
        started = time.monotonic()
        try:
            pools = await self._fetch_all()
            summary.pools_fetched = len(pools)
            for listener in self.snapshot_listeners:
                listener(pools)

            opportunities = self._find(pools)
            summary.opportunities_found = len(opportunities)

            decisions = await self._evaluate_all(opportunities, summary)
            profitable = [d.descriptor for d in decisions if d.profitable]
            summary.profitable_count = len(profitable)

            for descriptor in profitable:
                try:
                    await self.submitter.submit(descriptor)
                    summary.submitted_count += 1
                except Exception as e:
                    summary.submissions_failed += 1
                    logger.error(
                        f"Submission of {descriptor.opportunity.describe()} failed: {e}"
                    )
        finally:
            self._in_flight = False

        summary.duration_sec = time.monotonic() - started
        logger.info(summary.as_line())
        if summary.rejection_reasons:
            logger.debug(f"Rejections: {summary.rejection_reasons}")
        return summary

    async def run_forever(self, max_cycles: Optional[int] = None) -> int:
        """
        Start a cycle every poll interval until stop() or max_cycles.

        Each tick starts a cycle only if the previous one has finished;
        otherwise the tick is skipped. The last started cycle is awaited
        before returning.

        Returns:
            Number of cycles started

        Raises:
            ConfigurationError: Propagated from a cycle; stops the loop
        """
        self._stopping = False
        started = 0
        current: Optional[asyncio.Task] = None
        logger.info(
            f"Scheduler started: {len(self.pool_configs)} pools, "
            f"interval {format_duration(self.poll_interval_sec)}"
        )

        try:
            while not self._stopping:
                if current is not None and current.done():
                    finished, current = current, None
                    self._raise_if_fatal(finished)

                if current is None:
                    current = asyncio.ensure_future(self.run_cycle())
                    started += 1
                else:
                    self.skipped_ticks += 1
                    logger.info("Previous cycle still running, skipping tick")

                if max_cycles is not None and started >= max_cycles:
                    break
                await asyncio.sleep(self.poll_interval_sec)
        finally:
            if current is not None:
                await asyncio.wait({current})
                self._raise_if_fatal(current)

        logger.info(f"Scheduler stopped after {started} cycles")
        return started

    def _raise_if_fatal(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        self._stopping = True
        if isinstance(error, ConfigurationError):
            logger.error(f"Configuration error, stopping scheduler: {error}")
        else:
            logger.error(f"Cycle failed unexpectedly: {error}")
        raise error

    async def _fetch_all(self) -> List[PoolState]:
        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        async def fetch_one(pool: PoolConfig) -> PoolState:
            async with semaphore:
                return await self.fetcher.fetch_pool_state(pool)

        results = await asyncio.gather(
            *[fetch_one(pool) for pool in self.pool_configs], return_exceptions=True
        )

        pools = []
        for config, result in zip(self.pool_configs, results):
            if isinstance(result, ConfigurationError):
                raise result
            if isinstance(result, DataUnavailable):
                logger.debug(f"Excluding {config.name} this cycle: {result}")
            elif isinstance(result, BaseException):
                logger.warning(
                    f"Fetch of {config.name} ({short_address(config.address)}) "
                    f"failed: {result!r}"
                )
            else:
                pools.append(result)
        return pools

    def _find(self, pools: List[PoolState]) -> List[Opportunity]:
        opportunities: List[Opportunity] = []
        for finder in self.finders:
            opportunities.extend(finder.find(pools))
        return opportunities

    async def _evaluate_all(
        self, opportunities: List[Opportunity], summary: CycleSummary
    ) -> List[Decision]:
        results = await asyncio.gather(
            *[self.evaluator.evaluate(o, self.signer) for o in opportunities],
            return_exceptions=True,
        )

        decisions = []
        for opportunity, result in zip(opportunities, results):
            if isinstance(result, ConfigurationError):
                raise result
            if isinstance(result, BaseException):
                summary.evaluations_failed += 1
                if isinstance(result, EvaluationError):
                    logger.error(f"Evaluation error for {opportunity.describe()}: {result}")
                else:
                    logger.error(
                        f"Evaluation of {opportunity.describe()} raised {result!r}"
                    )
                continue
            if not result.profitable:
                category = rejection_category(result.reason)
                summary.rejection_reasons[category] = (
                    summary.rejection_reasons.get(category, 0) + 1
                )
            decisions.append(result)
        return decisions
