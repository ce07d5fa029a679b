"""
Orchestrator: runs every source adapter to completion under partial failure.

Adapters run as parallel asyncio tasks, limited by a global worker pool and
a per-host pool. Each adapter call is retried on transient failures only.
A failing source contributes no drafts and never aborts the run. A global
deadline cancels whatever is still outstanding.

Each task builds its drafts privately and publishes them in one step on
success, so cancellation cannot leave partial drafts in the pool. The pool
is frozen into a tuple once every task has settled.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from itertools import chain
from types import MappingProxyType
from typing import Any

from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from aggregator.adapters.base import BaseSourceAdapter
from aggregator.cache import RawRecordCache
from aggregator.config import RetrySettings, settings, source_label
from aggregator.errors import TRANSIENT_ERRORS, AggregatorError, RateLimitError, SourceTimeoutError, ValidationError
from aggregator.mapping.mapper import FieldMapper
from aggregator.models import OrganisationDraft, RawRecord


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for transient adapter failures."""
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 32.0
    max_attempts: int = 5
    rate_limit_max_delay: float = 120.0

    @classmethod
    def from_settings(cls, retry: RetrySettings | None = None) -> "RetryPolicy":
        retry = retry or settings.retry
        return cls(
            initial_delay=retry.initial_delay,
            multiplier=retry.multiplier,
            max_delay=retry.max_delay,
            max_attempts=retry.max_attempts,
            rate_limit_max_delay=retry.rate_limit_max_delay,
        )

    def delay_for(self, attempt: int, error: BaseException | None = None) -> float:
        """
        Delay before the attempt following failed attempt number ``attempt``.

        Rate-limited calls wait at least twice the normal delay, longer if
        the source asked for it, up to ``rate_limit_max_delay``.
        """
        delay = min(self.initial_delay * self.multiplier ** (attempt - 1), self.max_delay)
        if isinstance(error, RateLimitError):
            delay = min(max(2 * delay, error.retry_after or 0.0), self.rate_limit_max_delay)
        return delay


class SourceState(str, Enum):
    OK = "ok"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class SourceStatus:
    """Outcome of one source in one run."""
    source_id: str
    state: SourceState | None = None
    attempted: int = 0
    record_count: int = 0
    dropped_records: int = 0
    from_cache: bool = False
    last_error: str | None = None
    error_type: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def label(self) -> str:
        return source_label(self.source_id)

    @property
    def succeeded(self) -> bool:
        return self.state is SourceState.OK

    @property
    def failed(self) -> bool:
        return self.state in (SourceState.FAILED, SourceState.TIMEOUT)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def record_failure(self, error: BaseException, state: SourceState = SourceState.FAILED) -> None:
        self.state = state
        self.record_count = 0
        self.error_type = type(error).__name__
        self.last_error = f"{self.error_type}: {error}"

    def to_summary(self) -> dict[str, Any]:
        summary: dict[str, Any] = {
            "label": self.label,
            "status": self.state.value if self.state else None,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "recordCount": self.record_count,
            "droppedRecords": self.dropped_records,
            "fromCache": self.from_cache,
        }
        if self.last_error:
            summary["lastError"] = self.last_error
        if self.duration_seconds is not None:
            summary["durationSeconds"] = round(self.duration_seconds, 3)
        return summary


@dataclass(frozen=True)
class OrchestrationResult:
    """Frozen draft pool plus per-source status."""
    drafts: tuple[OrganisationDraft, ...]
    statuses: MappingProxyType
    started_at: datetime
    completed_at: datetime
    errors: tuple[str, ...] = field(default=())

    @property
    def succeeded_sources(self) -> list[str]:
        return [sid for sid, status in self.statuses.items() if status.succeeded]

    @property
    def failed_sources(self) -> list[str]:
        return [sid for sid, status in self.statuses.items() if status.failed]

    @property
    def source_counts(self) -> dict[str, int]:
        return {sid: status.record_count for sid, status in self.statuses.items()}

    def summary(self) -> dict[str, dict[str, Any]]:
        return {sid: status.to_summary() for sid, status in self.statuses.items()}


class Orchestrator:
    """
    Drives all adapters and collects the draft pool.

    Args:
        adapters: Adapters to run; source ids must be unique
        mapper: Field mapper holding every adapter's mapping rules
        max_concurrency: Global worker-pool width (default from settings)
        per_host_concurrency: Concurrent adapters per external host (default from settings)
        deadline_seconds: Global deadline; None uses settings, 0 disables it
        retry_policy: Backoff policy (default from settings)
        cache: Optional raw-record cache consulted before fetching
        sleep: Awaitable sleep used between retries
        clock: Returns the current aware datetime
    """

    def __init__(
        self,
        adapters: Sequence[BaseSourceAdapter],
        mapper: FieldMapper,
        max_concurrency: int | None = None,
        per_host_concurrency: int | None = None,
        deadline_seconds: float | None = None,
        retry_policy: RetryPolicy | None = None,
        cache: RawRecordCache | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        source_ids = [adapter.source_id for adapter in adapters]
        duplicates = sorted({sid for sid in source_ids if source_ids.count(sid) > 1})
        if duplicates:
            raise ValueError(f"Duplicate source ids: {', '.join(duplicates)}")

        self.adapters = list(adapters)
        self.mapper = mapper
        self.max_concurrency = max_concurrency or settings.pipeline.max_concurrency
        self.per_host_concurrency = per_host_concurrency or settings.pipeline.per_host_concurrency
        self.deadline_seconds = (
            settings.pipeline.deadline_seconds if deadline_seconds is None else deadline_seconds
        )
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.cache = cache
        self.sleep = sleep
        self.clock = clock

        self._worker_slots: asyncio.Semaphore | None = None
        self._host_slots: dict[str, asyncio.Semaphore] = {}

    async def run(self) -> OrchestrationResult:
        """Run every adapter to completion, failure or the deadline."""
        started_at = self.clock()
        self._worker_slots = asyncio.Semaphore(self.max_concurrency)
        self._host_slots = {
            adapter.host: asyncio.Semaphore(self.per_host_concurrency) for adapter in self.adapters
        }

        statuses = {adapter.source_id: SourceStatus(adapter.source_id) for adapter in self.adapters}
        pools: dict[str, list[OrganisationDraft]] = {adapter.source_id: [] for adapter in self.adapters}

        logger.info(
            f"Running {len(self.adapters)} sources "
            f"(concurrency={self.max_concurrency}, per host={self.per_host_concurrency}, "
            f"deadline={self.deadline_seconds or 'none'})"
        )

        tasks = {
            asyncio.create_task(
                self._run_source(adapter, statuses[adapter.source_id], pools[adapter.source_id]),
                name=f"source:{adapter.source_id}",
            ): adapter.source_id
            for adapter in self.adapters
        }

        if tasks:
            done, pending = await asyncio.wait(tasks, timeout=self.deadline_seconds or None)

            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

            for task in pending:
                source_id = tasks[task]
                pools[source_id].clear()
                status = statuses[source_id]
                status.record_failure(
                    SourceTimeoutError(f"Deadline of {self.deadline_seconds}s elapsed", source_id),
                    SourceState.TIMEOUT,
                )
                status.completed_at = status.completed_at or self.clock()
                logger.error(f"{source_id}: cancelled at deadline")

            for task in done:
                error = None if task.cancelled() else task.exception()
                if error is not None:
                    source_id = tasks[task]
                    pools[source_id].clear()
                    statuses[source_id].record_failure(error)
                    logger.error(f"{source_id}: task failed: {error}")

        # Barrier crossed: freeze the pool in adapter order
        drafts = tuple(chain.from_iterable(pools[adapter.source_id] for adapter in self.adapters))
        result = OrchestrationResult(
            drafts=drafts,
            statuses=MappingProxyType(statuses),
            started_at=started_at,
            completed_at=self.clock(),
            errors=tuple(status.last_error for status in statuses.values() if status.failed and status.last_error),
        )
        self._log_summary(result)
        return result

    async def _run_source(
        self,
        adapter: BaseSourceAdapter,
        status: SourceStatus,
        pool: list[OrganisationDraft],
    ) -> None:
        """Fetch and map one source. Every error is absorbed into ``status``."""
        status.started_at = self.clock()
        try:
            async with adapter:
                records, retrieved_at = await self._fetch(adapter, status)
            drafts = self._map_records(adapter, records, retrieved_at, status)
        except Exception as e:
            status.record_failure(e)
            logger.error(f"{adapter.source_id}: failed after {status.attempted} attempt(s): {status.last_error}")
        else:
            pool.extend(drafts)
            status.state = SourceState.OK
            status.record_count = len(drafts)
            logger.info(f"{adapter.source_id}: {len(drafts):,} drafts")
        finally:
            status.completed_at = self.clock()

    async def _fetch(self, adapter: BaseSourceAdapter, status: SourceStatus) -> tuple[list[RawRecord], datetime]:
        """Fetch with retries, serving fresh cached records when available."""
        if self.cache is not None:
            cached = self.cache.get(adapter.source_id, adapter.url)
            if cached is not None:
                records, cached_at = cached
                status.from_cache = True
                logger.info(f"{adapter.source_id}: using {len(records):,} cached records")
                return [RawRecord(adapter.source_id, record) for record in records], cached_at

        records: list[RawRecord] = []
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_policy.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=self._log_retry(adapter.source_id),
            sleep=self.sleep,
            reraise=True,
        ):
            with attempt:
                status.attempted += 1
                records = await self._attempt(adapter)

        retrieved_at = self.clock()
        if self.cache is not None:
            self.cache.put(adapter.source_id, adapter.url, [record.data for record in records], retrieved_at)
        return records, retrieved_at

    async def _attempt(self, adapter: BaseSourceAdapter) -> list[RawRecord]:
        """One adapter call holding a per-host and a global slot."""
        async with self._host_slots[adapter.host], self._worker_slots:
            return await adapter.fetch()

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        return self.retry_policy.delay_for(retry_state.attempt_number, error)

    @staticmethod
    def _log_retry(source_id: str) -> Callable[[RetryCallState], None]:
        def log(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            delay = retry_state.next_action.sleep if retry_state.next_action else 0
            logger.warning(f"{source_id}: attempt {retry_state.attempt_number} failed ({error}); retrying in {delay:.1f}s")
        return log

    def _map_records(
        self,
        adapter: BaseSourceAdapter,
        records: Iterable[RawRecord],
        retrieved_at: datetime,
        status: SourceStatus,
    ) -> list[OrganisationDraft]:
        """Map records to drafts. A record that cannot be mapped is dropped, not the source."""
        drafts = []
        for raw in records:
            try:
                drafts.append(self.mapper.map(raw, adapter.reference_for(raw, retrieved_at)))
            except ValidationError as e:
                status.dropped_records += 1
                logger.debug(f"{adapter.source_id}: dropped record: {e}")
            except AggregatorError:
                raise
            except Exception as e:
                status.dropped_records += 1
                logger.warning(f"{adapter.source_id}: dropped unmappable record ({type(e).__name__}: {e})")

        if status.dropped_records:
            logger.warning(f"{adapter.source_id}: dropped {status.dropped_records} invalid record(s)")
        return drafts

    def _log_summary(self, result: OrchestrationResult) -> None:
        for source_id, status in result.statuses.items():
            if status.succeeded:
                logger.info(f"Source {source_id}: ok, {status.record_count} drafts, {status.attempted} attempt(s)")
            else:
                logger.error(f"Source {source_id}: {status.state.value if status.state else 'unknown'} - {status.last_error}")
        logger.info(
            f"Orchestration complete: {len(result.succeeded_sources)} ok, "
            f"{len(result.failed_sources)} failed, {len(result.drafts):,} drafts"
        )
