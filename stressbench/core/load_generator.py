"""
Load generation.

Drives many ``RequestExecutor`` calls according to one of two strategies:

- fixed count: ``count`` suite executions pulled from a queue by a bounded
  pool of workers
- timed rate: one request every ``1/rate`` seconds on an absolute schedule
  until the deadline

Every completed request is handed to the result sink exactly once.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from stressbench.core.cancellation import CancelToken
from stressbench.core.error_handling import InvalidLoadParameters, RunStateError
from stressbench.core.request_executor import RequestExecutor
from stressbench.models import AuthContext, RequestResult, RequestSpec

logger = logging.getLogger(__name__)

ResultSink = Callable[[RequestResult], Union[None, Awaitable[None]]]
IdentityLookup = Callable[[AuthContext], Awaitable[Any]]


class GeneratorState(str, Enum):
    """Lifecycle of a load generator."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


def validate_fixed_params(count: int, concurrency: int) -> None:
    """Raises InvalidLoadParameters for a negative count or empty pool."""
    if count is None or count < 0:
        raise InvalidLoadParameters(f"count must be >= 0 (got {count})")
    if concurrency is None or concurrency < 1:
        raise InvalidLoadParameters(f"concurrency must be >= 1 (got {concurrency})")


def validate_timed_params(
    specs: Sequence[RequestSpec], duration_minutes: float, rate_per_second: float
) -> None:
    """Raises InvalidLoadParameters for a bad rate or duration, or no specs."""
    if (
        rate_per_second is None
        or not math.isfinite(rate_per_second)
        or not rate_per_second > 0
    ):
        raise InvalidLoadParameters(
            f"rate_per_second must be a finite number > 0 (got {rate_per_second})"
        )
    if (
        duration_minutes is None
        or not math.isfinite(duration_minutes)
        or duration_minutes < 0
    ):
        raise InvalidLoadParameters(
            f"duration_minutes must be a finite number >= 0 (got {duration_minutes})"
        )
    if not specs:
        raise InvalidLoadParameters("timed runs need at least one request")


class LoadGenerator:
    """
    Runs one load test. A generator runs exactly once.

    Args:
        executor: Executes individual requests
        sink: Receives every ``RequestResult``; may be sync or async
        auth: Auth context for the run (populated by ``identity_lookup``)
        identity_lookup: Optional coroutine function run before any request
    """

    def __init__(
        self,
        executor: RequestExecutor,
        sink: ResultSink,
        auth: AuthContext,
        *,
        identity_lookup: Optional[IdentityLookup] = None,
    ) -> None:
        self._executor = executor
        self._sink = sink
        self._auth = auth
        self._identity_lookup = identity_lookup
        self._cancel = CancelToken()
        self._state = GeneratorState.IDLE
        self.requests_completed = 0

    @property
    def state(self) -> GeneratorState:
        return self._state

    @property
    def cancel_token(self) -> CancelToken:
        return self._cancel

    def stop(self) -> None:
        """Cancel the run. Idempotent; does nothing once the run has finished."""
        if self._state in (
            GeneratorState.COMPLETED,
            GeneratorState.STOPPED,
            GeneratorState.FAILED,
        ):
            return
        if not self._cancel.cancelled:
            logger.info("Stopping load generator")
        self._cancel.cancel()

    async def run_fixed_count(
        self, specs: Sequence[RequestSpec], count: int, concurrency: int
    ) -> GeneratorState:
        """
        Execute the suite ``count`` times with at most ``concurrency`` suite
        executions outstanding.

        Raises:
            InvalidLoadParameters: Before starting, on bad parameters
            RunStateError: If this generator already ran
        """
        validate_fixed_params(count, concurrency)
        self._begin()
        specs = list(specs)

        async def _run() -> None:
            queue: asyncio.Queue[int] = asyncio.Queue()
            for i in range(count):
                queue.put_nowait(i)

            workers = [
                asyncio.create_task(self._fixed_worker(worker_id, queue, specs))
                for worker_id in range(min(concurrency, count))
            ]
            logger.info(
                "Fixed-count run: %d suite executions x %d requests, %d workers",
                count,
                len(specs),
                len(workers),
            )
            try:
                await asyncio.gather(*workers)
            finally:
                for w in workers:
                    if not w.done():
                        w.cancel()

        return await self._drive(_run)

    async def run_timed(
        self,
        specs: Sequence[RequestSpec],
        duration_minutes: float,
        rate_per_second: float,
    ) -> GeneratorState:
        """
        Issue ``rate_per_second`` requests per second for ``duration_minutes``,
        cycling through ``specs`` round-robin.

        Ticks do not wait for earlier ticks. Scheduling stops at the deadline
        or on cancellation; requests already in flight are drained before
        returning.

        Raises:
            InvalidLoadParameters: Before any request, on bad parameters
            RunStateError: If this generator already ran
        """
        validate_timed_params(specs, duration_minutes, rate_per_second)
        self._begin()
        specs = list(specs)

        async def _run() -> None:
            loop = asyncio.get_running_loop()
            interval = 1.0 / rate_per_second
            start = loop.time()
            deadline = start + duration_minutes * 60.0
            in_flight: set[asyncio.Task] = set()
            tick = 0

            logger.info(
                "Timed run: %.2f req/s for %.2f min across %d requests",
                rate_per_second,
                duration_minutes,
                len(specs),
            )
            try:
                while not self._cancel.cancelled:
                    due = start + tick * interval
                    if due >= deadline:
                        break
                    delay = due - loop.time()
                    if delay > 0:
                        try:
                            await asyncio.wait_for(self._cancel.wait(), timeout=delay)
                        except TimeoutError:
                            pass
                    else:
                        # Behind schedule: still yield so cancellation is seen.
                        await asyncio.sleep(0)
                    if self._cancel.cancelled:
                        break

                    task = asyncio.create_task(self._tick(specs[tick % len(specs)]))
                    in_flight.add(task)
                    task.add_done_callback(self._tick_done(in_flight))
                    tick += 1

                if in_flight:
                    await asyncio.gather(*list(in_flight), return_exceptions=True)
            except BaseException:
                for task in list(in_flight):
                    task.cancel()
                raise
            logger.debug("Timed run scheduled %d ticks", tick)

        return await self._drive(_run)

    def _begin(self) -> None:
        if self._state != GeneratorState.IDLE:
            raise RunStateError(
                f"LoadGenerator can only run once (state={self._state.value})"
            )
        self._state = GeneratorState.RUNNING

    async def _drive(self, body: Callable[[], Awaitable[None]]) -> GeneratorState:
        try:
            if self._identity_lookup is not None:
                await self._identity_lookup(self._auth)
            await body()
        except asyncio.CancelledError:
            self._cancel.cancel()
            self._state = GeneratorState.STOPPED
            raise
        except Exception as e:
            self._cancel.cancel()
            self._state = GeneratorState.FAILED
            logger.error("Load generator failed: %s", e)
            raise

        self._state = (
            GeneratorState.STOPPED if self._cancel.cancelled else GeneratorState.COMPLETED
        )
        logger.info(
            "Load generator %s after %d requests",
            self._state.value,
            self.requests_completed,
        )
        return self._state

    async def _fixed_worker(
        self, worker_id: int, queue: asyncio.Queue, specs: list[RequestSpec]
    ) -> None:
        try:
            while not self._cancel.cancelled:
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                for spec in specs:
                    if self._cancel.cancelled:
                        return
                    result = await self._executor.execute(spec, self._auth, self._cancel)
                    await self._emit(result)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Worker %s error: %s", worker_id, e)

    async def _tick(self, spec: RequestSpec) -> None:
        result = await self._executor.execute(spec, self._auth, self._cancel)
        await self._emit(result)

    def _tick_done(self, in_flight: set[asyncio.Task]) -> Callable[[asyncio.Task], None]:
        def _done(t: asyncio.Task) -> None:
            in_flight.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error("Timed tick error: %s", exc)

        return _done

    async def _emit(self, result: RequestResult) -> None:
        self.requests_completed += 1
        try:
            outcome = self._sink(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning("Result sink failed for %s: %s", result.config_name, e)
