"""Bounded-concurrency task executor with rate-limit backoff."""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Deque, Mapping, Optional, Set, Tuple

from ..models.outcome import Fatal, Outcome, RateLimited
from ..models.record import ExportedRecord, RecordKind
from .translation import TranslationTable

logger = logging.getLogger(__name__)


class ExecutorState(str, Enum):
    """State of a RateLimitedExecutor."""
    RUNNING = "running"
    DRAINING = "draining"
    IDLE = "idle"


@dataclass(eq=False)
class MigrationTask:
    """One record waiting to be processed."""
    number: int
    record: ExportedRecord
    tables: Mapping[RecordKind, TranslationTable] = field(default_factory=dict)
    attempts: int = 0


WorkFunction = Callable[[MigrationTask], Awaitable[Outcome]]
CompletionCallback = Callable[[MigrationTask, Outcome], None]


class RateLimitedExecutor:
    """
    Runs migration tasks with at most `max_concurrency` in flight.

    When a task reports RateLimited the executor stops admitting work, lets the
    tasks already in flight finish, waits out the backoff window and then resumes.
    The rate-limited task is put back ahead of everything submitted after it.

    A single control loop owns admission and every state transition. Task
    runners only report outcomes to it, so concurrent rate-limit signals fold
    into one pause instead of racing each other.

    Completion callbacks run on the control loop, one at a time. They receive
    Success, SkippedExpected and Fatal outcomes exactly once per task; a
    RateLimited outcome is never reported since the task will run again.
    """

    def __init__(
        self,
        work: WorkFunction,
        on_complete: Optional[CompletionCallback] = None,
        max_concurrency: int = 10,
        default_retry_after: float = 10.0,
        retry_margin: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the executor.

        Args:
            work: Coroutine function processing one task
            on_complete: Called with each task's terminal outcome
            max_concurrency: Max tasks in flight
            default_retry_after: Backoff in seconds when the signal carries none
            retry_margin: Seconds added to every backoff
            sleep: Coroutine used to wait out backoffs
            clock: Monotonic clock in seconds
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")

        self.max_concurrency = max_concurrency
        self.default_retry_after = default_retry_after
        self.retry_margin = retry_margin
        self._work = work
        self._on_complete = on_complete
        self._sleep = sleep
        self._clock = clock

        self._pending: Deque[MigrationTask] = deque()
        self._in_flight: Set[MigrationTask] = set()
        self._runners: Set[asyncio.Task] = set()
        self._events: "asyncio.Queue[Optional[Tuple[MigrationTask, Outcome]]]" = asyncio.Queue()
        self._changed = asyncio.Condition()
        self._control: Optional[asyncio.Task] = None

        self._draining = False
        self._resume_at = 0.0
        self._closed = False
        self._fatal: Optional[BaseException] = None

        self.peak_in_flight = 0
        self.pause_count = 0

    @property
    def state(self) -> ExecutorState:
        if self._draining:
            return ExecutorState.DRAINING
        if self._in_flight or (self._pending and self._fatal is None):
            return ExecutorState.RUNNING
        return ExecutorState.IDLE

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def outstanding(self) -> int:
        """Tasks submitted but not yet resolved."""
        return len(self._pending) + len(self._in_flight)

    @property
    def failed(self) -> bool:
        return self._fatal is not None

    def submit(self, task: MigrationTask) -> None:
        """
        Queue a task. Never blocks and never drops work.

        Must be called from the event loop the executor runs on.
        """
        self._pending.append(task)
        self._ensure_started()
        self._events.put_nowait(None)

    async def wait_for_capacity(self) -> None:
        """
        Wait until fewer than `max_concurrency` tasks are outstanding.

        Raises:
            The fatal error, once a task has failed
        """
        async with self._changed:
            await self._changed.wait_for(
                lambda: self._fatal is not None or self.outstanding < self.max_concurrency
            )
        if self._fatal is not None:
            raise self._fatal

    async def join(self) -> None:
        """
        Wait until every submitted task is resolved.

        After a fatal error, waits only for the tasks already in flight.

        Raises:
            The fatal error, if a task failed
        """
        self._closed = True
        self._ensure_started()
        self._events.put_nowait(None)
        await self._control

        if self._fatal is not None:
            if self._pending:
                logger.warning(f"Abandoned {len(self._pending)} pending task(s) after a fatal error")
            raise self._fatal

    def _ensure_started(self) -> None:
        if self._control is None:
            self._control = asyncio.get_running_loop().create_task(self._control_loop())

    def _finished(self) -> bool:
        if self._in_flight:
            return False
        return self._fatal is not None or (self._closed and not self._pending)

    async def _control_loop(self) -> None:
        while True:
            if self._draining and not self._in_flight and self._fatal is None:
                await self._back_off()

            if not self._draining and self._fatal is None:
                self._admit()

            async with self._changed:
                self._changed.notify_all()

            if self._finished():
                break

            event = await self._events.get()
            if event is not None:
                task, outcome = event
                self._handle_outcome(task, outcome)

        async with self._changed:
            self._changed.notify_all()

    def _admit(self) -> None:
        while self._pending and len(self._in_flight) < self.max_concurrency:
            task = self._pending.popleft()
            task.attempts += 1
            self._in_flight.add(task)
            self.peak_in_flight = max(self.peak_in_flight, len(self._in_flight))

            runner = asyncio.get_running_loop().create_task(self._execute(task))
            self._runners.add(runner)
            runner.add_done_callback(self._runners.discard)

    async def _execute(self, task: MigrationTask) -> None:
        try:
            outcome = await self._work(task)
        except Exception as e:
            outcome = Fatal(e)
        except BaseException as e:
            # Cancellation still resolves the task, or join() would wait on it forever
            self._events.put_nowait((task, Fatal(e)))
            raise
        self._events.put_nowait((task, outcome))

    def _handle_outcome(self, task: MigrationTask, outcome: Outcome) -> None:
        self._in_flight.discard(task)

        if isinstance(outcome, RateLimited):
            self._enter_backoff(task, outcome.retry_after)
            return

        if isinstance(outcome, Fatal) and self._fatal is None:
            self._fatal = outcome.error
            logger.error(
                f"({task.number}) Fatal error, admitting no further tasks: {outcome.error}"
            )

        if self._on_complete is not None:
            try:
                self._on_complete(task, outcome)
            except Exception as e:
                logger.error(f"({task.number}) Completion callback failed: {e}")
                if self._fatal is None:
                    self._fatal = e

    def _enter_backoff(self, task: MigrationTask, retry_after: Optional[float]) -> None:
        delay = (self.default_retry_after if retry_after is None else retry_after) + self.retry_margin
        resume_at = self._clock() + delay

        if self._draining:
            self._resume_at = max(self._resume_at, resume_at)
        else:
            self._draining = True
            self._resume_at = resume_at
            self.pause_count += 1
            logger.warning(
                f"({task.number}) Rate limit exceeded. Pausing for {delay:g} seconds "
                f"after {len(self._in_flight)} in-flight task(s) finish."
            )

        self._requeue(task)

    def _requeue(self, task: MigrationTask) -> None:
        # Ahead of every task read after it; pending is otherwise in file order.
        index = 0
        while index < len(self._pending) and self._pending[index].number < task.number:
            index += 1
        self._pending.insert(index, task)

    async def _back_off(self) -> None:
        delay = max(0.0, self._resume_at - self._clock())
        if delay > 0:
            logger.info(f"Drained. Waiting {delay:.1f} seconds before resuming.")
            await self._sleep(delay)
        self._draining = False
        logger.info(f"Resuming with {len(self._pending)} pending task(s).")
