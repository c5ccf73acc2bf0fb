"""Single-flight scheduler keeping searches under the Dehashed rate limit."""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .config import DEFAULT_QUEUE_CAPACITY, DEFAULT_SCHEDULER_DELAY
from .errors import SchedulerStoppedError
from .logging_utils import get_logger
from .models import SearchResult
from .query import Query

if TYPE_CHECKING:
    from .client import DehashedClient

_CLOSE = object()
# Blocked producers recheck the worker state this often.
_PUT_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class ScheduledRequest:
    """A search request for the Scheduler.

    The result, or the error raised by the search, is delivered through ``reply``.
    Cancelling ``reply`` abandons the request: the scheduler logs the failed
    delivery and continues with the next request.
    """

    query: Query
    reply: Future[SearchResult] = field(default_factory=Future, compare=False)


class _Worker:
    """Background thread draining the request queue one search at a time."""

    def __init__(
        self,
        client: DehashedClient,
        *,
        queue_capacity: int,
        delay: float,
        logger: logging.Logger,
    ) -> None:
        self.client = client
        self._delay = delay
        self._logger = logger
        self.queue: queue.Queue[object] = queue.Queue(maxsize=queue_capacity)
        self.stopped = threading.Event()
        self.closing = threading.Event()
        self.exited = threading.Event()
        self._close_lock = threading.Lock()
        self.thread = threading.Thread(target=self._run, name="dehashed-scheduler", daemon=True)
        self.thread.start()

    def _run(self) -> None:
        while not self.stopped.is_set():
            item = self.queue.get()
            if not isinstance(item, ScheduledRequest):
                break
            if self.stopped.is_set():
                item.reply.cancel()
                break
            self._process(item)
            if self.stopped.wait(self._delay):
                break
        # Nothing drains the queue from here on.
        self.exited.set()
        self.abandon_queued()
        self._logger.debug("Scheduler worker exited")

    def _process(self, request: ScheduledRequest) -> None:
        try:
            result = self.client.search(request.query)
        except Exception as exc:
            if self._abandon_if_stopped(request):
                return
            self._deliver(request, exception=exc)
            return
        if self._abandon_if_stopped(request):
            return
        self._deliver(request, result=result)

    def _abandon_if_stopped(self, request: ScheduledRequest) -> bool:
        if self.stopped.is_set():
            request.reply.cancel()
            return True
        return False

    def _deliver(
        self,
        request: ScheduledRequest,
        *,
        result: SearchResult | None = None,
        exception: Exception | None = None,
    ) -> None:
        try:
            if exception is not None:
                request.reply.set_exception(exception)
            else:
                request.reply.set_result(result)  # type: ignore[arg-type]
        except InvalidStateError:
            self._logger.warning("Couldn't send result back through the reply future")

    def abandon_queued(self) -> None:
        """Cancel the reply of every request still waiting in the queue."""
        while True:
            try:
                item = self.queue.get_nowait()
            except queue.Empty:
                return
            if isinstance(item, ScheduledRequest):
                item.reply.cancel()

    def stop(self) -> None:
        self.stopped.set()
        self.abandon_queued()
        try:
            self.queue.put_nowait(_CLOSE)
        except queue.Full:
            # The worker wakes on whichever request filled the queue.
            pass

    def close(self) -> None:
        with self._close_lock:
            if self.closing.is_set() or self.stopped.is_set():
                return
            self.closing.set()
        while not (self.stopped.is_set() or self.exited.is_set()):
            try:
                self.queue.put(_CLOSE, timeout=_PUT_POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def _accepting(self) -> bool:
        return not (self.stopped.is_set() or self.closing.is_set() or self.exited.is_set())

    def put(self, request: ScheduledRequest, timeout: float | None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if not self._accepting():
                raise SchedulerStoppedError("The scheduler no longer accepts requests")
            wait = _PUT_POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self.queue.put_nowait(request)
                    break
                wait = min(wait, remaining)
            try:
                self.queue.put(request, timeout=wait)
                break
            except queue.Full:
                continue
        if self.stopped.is_set() or self.exited.is_set():
            request.reply.cancel()


class RequestSender:
    """Handle for pushing requests to a Scheduler.

    Any number of senders may be used from different threads; requests reach
    the worker in submission order.
    """

    def __init__(self, worker: _Worker) -> None:
        self._worker = worker

    def send(self, request: ScheduledRequest, timeout: float | None = None) -> None:
        """Enqueue a request, blocking while the queue is full.

        Raises ``queue.Full`` when ``timeout`` elapses and SchedulerStoppedError
        when the scheduler was stopped or shut down.
        """
        self._worker.put(request, timeout)

    def submit(self, query: Query, timeout: float | None = None) -> Future[SearchResult]:
        """Enqueue a query and return the future its result is delivered on."""
        request = ScheduledRequest(query)
        self.send(request, timeout=timeout)
        return request.reply

    def clone(self) -> RequestSender:
        return RequestSender(self._worker)


class Scheduler:
    """Runs searches one at a time with a fixed pause between them.

    Start just one scheduler per account through ``DehashedClient.start_scheduler``.
    Clones share the worker and its queue, so stopping any clone stops all of them.
    """

    def __init__(
        self,
        client: DehashedClient,
        *,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        delay: float = DEFAULT_SCHEDULER_DELAY,
        logger: logging.Logger | None = None,
    ) -> None:
        self._worker = _Worker(
            client,
            queue_capacity=queue_capacity,
            delay=delay,
            logger=logger or get_logger(),
        )

    def clone(self) -> Scheduler:
        """Return another handle on the same worker and queue."""
        twin = Scheduler.__new__(Scheduler)
        twin._worker = self._worker
        return twin

    @property
    def is_running(self) -> bool:
        return self._worker.thread.is_alive() and not self._worker.stopped.is_set()

    def retrieve_sender(self) -> RequestSender:
        """Return a sender for pushing requests to this scheduler."""
        return RequestSender(self._worker)

    def stop_scheduler(self) -> None:
        """Stop the worker immediately.

        An in-flight search is not interrupted but its result is not delivered.
        Replies of the in-flight and all queued requests are cancelled.
        """
        self._worker.stop()

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting requests, finish the queued ones, then end the worker."""
        self._worker.close()
        if wait:
            self.join()

    def join(self, timeout: float | None = None) -> None:
        self._worker.thread.join(timeout)
