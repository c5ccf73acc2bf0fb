import logging
import threading
import time
from concurrent.futures import CancelledError
from typing import Any

import pytest

from dehashed_client.config import ClientConfig
from dehashed_client.errors import RateLimitedError, SchedulerStoppedError
from dehashed_client.models import SearchResult
from dehashed_client.query import Query, Simple
from dehashed_client.scheduler import ScheduledRequest, Scheduler

LOGGER = logging.getLogger("test")


class RecordingClient:
    """Stand-in for DehashedClient recording when each search runs."""

    def __init__(self, duration: float = 0.0) -> None:
        self._duration = duration
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.spans: list[tuple[str, float, float]] = []

    def search(self, query: Query) -> SearchResult:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        started = time.monotonic()
        time.sleep(self._duration)
        with self._lock:
            self.active -= 1
            self.spans.append((str(query), started, time.monotonic()))
        if "fail" in str(query):
            raise RateLimitedError("rate limited")
        return SearchResult(entries=[], balance=len(self.spans))


class BlockingClient:
    """Stand-in whose first search blocks until released."""

    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls: list[str] = []

    def search(self, query: Query) -> SearchResult:
        self.calls.append(str(query))
        self.started.set()
        self.release.wait(5)
        return SearchResult()


def query(text: str) -> Query:
    return Query.username(Simple(text))


def make_scheduler(client: Any, delay: float = 0.0, capacity: int = 5) -> Scheduler:
    return Scheduler(client, queue_capacity=capacity, delay=delay, logger=LOGGER)


def test_requests_run_sequentially_in_fifo_order_with_delay() -> None:
    client = RecordingClient(duration=0.02)
    scheduler = make_scheduler(client, delay=0.05)
    sender = scheduler.retrieve_sender()

    futures = [sender.submit(query(name)) for name in ("first", "second", "third")]
    results = [future.result(timeout=5) for future in futures]
    scheduler.stop_scheduler()

    assert [result.balance for result in results] == [1, 2, 3]
    assert [span[0] for span in client.spans] == [
        "username:first",
        "username:second",
        "username:third",
    ]
    assert client.max_active == 1
    for previous, current in zip(client.spans, client.spans[1:]):
        assert current[1] - previous[2] >= 0.045


def test_errors_are_delivered_through_the_reply() -> None:
    client = RecordingClient()
    scheduler = make_scheduler(client)
    request = ScheduledRequest(query("fail"))
    scheduler.retrieve_sender().send(request)

    with pytest.raises(RateLimitedError):
        request.reply.result(timeout=5)
    assert scheduler.is_running
    scheduler.stop_scheduler()


def test_cloned_senders_share_the_queue() -> None:
    client = RecordingClient()
    scheduler = make_scheduler(client)
    sender = scheduler.retrieve_sender()
    other = sender.clone()

    results: list[SearchResult] = []

    def produce(handle: Any, name: str) -> None:
        results.append(handle.submit(query(name)).result(timeout=5))

    threads = [
        threading.Thread(target=produce, args=(handle, f"user{index}"))
        for index, handle in enumerate([sender, other, sender, other])
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    scheduler.stop_scheduler()
    assert len(results) == 4
    assert client.max_active == 1


def test_abandoned_reply_is_logged_and_worker_continues(caplog: pytest.LogCaptureFixture) -> None:
    client = BlockingClient()
    scheduler = make_scheduler(client)
    sender = scheduler.retrieve_sender()

    abandoned = sender.submit(query("gone"))
    assert client.started.wait(5)
    abandoned.cancel()
    with caplog.at_level(logging.WARNING, logger="test"):
        client.release.set()
        follow_up = sender.submit(query("next"))
        assert isinstance(follow_up.result(timeout=5), SearchResult)

    assert "Couldn't send result back" in caplog.text
    assert client.calls == ["username:gone", "username:next"]
    scheduler.stop_scheduler()


def test_stop_abandons_in_flight_and_queued_requests() -> None:
    client = BlockingClient()
    scheduler = make_scheduler(client)
    sender = scheduler.retrieve_sender()

    in_flight = sender.submit(query("a"))
    assert client.started.wait(5)
    queued = [sender.submit(query(name)) for name in ("b", "c")]

    scheduler.stop_scheduler()
    client.release.set()
    scheduler.join(5)

    assert not scheduler.is_running
    for future in [in_flight, *queued]:
        with pytest.raises(CancelledError):
            future.result(timeout=5)
    assert client.calls == ["username:a"]


def test_stopping_a_clone_stops_the_shared_worker() -> None:
    scheduler = make_scheduler(RecordingClient())
    clone = scheduler.clone()

    clone.stop_scheduler()
    scheduler.join(5)

    assert not scheduler.is_running
    with pytest.raises(SchedulerStoppedError):
        scheduler.retrieve_sender().submit(query("late"))


def test_shutdown_drains_queued_requests() -> None:
    client = RecordingClient(duration=0.01)
    scheduler = make_scheduler(client)
    sender = scheduler.retrieve_sender()
    futures = [sender.submit(query(f"user{index}")) for index in range(3)]

    scheduler.shutdown()

    assert [future.result(timeout=0).balance for future in futures] == [1, 2, 3]
    assert not scheduler.is_running
    with pytest.raises(SchedulerStoppedError):
        sender.submit(query("late"))


def test_full_queue_applies_backpressure() -> None:
    import queue

    client = BlockingClient()
    scheduler = make_scheduler(client, capacity=1)
    sender = scheduler.retrieve_sender()

    sender.submit(query("running"))
    assert client.started.wait(5)
    sender.submit(query("waiting"))
    with pytest.raises(queue.Full):
        sender.submit(query("overflow"), timeout=0.05)

    scheduler.stop_scheduler()
    client.release.set()
    scheduler.join(5)


def test_client_starts_scheduler_with_configured_policy() -> None:
    from dehashed_client.client import DehashedClient

    config = ClientConfig(
        email="me@example.com", api_key="key", scheduler_delay=0.0, queue_capacity=2
    )
    client = DehashedClient(config, session=object(), logger=LOGGER)  # type: ignore[arg-type]
    scheduler = client.start_scheduler()
    try:
        assert scheduler.is_running
        assert scheduler.retrieve_sender()._worker.queue.maxsize == 2
    finally:
        scheduler.stop_scheduler()
        scheduler.join(5)


def test_stop_releases_producers_blocked_on_a_full_queue() -> None:
    client = BlockingClient()
    scheduler = make_scheduler(client, capacity=1)
    sender = scheduler.retrieve_sender()

    sender.submit(query("running"))
    assert client.started.wait(5)
    sender.submit(query("queued"))

    outcomes: list[str] = []

    def produce(name: str) -> None:
        try:
            future = sender.submit(query(name))
        except SchedulerStoppedError:
            outcomes.append("rejected")
            return
        outcomes.append("cancelled" if future.cancelled() else "pending")

    producers = [threading.Thread(target=produce, args=(f"extra{index}",)) for index in range(4)]
    for producer in producers:
        producer.start()
    time.sleep(0.1)

    scheduler.stop_scheduler()
    client.release.set()
    scheduler.join(5)
    for producer in producers:
        producer.join(2)

    assert not any(producer.is_alive() for producer in producers)
    assert len(outcomes) == 4
    assert "pending" not in outcomes


def test_shutdown_rejects_producers_blocked_on_a_full_queue() -> None:
    client = BlockingClient()
    scheduler = make_scheduler(client, capacity=1)
    sender = scheduler.retrieve_sender()

    sender.submit(query("running"))
    assert client.started.wait(5)
    queued = sender.submit(query("queued"))

    errors: list[Exception] = []

    def produce() -> None:
        try:
            sender.submit(query("blocked"))
        except SchedulerStoppedError as exc:
            errors.append(exc)

    producer = threading.Thread(target=produce)
    producer.start()
    time.sleep(0.1)

    closer = threading.Thread(target=scheduler.shutdown)
    closer.start()
    producer.join(2)
    client.release.set()
    closer.join(5)

    assert not producer.is_alive()
    assert not closer.is_alive()
    assert len(errors) == 1
    assert isinstance(queued.result(timeout=0), SearchResult)
