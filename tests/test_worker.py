"""Tests de la cola de ingesta y el worker consumidor."""

import threading
import time
from datetime import datetime

import pytest

from telemetry_ingest.mqtt.backpressure import BackpressureQueue
from telemetry_ingest.mqtt.backpressure_config import BackpressureConfig
from telemetry_ingest.mqtt.worker import IngestionWorker


T0 = datetime(2026, 3, 1, 12, 0, 0)


class RecordingProcessor:
    def __init__(self, fail_on=()):
        self.seen = []
        self.fail_on = set(fail_on)
        self.done = threading.Event()
        self.expected = None

    def handle(self, message):
        self.seen.append(message.topic)
        if self.expected is not None and len(self.seen) >= self.expected:
            self.done.set()
        if message.topic in self.fail_on:
            raise RuntimeError("boom")


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        time.sleep(0.01)
    return predicate()


# =============================================================================
# QUEUE
# =============================================================================

class TestBackpressureQueue:

    def test_unbounded_by_default(self):
        queue = BackpressureQueue(BackpressureConfig())
        for i in range(500):
            assert queue.put(i) is True
        assert queue.size == 500
        stats = queue.get_stats()
        assert stats["dropped"] == 0
        assert stats["max_size"] is None

    def test_fifo_order(self):
        queue = BackpressureQueue(BackpressureConfig())
        for i in range(3):
            queue.put(i)
        assert [queue.get_nowait() for _ in range(3)] == [0, 1, 2]
        assert queue.get_nowait() is None

    def test_drop_oldest_policy(self):
        queue = BackpressureQueue(BackpressureConfig(max_queue_size=2, drop_oldest=True))
        for i in range(4):
            assert queue.put(i) is True

        assert [queue.get_nowait(), queue.get_nowait()] == [2, 3]
        assert queue.get_stats()["dropped"] == 2

    def test_reject_new_policy(self):
        queue = BackpressureQueue(BackpressureConfig(max_queue_size=2, drop_oldest=False))
        assert queue.put("a") is True
        assert queue.put("b") is True
        assert queue.put("c") is False

        assert [queue.get_nowait(), queue.get_nowait()] == ["a", "b"]
        assert queue.get_stats()["dropped"] == 1

    def test_get_times_out_with_none(self):
        queue = BackpressureQueue(BackpressureConfig())
        assert queue.get(timeout=0.01) is None

    def test_high_watermark(self):
        queue = BackpressureQueue(BackpressureConfig())
        for i in range(5):
            queue.put(i)
        while queue.get_nowait() is not None:
            pass
        stats = queue.get_stats()
        assert stats["current_size"] == 0
        assert stats["high_watermark"] == 5

    def test_config_from_env(self, monkeypatch):
        monkeypatch.setenv("MQTT_QUEUE_MAX_SIZE", "100")
        monkeypatch.setenv("MQTT_DROP_OLDEST", "false")
        config = BackpressureConfig.from_env()
        assert config.bounded is True
        assert config.max_queue_size == 100
        assert config.drop_oldest is False


# =============================================================================
# WORKER
# =============================================================================

class TestIngestionWorker:

    def test_process_pending_in_arrival_order(self):
        processor = RecordingProcessor()
        worker = IngestionWorker(processor, BackpressureConfig())

        for topic in ("a", "b", "c"):
            worker.enqueue(topic, b"1", T0)

        assert worker.process_pending() == 3
        assert processor.seen == ["a", "b", "c"]
        assert worker.stats["processed"] == 3

    def test_failure_does_not_stop_the_queue(self):
        processor = RecordingProcessor(fail_on={"b"})
        worker = IngestionWorker(processor, BackpressureConfig())

        for topic in ("a", "b", "c"):
            worker.enqueue(topic, b"", T0)
        worker.process_pending()

        assert processor.seen == ["a", "b", "c"]
        assert worker.stats["processed"] == 2
        assert worker.stats["errors"] == 1

    def test_reject_new_counted(self):
        processor = RecordingProcessor()
        worker = IngestionWorker(processor, BackpressureConfig(max_queue_size=1, drop_oldest=False))

        worker.enqueue("a", b"", T0)
        worker.enqueue("b", b"", T0)

        assert worker.stats["rejected"] == 1
        worker.process_pending()
        assert processor.seen == ["a"]

    def test_stop_accepting_ignores_new_messages(self):
        processor = RecordingProcessor()
        worker = IngestionWorker(processor, BackpressureConfig())

        worker.stop_accepting()
        worker.enqueue("a", b"", T0)

        assert worker.queue.is_empty
        assert worker.stats["accepting"] is False

    def test_enqueue_defaults_received_at(self):
        processor = RecordingProcessor()
        worker = IngestionWorker(processor, BackpressureConfig())

        worker.enqueue("a", None)

        message = worker.queue.get_nowait()
        assert message.payload == b""
        assert isinstance(message.received_at, datetime)

    def test_threaded_consumer(self):
        processor = RecordingProcessor()
        processor.expected = 3
        worker = IngestionWorker(processor, BackpressureConfig(), poll_timeout=0.05)

        worker.start()
        try:
            for topic in ("a", "b", "c"):
                worker.enqueue(topic, b"", T0)
            assert processor.done.wait(5)
        finally:
            worker.stop(timeout=5)

        assert processor.seen == ["a", "b", "c"]
        assert worker.is_running is False

    def test_stop_with_drain_processes_backlog(self):
        gate = threading.Event()

        class SlowProcessor(RecordingProcessor):
            def handle(self, message):
                gate.wait(5)
                super().handle(message)

        processor = SlowProcessor()
        worker = IngestionWorker(processor, BackpressureConfig(), poll_timeout=0.05)
        worker.start()
        for topic in ("a", "b", "c"):
            worker.enqueue(topic, b"", T0)
        assert _wait_until(lambda: worker.queue.size < 3)

        stopper = threading.Thread(target=worker.stop, kwargs={"drain": True, "timeout": 5})
        stopper.start()
        gate.set()
        stopper.join(5)

        assert processor.seen == ["a", "b", "c"]

    @pytest.mark.parametrize("payload", [b"\xff\xfe", b"x" * 10_000])
    def test_enqueue_never_raises(self, payload):
        worker = IngestionWorker(RecordingProcessor(), BackpressureConfig())
        worker.enqueue("farm/dev/sensor/temperature", payload, T0)
        assert worker.queue.size == 1
