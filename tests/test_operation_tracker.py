"""Tests for operation tracking, rate limiting and change notifications

Run with pytest from project root:
    pytest tests/test_operation_tracker.py -v
"""

import asyncio
import logging

import pytest

from errors import RATE_LIMITED, RateLimitExceeded, UnknownOperationError
from managers.operation_tracker import OperationTracker
from managers.rate_limiter import RateLimiter
from managers.resource_notifier import ResourceNotifier
from models.operation import MAX_OPERATION_EVENTS, OperationStatus


class TestOperationTracker:
    """Tests for OperationTracker"""

    def test_start_assigns_sequential_ids(self):
        tracker = OperationTracker()
        assert tracker.start("generate_3d_asset", prefix="3D") == "3D-1"
        assert tracker.start("generate_3d_asset", prefix="3D") == "3D-2"
        assert len(tracker) == 2

    def test_start_records_started(self):
        tracker = OperationTracker()
        op_id = tracker.start("job", prompt="castle")
        operation = tracker.get(op_id)
        assert operation.status is OperationStatus.STARTED
        assert operation.events[0].details == {"prompt": "castle"}

    def test_events_bounded(self):
        """101 events keep only the newest 100"""
        tracker = OperationTracker()
        op_id = tracker.start("job")
        for i in range(MAX_OPERATION_EVENTS):
            tracker.record(op_id, OperationStatus.PROCESSING, step=i)
        events = tracker.get(op_id).events
        assert len(events) == MAX_OPERATION_EVENTS
        assert events[0].details == {"step": 0}
        assert events[-1].details == {"step": MAX_OPERATION_EVENTS - 1}

    def test_message_format(self):
        tracker = OperationTracker()
        op_id = tracker.start("generate_3d_asset", prefix="3D")
        event = tracker.record(op_id, OperationStatus.WAITING, reason="quota", wait_seconds=91)
        assert event.message == "Operation 3D-1 [generate_3d_asset] - WAITING - reason: quota, wait_seconds: 91"

    def test_error_logged_at_error_level(self, caplog):
        tracker = OperationTracker()
        op_id = tracker.start("job")
        with caplog.at_level(logging.INFO, logger="MCP_Server"):
            tracker.record(op_id, OperationStatus.ERROR, error="boom")
        assert caplog.records[-1].levelno == logging.ERROR

    def test_unknown_operation(self):
        tracker = OperationTracker()
        with pytest.raises(UnknownOperationError):
            tracker.record("3D-99", OperationStatus.PROCESSING)
        assert tracker.find("3D-99") is None

    def test_snapshot(self):
        tracker = OperationTracker()
        op_id = tracker.start("job")
        tracker.record(op_id, OperationStatus.COMPLETED, glb_uri="asset://3d_model/x.glb")
        snapshot = tracker.snapshot(op_id)
        assert snapshot["status"] == "COMPLETED"
        assert snapshot["finished"] is True
        assert snapshot["latest"]["details"]["glb_uri"] == "asset://3d_model/x.glb"
        assert len(snapshot["events"]) == 2


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestRateLimiter:
    """Tests for RateLimiter"""

    def test_limit_within_window(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=3, window_seconds=60, clock=clock)
        assert [limiter.check("a") for _ in range(4)] == [True, True, True, False]

    def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=1, window_seconds=60, clock=clock)
        assert limiter.check("a") is True
        assert limiter.check("a") is False
        clock.now = 61.0
        assert limiter.check("a") is True

    def test_keys_independent(self):
        limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())
        assert limiter.check("a") is True
        assert limiter.check("b") is True
        assert limiter.check(None) is True
        assert limiter.check("default") is False

    def test_enforce_raises(self):
        clock = FakeClock()
        limiter = RateLimiter(limit=1, window_seconds=60, clock=clock)
        limiter.enforce("a")
        clock.now = 15.0
        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.enforce("a")
        assert exc_info.value.error_code == RATE_LIMITED
        assert exc_info.value.retry_after == pytest.approx(45.0)


class FakeSession:
    def __init__(self, fail=False):
        self.fail = fail
        self.notified = 0

    async def send_resource_list_changed(self):
        if self.fail:
            raise ConnectionError("closed")
        self.notified += 1


class TestResourceNotifier:
    """Tests for ResourceNotifier"""

    def test_notify_all(self):
        notifier = ResourceNotifier()
        first, second = FakeSession(), FakeSession()
        notifier.register(first)
        notifier.register(second)
        notifier.register(first)
        asyncio.run(notifier.notify())
        assert notifier.listener_count == 2
        assert (first.notified, second.notified) == (1, 1)

    def test_failed_session_dropped(self):
        """A broken session is removed and does not stop the broadcast"""
        notifier = ResourceNotifier()
        broken, healthy = FakeSession(fail=True), FakeSession()
        notifier.register(broken)
        notifier.register(healthy)
        asyncio.run(notifier.notify())
        assert healthy.notified == 1
        assert notifier.listener_count == 1

    def test_notify_without_listeners(self):
        asyncio.run(ResourceNotifier().notify())
