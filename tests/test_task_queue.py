"""Tests for the serial progress queue."""

import threading

from opencode_notifier.taskqueue import SerialTaskQueue


class TestSerialTaskQueue:
    """Tasks run one at a time in submission order."""

    def test_runs_immediately_when_idle(self):
        queue = SerialTaskQueue()
        ran = []
        queue.submit(lambda: ran.append(1))
        assert ran == [1]
        assert queue.pending == 0
        assert queue.draining is False

    def test_order_preserved(self):
        queue = SerialTaskQueue()
        ran = []
        for i in range(5):
            queue.submit(lambda i=i: ran.append(i))
        assert ran == [0, 1, 2, 3, 4]

    def test_failing_task_does_not_block_queue(self, caplog):
        """A failure is logged and the next task still runs."""
        queue = SerialTaskQueue(name="progress:ses_1")
        ran = []

        def boom():
            raise RuntimeError("kaput")

        queue.submit(boom)
        queue.submit(lambda: ran.append("after"))

        assert ran == ["after"]
        assert "progress:ses_1" in caplog.text
        assert "kaput" in caplog.text

    def test_submit_from_inside_task_runs_after(self):
        """Reentrant submits are queued, never nested."""
        queue = SerialTaskQueue()
        ran = []

        def outer():
            ran.append("outer start")
            queue.submit(lambda: ran.append("inner"))
            ran.append("outer end")

        queue.submit(outer)
        assert ran == ["outer start", "outer end", "inner"]

    def test_concurrent_submits_never_overlap(self):
        queue = SerialTaskQueue()
        active = []
        overlaps = []
        lock = threading.Lock()

        def task():
            with lock:
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
            with lock:
                active.pop()

        threads = [threading.Thread(target=lambda: [queue.submit(task) for _ in range(50)]) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert queue.pending == 0
