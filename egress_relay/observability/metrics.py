from __future__ import annotations

import asyncio
import contextlib
import queue

import structlog

from egress_relay.models.schemas import LatencyWindow

DEFAULT_CAPACITY = 4096
DEFAULT_INTERVAL_SECONDS = 60.0


class SampleBuffer:
    """Bounded, thread-safe FIFO of latency samples.

    Producers never block: ``offer`` drops the sample and returns ``False`` when
    the buffer already holds ``capacity`` samples.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._queue: queue.Queue[float] = queue.Queue(maxsize=capacity)

    def offer(self, sample: float) -> bool:
        try:
            self._queue.put_nowait(sample)
        except queue.Full:
            return False
        return True

    def drain(self) -> list[float]:
        """Remove and return the samples buffered at call time, oldest first."""

        samples: list[float] = []
        for _ in range(self._queue.qsize()):
            try:
                samples.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return samples

    def __len__(self) -> int:
        return self._queue.qsize()


def aggregate(samples: list[float]) -> LatencyWindow:
    if not samples:
        return LatencyWindow(count=0)
    total = float(sum(samples))
    return LatencyWindow(count=len(samples), total_seconds=total, mean_seconds=total / len(samples))


class PerformanceCounter:
    """Aggregates per-request latency on a fixed interval, off the request path."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, interval: float = DEFAULT_INTERVAL_SECONDS) -> None:
        self.buffer = SampleBuffer(capacity)
        self.interval = interval
        self.last_window: LatencyWindow | None = None
        self._task: asyncio.Task[None] | None = None

    def record(self, elapsed_seconds: float) -> bool:
        return self.buffer.offer(elapsed_seconds)

    def pending(self) -> int:
        return len(self.buffer)

    def drain_once(self) -> LatencyWindow:
        window = aggregate(self.buffer.drain())
        log = structlog.get_logger("performance")
        if window.count == 0:
            log.info("performance.no_requests", interval_seconds=self.interval)
        else:
            log.info(
                "performance.window",
                count=window.count,
                mean_seconds=round(window.mean_seconds or 0.0, 6),
                interval_seconds=self.interval,
            )
        self.last_window = window
        return window

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.drain_once()
            except Exception:  # noqa: BLE001 - a bad tick must not stop the loop
                structlog.get_logger("performance").exception("performance.tick_failed")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
