"""Driving tasks from an external event source.

cotask has no event loop. This example plays the part of one: a tiny timer
wheel that owns an Interlock keyed by timer id and resumes each sleeping task
when its deadline passes. A request races against a timeout by sharing one
Interlock key between the reply path and the timer.

Key concepts:
- Tasks park on ``Interlock.suspend(key)`` and are resumed by the driver
- Completion propagates up the await chain inside the driver's resume call
- ``then_or_catch`` observes a detached task without keeping its handle

Run with: uv run python examples/timer_driver.py
"""

import heapq
import itertools
import logging

from cotask import Interlock, task

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
log = logging.getLogger("timer_driver")


class TimerWheel:
    """Resumes sleepers in deadline order on a simulated clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleepers: Interlock[int, float] = Interlock()
        self._deadlines: list[tuple[float, int]] = []
        self._ids = itertools.count(1)

    def sleep(self, delay: float):
        timer_id = next(self._ids)
        heapq.heappush(self._deadlines, (self.now + delay, timer_id))
        return self.sleepers.suspend(timer_id)

    def run(self) -> None:
        while self._deadlines:
            deadline, timer_id = heapq.heappop(self._deadlines)
            self.now = deadline
            if timer_id in self.sleepers:
                self.sleepers.resume(timer_id, self.now)


wheel = TimerWheel()
replies: Interlock[str, str] = Interlock()


@task
async def backend(request_id: str, latency: float):
    await wheel.sleep(latency)
    if request_id in replies:
        replies.resume(request_id, f"reply to {request_id}")


@task
async def timeout(request_id: str, limit: float):
    await wheel.sleep(limit)
    if request_id in replies:
        replies.fail(request_id, TimeoutError(f"{request_id} timed out after {limit}s"))


@task
async def call(request_id: str, latency: float, limit: float) -> str:
    backend(request_id, latency).no_wait()
    timeout(request_id, limit).no_wait()
    return await replies.suspend(request_id)


@task
async def session() -> list[str]:
    results = []
    for request_id, latency in (("fast", 1.0), ("slow", 5.0)):
        try:
            results.append(await call(request_id, latency, limit=2.0))
        except TimeoutError as exc:
            results.append(f"error: {exc}")
    return results


def main() -> None:
    session().then_or_catch(
        lambda results: log.info("session finished at t=%s: %s", wheel.now, results),
        lambda exc: log.error("session failed: %r", exc),
    )
    wheel.run()


if __name__ == "__main__":
    main()
