"""
Bounded task runner used by every fan-out phase of the pipeline.
"""

import asyncio
import os


def default_parallelism():
    """Number of available CPU cores, at least 1."""
    return os.cpu_count() or 1


class BoundedTaskRunner:
    """Run coroutines with at most ``limit`` of them active at once.

    Waiting submissions are admitted in FIFO order. A failing unit does not
    cancel its siblings: ``run_all`` waits for every unit before re-raising.
    """

    def __init__(self, parallel=None):
        if parallel is None:
            parallel = default_parallelism()
        if isinstance(parallel, bool) or not isinstance(parallel, int) or parallel < 1:
            raise ValueError(f"parallel should be an integer >= 1, got {parallel!r}")
        self.limit = parallel
        self.active = 0
        self.peak = 0
        # Created lazily so the semaphore binds to the running loop.
        self._semaphore = None

    async def submit(self, fn, *args):
        """Run ``fn(*args)`` once a slot is free and return its result."""
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.limit)
        async with self._semaphore:
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                return await fn(*args)
            finally:
                self.active -= 1

    async def run_all(self, fn, items):
        """Submit ``fn(item)`` for every item and wait for all of them.

        Results come back in submission order. If any unit failed, the first
        failure (in submission order) is raised after every unit has settled.
        """
        results = await asyncio.gather(
            *(self.submit(fn, item) for item in items),
            return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results
