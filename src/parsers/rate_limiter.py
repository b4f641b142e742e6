import asyncio


class RateLimiter:
    """Minimum-interval limiter for async HTTP clients.

    All coroutines sharing one instance are serialized through a lock, so the
    combined request rate stays at or below ``max_rps``. ``max_rps <= 0``
    disables limiting.
    """

    def __init__(self, max_rps: float) -> None:
        self._min_interval = 1.0 / max_rps if max_rps > 0 else 0.0
        self._last_request = 0.0
        self._lock = asyncio.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    async def acquire(self) -> None:
        if not self._min_interval:
            return
        async with self._lock:
            loop = asyncio.get_running_loop()
            wait = self._min_interval - (loop.time() - self._last_request)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request = loop.time()
