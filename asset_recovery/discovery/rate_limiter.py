import logging
import queue
import threading


class RateLimiter:
    """
    Fixed-rate token bucket with no burst accumulation.

    A background thread adds one permit every 1/rate seconds to a buffer that
    holds at most `requests_per_second` permits; ticks that find the buffer
    full are dropped. wait() blocks until a permit is available.
    """

    def __init__(self, requests_per_second: int):
        if requests_per_second < 1:
            raise ValueError(f"requests_per_second must be >= 1, got {requests_per_second}")

        self.requests_per_second = requests_per_second
        self.interval = 1.0 / requests_per_second
        self._permits: queue.Queue = queue.Queue(maxsize=requests_per_second)
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name="rate-limiter", daemon=True)
        self._thread.start()

    def _run(self):
        # Event.wait doubles as the ticker and the stop signal
        while not self._stopped.wait(self.interval):
            try:
                self._permits.put_nowait(None)
            except queue.Full:
                pass

    def wait(self):
        self._permits.get()

    def close(self):
        self._stopped.set()
        self._thread.join(timeout=self.interval * 2)
        logging.debug("Rate limiter stopped")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
