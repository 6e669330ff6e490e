# dishtile/services/metrics.py

import logging
import threading
import time
from collections import defaultdict

log = logging.getLogger(__name__)


class Metrics:
    """
    Thread-safe in-process counters and timers.
    - Counters: tile hits/misses, generations, envelope builds, failures
    - Timers: durations in seconds, recorded through ``timer()``
    """
    __slots__ = ('_lock', '_counters', '_timers')

    def __init__(self):
        self._lock = threading.RLock()
        self._counters = defaultdict(int)
        # name -> [count, sum, min, max]
        self._timers = {}

    def increment(self, name, value=1):
        try:
            with self._lock:
                self._counters[str(name)] += int(value)
        except (TypeError, ValueError) as exc:
            log.error("metrics.increment error for %s: %s", name, exc)

    def get(self, name):
        with self._lock:
            return self._counters.get(str(name), 0)

    def reset(self):
        with self._lock:
            self._counters.clear()
            self._timers.clear()

    def observe_timer(self, name, seconds):
        key = str(name)
        seconds = float(seconds)
        with self._lock:
            stat = self._timers.get(key)
            if stat is None:
                self._timers[key] = [1, seconds, seconds, seconds]
                return
            stat[0] += 1
            stat[1] += seconds
            stat[2] = min(stat[2], seconds)
            stat[3] = max(stat[3], seconds)

    class _TimerCtx:
        __slots__ = ('_metrics', '_name', '_start')

        def __init__(self, metrics, name):
            self._metrics = metrics
            self._name = str(name)
            self._start = None

        def __enter__(self):
            self._start = time.perf_counter()
            return self

        def __exit__(self, exc_type, exc, tb):
            self._metrics.observe_timer(self._name, time.perf_counter() - self._start)
            return False

    def timer(self, name):
        """
        Usage:
            with METRICS.timer("tiles.encode"):
                encode_tile_pair(base, index)
        """
        return Metrics._TimerCtx(self, name)

    def snapshot(self):
        """Point-in-time copy: {"counters": {...}, "timers": {name: {count, sum, avg, min, max}}}."""
        with self._lock:
            timers = {}
            for k, (cnt, total, mn, mx) in self._timers.items():
                timers[k] = {
                    "count": cnt,
                    "sum": total,
                    "avg": total / cnt if cnt else 0.0,
                    "min": mn,
                    "max": mx,
                }
            return {"counters": dict(self._counters), "timers": timers}


# Module-level singleton shared by the app and the scripts
METRICS = Metrics()
__all__ = ("Metrics", "METRICS")
