# util/timing.py
import time
from contextlib import contextmanager
from typing import Iterator, Dict, Any
import logging


def now_ms() -> int:
    return int(time.time() * 1000)


@contextmanager
def timed(
    logger: logging.Logger, name: str, **kv: Any
) -> Iterator[Dict[str, int]]:
    """
    Usage:
      with timed(logger, "search.run", queries=4) as t:
          ...
      t["ms"]  # elapsed milliseconds, set on exit
    Emits one INFO on exit: "<name>.done ms=<int> key=val ..."
    """
    t0 = time.perf_counter()
    out: Dict[str, int] = {"ms": 0}
    try:
        yield out
    finally:
        out["ms"] = int((time.perf_counter() - t0) * 1000)
        suffix = "".join(f" {k}={v}" for k, v in kv.items())
        logger.info("%s.done ms=%d%s", name, out["ms"], suffix)
