import time


def now_millis() -> int:
    """
    Returns the current wall-clock time as integer epoch milliseconds.
    """
    return int(time.time() * 1000)
