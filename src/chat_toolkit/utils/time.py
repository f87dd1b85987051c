import time


def get_current_timestamp() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
