"""General utility functions."""

import logging
import time
from functools import wraps

logger = logging.getLogger(__name__)


def time_function(func):
    """Decorator logging the execution time of each call at DEBUG level."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        logger.debug("%s took %.6f seconds", func.__qualname__, time.time() - start_time)
        return result

    return wrapper
