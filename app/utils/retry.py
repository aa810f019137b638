"""Exponential backoff for outbound HTTP calls (token requests mostly)"""
import logging
import random
import time
from functools import wraps

import requests

logger = logging.getLogger(__name__)

def is_transient(exception):
    """Connection problems, timeouts, 429 and 5xx are worth another attempt"""
    if isinstance(exception, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exception, requests.HTTPError) and exception.response is not None:
        status = exception.response.status_code
        return status == 429 or 500 <= status < 600
    return False

def calculate_delay(attempt, base_delay=0.5, max_delay=8.0, jitter_factor=0.1):
    delay = min(base_delay * (2 ** attempt), max_delay)
    jitter = random.uniform(-jitter_factor, jitter_factor) * delay
    return max(0, delay + jitter)

def with_retry(max_attempts=3, base_delay=0.5, max_delay=8.0, retry_condition=is_transient):
    """
    Retry the wrapped call on transient failures.

    Non-retryable exceptions propagate immediately; the last exception is
    re-raised once attempts are exhausted.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not retry_condition(e) or attempt == max_attempts - 1:
                        raise
                    delay = calculate_delay(attempt, base_delay, max_delay)
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt + 1}/{max_attempts}): {e}. "
                        f"Retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)
        return wrapper
    return decorator
