# gymhub/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import requests
import redis

def http_retry():
    #network errors only, a 401/403 from the hub will not change on retry
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    )

def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )

def reconnect_wait(initial_delay: float, max_delay: float) -> wait_exponential:
    # attempt_number 1 -> initial_delay, then doubles up to max_delay
    return wait_exponential(multiplier=initial_delay, max=max_delay)
