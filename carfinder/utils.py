# carfinder/utils.py
"""Shared utilities: the service logger and a retry decorator for outbound HTTP."""
import logging
import time
from functools import wraps

from .settings import LOG_LEVEL

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def get_logger(name="carfinder"):
    logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, LOG_LEVEL, logging.INFO))
    return logging.getLogger(name)

logger = get_logger()

def retry(exceptions, tries=3, delay=1, backoff=2, target=None, logger=logger):
    """Retry a call on ``exceptions`` with exponential backoff.

    ``target`` names the remote service in the warning, e.g. ``"resend"``;
    the last attempt's exception propagates.
    """
    def deco_retry(f):
        label = target or f.__qualname__

        @wraps(f)
        def f_retry(*args, **kwargs):
            mdelay = delay
            for attempt in range(1, tries):
                try:
                    return f(*args, **kwargs)
                except exceptions as e:
                    logger.warning(
                        "%s call failed (attempt %d/%d): %s, retrying in %s sec",
                        label, attempt, tries, e, mdelay,
                    )
                    time.sleep(mdelay)
                    mdelay *= backoff
            return f(*args, **kwargs)
        return f_retry
    return deco_retry
