"""Exponential backoff around catalog calls."""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from bundleman.exceptions import BundleError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_backoff(
    fn: Callable[..., T],
    *args: Any,
    retries: int | None = None,
    base_delay: float | None = None,
    **kwargs: Any,
) -> T:
    """
    Call fn, retrying on rate limits and timeouts.

    The delay starts at base_delay seconds and doubles after every attempt;
    a larger Retry-After sent by the catalog wins. Non-retryable errors
    propagate immediately.

    Raises:
        BundleError: RETRIES_EXHAUSTED once `retries` retries have failed.
    """
    from bundleman.conf import bundleman_settings

    if retries is None:
        retries = bundleman_settings.RETRY_ATTEMPTS
    if base_delay is None:
        base_delay = bundleman_settings.RETRY_BASE_DELAY

    delay = base_delay
    attempt = 0
    while True:
        try:
            return fn(*args, **kwargs)
        except BundleError as e:
            if not e.retryable:
                raise
            if attempt >= retries:
                raise BundleError(
                    "RETRIES_EXHAUSTED",
                    call=getattr(fn, "__name__", repr(fn)),
                    attempts=attempt + 1,
                    last_code=e.code,
                    product_id=e.product_id,
                ) from e
            wait = max(delay, e.retry_after or 0)
            logger.debug(
                "%s hit %s, retrying in %.2fs (attempt %d/%d)",
                getattr(fn, "__name__", fn), e.code, wait, attempt + 1, retries,
            )
            time.sleep(wait)
            delay *= 2
            attempt += 1
