# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/utils/retry.py

import functools
import logging
import time

from nomadboot.errors import NomadBootError

log = logging.getLogger("nomadboot")


class RetryError(NomadBootError):
    """Raised when every attempt failed; `last_error` is the final failure."""

    def __init__(self, message: str, *, attempts: int, last_error: Exception | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


def retry(
    *,
    retries: int,
    delay: float,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    label: str | None = None,
):
    """
    Retry an idempotent check, logging each failed attempt as
    `[label] attempt n/retries: <error>`. Exceptions outside `retry_on`
    propagate immediately.
    """

    def decorator(fn):
        tag = label or fn.__name__

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            last_exc = None
            for attempt in range(1, retries + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    last_exc = exc
                    log.info(f"[{tag}] attempt {attempt}/{retries}: {exc}")
                    if attempt < retries:
                        time.sleep(delay)
            raise RetryError(
                f"[{tag}] gave up after {retries} attempt(s): {last_exc}",
                attempts=retries,
                last_error=last_exc,
            ) from last_exc
        return wrapper
    return decorator
