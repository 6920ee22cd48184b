import logging

import pytest

from nomadboot.errors import NomadBootError
from nomadboot.utils.retry import RetryError, retry


def test_retries_until_success():
    calls = []

    @retry(retries=3, delay=0, retry_on=(ValueError,))
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ValueError("not yet")
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 3


def test_exhaustion_keeps_last_error():
    @retry(retries=2, delay=0, retry_on=(ValueError,), label="online")
    def never():
        raise ValueError("2 peer(s), need 3")

    with pytest.raises(RetryError) as ei:
        never()

    assert isinstance(ei.value, NomadBootError)
    assert ei.value.attempts == 2
    assert str(ei.value.last_error) == "2 peer(s), need 3"
    assert "[online]" in str(ei.value)


def test_other_exceptions_are_not_retried():
    calls = []

    @retry(retries=5, delay=0, retry_on=(ValueError,))
    def broken():
        calls.append(1)
        raise KeyError("boom")

    with pytest.raises(KeyError):
        broken()
    assert calls == [1]


def test_failed_attempts_are_logged_under_label():
    records = []

    class Collect(logging.Handler):
        def emit(self, record):
            records.append(record.getMessage())

    handler = Collect()
    logger = logging.getLogger("nomadboot")
    old_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    try:
        attempts = []

        @retry(retries=2, delay=0, retry_on=(ValueError,), label="online")
        def check():
            attempts.append(1)
            if len(attempts) == 1:
                raise ValueError("no leader elected")
            return True

        assert check() is True
    finally:
        logger.removeHandler(handler)
        logger.setLevel(old_level)

    assert records == ["[online] attempt 1/2: no leader elected"]
