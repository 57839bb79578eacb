"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from freezegun import freeze_time

from aws_sigv4_signers import (
    InvalidSigningDateException,
    SystemClock,
    get_clock_offset,
    get_date_from_header_string,
    get_date_with_clock_offset,
    get_header_string_from_date,
    is_clock_skew_error,
    is_clock_skewed,
    server_date_from_error,
    set_clock_offset,
)
from aws_sigv4_signers._clock import parse_date_header

FROZEN = datetime(2015, 8, 30, 12, 36, tzinfo=UTC)


class FixedClock:
    def __init__(self, now: datetime, offset: int = 0):
        self._now = now
        self.offset = offset

    def now(self) -> datetime:
        return self._now + timedelta(milliseconds=self.offset)


class ServiceError(Exception):
    def __init__(self, response: object):
        super().__init__("request rejected")
        self.response = response


@pytest.fixture(autouse=True)
def reset_clock_offset() -> Iterator[None]:
    yield
    set_clock_offset(0)


@freeze_time("2015-08-30 12:36:00")
def test_system_clock_now():
    assert SystemClock().now() == FROZEN


@freeze_time("2015-08-30 12:36:00")
def test_system_clock_offset():
    clock = SystemClock(offset=-1500)
    assert clock.offset == -1500
    assert clock.now() == FROZEN - timedelta(seconds=1.5)

    clock.set_offset(60_000)
    assert clock.now() == FROZEN + timedelta(minutes=1)


@freeze_time("2015-08-30 12:36:00")
def test_process_clock_offset():
    assert get_clock_offset() == 0
    set_clock_offset(120_000)
    assert get_clock_offset() == 120_000
    assert get_date_with_clock_offset() == FROZEN + timedelta(minutes=2)
    assert get_header_string_from_date() == "20150830T123800Z"


def test_date_with_explicit_clock():
    assert get_date_with_clock_offset(FixedClock(FROZEN, offset=1000)) == (
        FROZEN + timedelta(seconds=1)
    )


@pytest.mark.parametrize(
    "date, expected",
    [
        (FROZEN, "20150830T123600Z"),
        (datetime(2015, 8, 30, 12, 36), "20150830T123600Z"),
        (
            datetime(2015, 8, 30, 14, 36, tzinfo=timezone(timedelta(hours=2))),
            "20150830T123600Z",
        ),
        (datetime(2024, 1, 2, 3, 4, 5, 999999, tzinfo=UTC), "20240102T030405Z"),
    ],
)
def test_get_header_string_from_date(date: datetime, expected: str):
    assert get_header_string_from_date(date) == expected


def test_get_date_from_header_string():
    assert get_date_from_header_string("20150830T123600Z") == FROZEN


@pytest.mark.parametrize(
    "value",
    [
        "2015-08-30T12:36:00Z",
        "20150830T1236Z",
        "20150830T123600",
        "20151330T123600Z",
        "",
        None,
    ],
)
def test_get_date_from_header_string_rejects(value):
    with pytest.raises(InvalidSigningDateException) as exc_info:
        get_date_from_header_string(value)
    assert exc_info.value.value == value


@pytest.mark.parametrize(
    "value",
    [
        "Sun, 30 Aug 2015 12:36:00 GMT",
        "Sun, 30 Aug 2015 14:36:00 +0200",
        "2015-08-30T12:36:00+00:00",
        "2015-08-30T12:36:00",
        "20150830T123600Z",
        " Sun, 30 Aug 2015 12:36:00 GMT ",
    ],
)
def test_parse_date_header(value: str):
    assert parse_date_header(value) == FROZEN


@pytest.mark.parametrize("value", ["not a date", "", "   "])
def test_parse_date_header_rejects(value: str):
    with pytest.raises(InvalidSigningDateException):
        parse_date_header(value)


@pytest.mark.parametrize(
    "server_date, skewed",
    [
        (FROZEN, False),
        (FROZEN + timedelta(minutes=4, seconds=59), False),
        (FROZEN - timedelta(minutes=4, seconds=59), False),
        (FROZEN + timedelta(minutes=5), True),
        (FROZEN - timedelta(minutes=5), True),
        (FROZEN + timedelta(hours=3), True),
        (datetime(2015, 8, 30, 12, 40), False),
    ],
)
def test_is_clock_skewed(server_date: datetime, skewed: bool):
    assert is_clock_skewed(server_date, FixedClock(FROZEN)) is skewed


def test_is_clock_skewed_accounts_for_offset():
    server_date = FROZEN + timedelta(minutes=10)
    clock = FixedClock(FROZEN)
    assert is_clock_skewed(server_date, clock)

    clock.offset = 10 * 60 * 1000
    assert not is_clock_skewed(server_date, clock)


@freeze_time("2015-08-30 12:36:00")
def test_is_clock_skewed_uses_process_clock():
    server_date = FROZEN + timedelta(minutes=10)
    assert is_clock_skewed(server_date)

    set_clock_offset(10 * 60 * 1000)
    assert not is_clock_skewed(server_date)


@pytest.mark.parametrize(
    "error, expected",
    [
        (
            ServiceError(
                SimpleNamespace(
                    headers={
                        "x-amzn-ErrorType": "InvalidSignatureException",
                        "Date": "Sun, 30 Aug 2015 12:36:00 GMT",
                    }
                )
            ),
            True,
        ),
        (
            ServiceError(
                {
                    "headers": {
                        "X-AMZN-ERRORTYPE": "BadRequestException:http://internal/",
                        "date": "Sun, 30 Aug 2015 12:36:00 GMT",
                    }
                }
            ),
            True,
        ),
        (
            ServiceError(
                SimpleNamespace(
                    headers={"x-amzn-ErrorType": "InvalidSignatureException"}
                )
            ),
            False,
        ),
        (
            ServiceError(
                SimpleNamespace(
                    headers={
                        "x-amzn-ErrorType": "AccessDeniedException",
                        "Date": "Sun, 30 Aug 2015 12:36:00 GMT",
                    }
                )
            ),
            False,
        ),
        (ServiceError(SimpleNamespace(headers=None)), False),
        (ServiceError(None), False),
        (ValueError("no response"), False),
    ],
)
def test_is_clock_skew_error(error: Exception, expected: bool):
    assert is_clock_skew_error(error) is expected


def test_server_date_from_error():
    error = ServiceError(
        SimpleNamespace(
            headers={
                "x-amzn-ErrorType": "InvalidSignatureException",
                "Date": "Sun, 30 Aug 2015 12:36:00 GMT",
            }
        )
    )
    assert server_date_from_error(error) == FROZEN
    assert server_date_from_error(ServiceError(SimpleNamespace(headers={}))) is None
