"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

Signing clock with an adjustable offset for devices whose wall clock
disagrees with AWS.
"""

import datetime
import logging
import re
from collections.abc import Mapping
from email.utils import parsedate_to_datetime
from typing import Any

from .exceptions import InvalidSigningDateException
from .interfaces.clock import Clock

logger = logging.getLogger(__name__)

SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"

# API Gateway and the SigV4 services reject requests off by five minutes or more.
CLOCK_SKEW_TOLERANCE = datetime.timedelta(minutes=5)

CLOCK_SKEW_ERROR_TYPES: tuple[str, ...] = (
    "BadRequestException",
    "InvalidSignatureException",
)

_SIGV4_TIMESTAMP_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})Z$")


class SystemClock:
    """Wall clock shifted by a caller-set offset in milliseconds."""

    def __init__(self, offset: int = 0):
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    def set_offset(self, offset: int) -> None:
        logger.debug("Clock offset changed from %sms to %sms", self._offset, offset)
        self._offset = offset

    def now(self) -> datetime.datetime:
        now = datetime.datetime.now(datetime.UTC)
        if self._offset:
            return now + datetime.timedelta(milliseconds=self._offset)
        return now


DEFAULT_CLOCK = SystemClock()


def default_clock() -> Clock:
    return DEFAULT_CLOCK


def get_clock_offset() -> int:
    """Clock offset of the process-wide clock, in milliseconds."""
    return DEFAULT_CLOCK.offset


def set_clock_offset(offset: int) -> None:
    """Set the process-wide clock offset, in milliseconds."""
    DEFAULT_CLOCK.set_offset(offset)


def get_date_with_clock_offset(clock: Clock = DEFAULT_CLOCK) -> datetime.datetime:
    return clock.now()


def get_header_string_from_date(date: datetime.datetime | None = None) -> str:
    """Format a date as a SigV4 timestamp, ``YYYYMMDDTHHMMSSZ``.

    Defaults to the current time of the process-wide clock.
    """
    if date is None:
        date = DEFAULT_CLOCK.now()
    elif date.tzinfo is not None:
        date = date.astimezone(datetime.UTC)
    return date.strftime(SIGV4_TIMESTAMP_FORMAT)


def get_date_from_header_string(value: str) -> datetime.datetime:
    """Parse a SigV4 timestamp into an aware UTC datetime."""
    match = _SIGV4_TIMESTAMP_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise InvalidSigningDateException(
            f"Expected a timestamp in the form YYYYMMDDTHHMMSSZ, received {value!r}.",
            value=value,
        )
    try:
        return datetime.datetime(*map(int, match.groups()), tzinfo=datetime.UTC)
    except ValueError as e:
        raise InvalidSigningDateException(
            f"Received an impossible timestamp {value!r}.", value=value
        ) from e


def parse_date_header(value: str) -> datetime.datetime:
    """Parse a ``Date`` header value.

    Accepts RFC 7231 dates (``Sun, 30 Aug 2015 12:36:00 GMT``), ISO 8601 and
    SigV4 timestamps. Naive values are taken to be UTC.
    """
    if not isinstance(value, str) or not value.strip():
        raise InvalidSigningDateException(
            f"Unacceptable date header value {value!r}.", value=value
        )
    value = value.strip()
    if _SIGV4_TIMESTAMP_RE.match(value):
        return get_date_from_header_string(value)

    try:
        date = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        try:
            date = datetime.datetime.fromisoformat(value)
        except ValueError as e:
            raise InvalidSigningDateException(
                f"Unacceptable date header value {value!r}.", value=value
            ) from e

    if date.tzinfo is None:
        return date.replace(tzinfo=datetime.UTC)
    return date.astimezone(datetime.UTC)


def is_clock_skewed(
    server_date: datetime.datetime, clock: Clock = DEFAULT_CLOCK
) -> bool:
    """Whether ``server_date`` is five minutes or more away from ``clock``.

    This is advisory. Signers never adjust the offset on their own; callers
    update it with :py:func:`set_clock_offset` and sign again.
    """
    if server_date.tzinfo is None:
        server_date = server_date.replace(tzinfo=datetime.UTC)
    return abs(server_date - clock.now()) >= CLOCK_SKEW_TOLERANCE


def _response_headers(error: object) -> Mapping[str, Any] | None:
    response = getattr(error, "response", None)
    if isinstance(response, Mapping):
        headers = response.get("headers")
    else:
        headers = getattr(response, "headers", None)
    if not isinstance(headers, Mapping):
        return None
    return headers


def _header(headers: Mapping[str, Any], name: str) -> Any:
    name = name.lower()
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def is_clock_skew_error(error: object) -> bool:
    """Whether a rejected request failed because of clock skew.

    The error must expose ``response.headers`` carrying an
    ``x-amzn-ErrorType`` of a signature rejection together with the server's
    ``Date``. Other authentication failures are not skew related.
    """
    headers = _response_headers(error)
    if headers is None:
        return False

    error_type = _header(headers, "x-amzn-errortype")
    if not isinstance(error_type, str):
        return False
    error_type = error_type.split(":", 1)[0]
    return error_type in CLOCK_SKEW_ERROR_TYPES and bool(_header(headers, "date"))


def server_date_from_error(error: object) -> datetime.datetime | None:
    """The server's ``Date`` for a clock skew error, otherwise ``None``."""
    if not is_clock_skew_error(error):
        return None
    headers = _response_headers(error)
    assert headers is not None
    return parse_date_header(_header(headers, "date"))
