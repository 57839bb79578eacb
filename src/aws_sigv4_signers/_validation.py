"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

Presence checks run before any signing work so that a malformed request never
produces a partial signature.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from ._clock import (
    get_date_from_header_string,
    get_header_string_from_date,
    parse_date_header,
)
from .exceptions import InvalidSigningUsageException, MissingExpectedParameterException

REQUIRED_OPTIONS_KEYS: tuple[str, ...] = (
    "method",
    "path",
    "service",
    "region",
    "headers",
    "body",
    "credentials",
)
REQUIRED_CREDENTIALS_KEYS: tuple[str, ...] = ("access_key_id", "secret_access_key")
REQUIRED_HEADERS: tuple[str, ...] = ("host",)

AMZ_DATE_HEADER = "X-Amz-Date"
DATE_HEADER = "Date"


def check_required_keys(obj: Mapping[str, Any], keys: Sequence[str]) -> None:
    """Raise if any of ``keys`` is missing from ``obj``, ignoring case."""
    if not isinstance(obj, Mapping):
        raise InvalidSigningUsageException(
            f"Expected a mapping to validate, received {type(obj)}."
        )
    if not obj:
        raise InvalidSigningUsageException("Cannot validate an empty mapping.")
    if isinstance(keys, str) or not isinstance(keys, Sequence):
        raise InvalidSigningUsageException(
            f"Expected a sequence of required keys, received {type(keys)}."
        )
    if not keys:
        raise InvalidSigningUsageException("No required keys were given.")

    present = {str(key).lower() for key in obj}
    missing = [key for key in keys if key.lower() not in present]
    if missing:
        raise MissingExpectedParameterException(
            f"Missing the following keys: {' '.join(missing)}",
            missing_keys=missing,
        )


def normalize_option_keys(options: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``options`` with lower-cased top-level key names."""
    return {str(key).lower(): value for key, value in options.items()}


def _get_header(headers: Mapping[str, Any], name: str) -> Any:
    name = name.lower()
    for key, value in headers.items():
        if str(key).lower() == name:
            return value
    return None


def validate_signing_options(options: Mapping[str, Any]) -> str:
    """Validate a signing options mapping and resolve its signing timestamp.

    :param options: Mapping with ``method``, ``path``, ``service``, ``region``,
        ``headers``, ``body`` and ``credentials``.
    :returns: The ``YYYYMMDDTHHMMSSZ`` timestamp taken from the ``X-Amz-Date``
        header, or from the ``Date`` header when only that one is present.
    """
    check_required_keys(options, REQUIRED_OPTIONS_KEYS)
    options = normalize_option_keys(options)
    check_required_keys(options["credentials"], REQUIRED_CREDENTIALS_KEYS)
    check_required_keys(options["headers"], REQUIRED_HEADERS)

    headers = options["headers"]
    amz_date = _get_header(headers, AMZ_DATE_HEADER)
    if amz_date is not None:
        get_date_from_header_string(amz_date)
        return amz_date

    date = _get_header(headers, DATE_HEADER)
    if date is None:
        raise MissingExpectedParameterException(
            f"Need either an {AMZ_DATE_HEADER} or a {DATE_HEADER} header.",
            missing_keys=(AMZ_DATE_HEADER,),
        )
    return get_header_string_from_date(parse_date_header(date))
