"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

AWS SigV4 Signers computes AWS Signature Version 4 authentication material,
either as an ``Authorization`` header or as a presigned URL, for use with HTTP
tools such as AioHTTP, Curl, Postman, Requests, urllib3, etc.
"""

from __future__ import annotations

from ._clock import (
    DEFAULT_CLOCK,
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
from ._http import URI, AWSRequest, Field, Fields
from ._identity import AWSCredentialIdentity
from ._service_info import parse_service_info
from ._validation import check_required_keys, validate_signing_options
from ._version import __version__
from .exceptions import (
    BaseAWSSDKException,
    InvalidSigningDateException,
    InvalidSigningUsageException,
    MissingExpectedParameterException,
)
from .signers import (
    Configuration,
    SigV4Signer,
    SigV4SigningProperties,
    derive_signing_key,
)

__license__ = "Apache-2.0"
__version__ = __version__

__all__ = (
    "AWSCredentialIdentity",
    "AWSRequest",
    "BaseAWSSDKException",
    "Configuration",
    "DEFAULT_CLOCK",
    "Field",
    "Fields",
    "InvalidSigningDateException",
    "InvalidSigningUsageException",
    "MissingExpectedParameterException",
    "SigV4Signer",
    "SigV4SigningProperties",
    "SystemClock",
    "URI",
    "check_required_keys",
    "derive_signing_key",
    "get_clock_offset",
    "get_date_from_header_string",
    "get_date_with_clock_offset",
    "get_header_string_from_date",
    "is_clock_skew_error",
    "is_clock_skewed",
    "parse_service_info",
    "server_date_from_error",
    "set_clock_offset",
    "validate_signing_options",
)
