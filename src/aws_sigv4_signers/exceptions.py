"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from collections.abc import Iterable


class BaseAWSSDKException(Exception):
    """Top-level exception to capture SDK-related errors."""

    ...


class MissingExpectedParameterException(BaseAWSSDKException, ValueError):
    """Some APIs require specific signing properties to be present."""

    def __init__(self, message: str, *, missing_keys: Iterable[str] = ()):
        super().__init__(message)
        self.missing_keys: tuple[str, ...] = tuple(missing_keys)


class InvalidSigningDateException(BaseAWSSDKException, ValueError):
    """A date header or signing date could not be parsed."""

    def __init__(self, message: str, *, value: object):
        super().__init__(message)
        self.value = value


class InvalidSigningUsageException(BaseAWSSDKException, TypeError):
    """The signer was called with arguments of the wrong shape."""

    ...
