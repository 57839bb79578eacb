"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from datetime import datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of the signing timestamp."""

    @property
    def offset(self) -> int:
        """Milliseconds added to the wall clock to compensate for clock skew."""
        ...

    def now(self) -> datetime:
        """The current UTC time with the offset applied."""
        ...
