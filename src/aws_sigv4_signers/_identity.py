"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from .interfaces.identity import AWSCredentialsIdentity


@dataclass(kw_only=True)
class AWSCredentialIdentity(AWSCredentialsIdentity):
    access_key_id: str
    secret_access_key: str
    session_token: str | None = None
    expiration: datetime | None = None

    @property
    def is_expired(self) -> bool:
        """Whether the identity is expired."""
        if self.expiration is None:
            return False
        return self.expiration < datetime.now(UTC)

    @classmethod
    def from_mapping(cls, credentials: Mapping[str, Any]) -> "AWSCredentialIdentity":
        """Build an identity from a plain credentials mapping.

        Key names are matched case-insensitively. An empty session token is
        treated as no token at all.
        """
        credentials = {str(key).lower(): value for key, value in credentials.items()}
        return cls(
            access_key_id=credentials["access_key_id"],
            secret_access_key=credentials["secret_access_key"],
            session_token=credentials.get("session_token") or None,
            expiration=credentials.get("expiration"),
        )
