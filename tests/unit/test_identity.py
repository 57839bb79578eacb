"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from datetime import UTC, datetime, timedelta

import pytest

from aws_sigv4_signers import AWSCredentialIdentity
from aws_sigv4_signers.interfaces.identity import AWSCredentialsIdentity


def test_identity_satisfies_protocol():
    identity = AWSCredentialIdentity(access_key_id="AKID", secret_access_key="SECRET")
    assert isinstance(identity, AWSCredentialsIdentity)
    assert identity.session_token is None
    assert not identity.is_expired


@pytest.mark.parametrize(
    "delta, expired",
    [(timedelta(hours=1), False), (timedelta(seconds=-1), True)],
)
def test_is_expired(delta: timedelta, expired: bool):
    identity = AWSCredentialIdentity(
        access_key_id="AKID",
        secret_access_key="SECRET",
        expiration=datetime.now(UTC) + delta,
    )
    assert identity.is_expired is expired


def test_from_mapping():
    identity = AWSCredentialIdentity.from_mapping(
        {
            "Access_Key_Id": "AKID",
            "SECRET_ACCESS_KEY": "SECRET",
            "session_token": "TOKEN",
        }
    )
    assert identity == AWSCredentialIdentity(
        access_key_id="AKID", secret_access_key="SECRET", session_token="TOKEN"
    )


def test_from_mapping_empty_token_is_no_token():
    identity = AWSCredentialIdentity.from_mapping(
        {"access_key_id": "AKID", "secret_access_key": "SECRET", "session_token": ""}
    )
    assert identity.session_token is None
