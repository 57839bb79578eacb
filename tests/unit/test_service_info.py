"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import pytest

from aws_sigv4_signers import parse_service_info


@pytest.mark.parametrize(
    "host, expected",
    [
        ("iam.amazonaws.com", ("iam", "us-east-1")),
        ("sts.us-west-2.amazonaws.com", ("sts", "us-west-2")),
        ("xyz.execute-api.us-east-1.amazonaws.com", ("execute-api", "us-east-1")),
        ("search-d.us-east-1.es.amazonaws.com", ("es", "us-east-1")),
        ("ec2.cn-north-1.amazonaws.com.cn", ("ec2", "cn-north-1")),
        ("EC2.US-WEST-2.AMAZONAWS.COM", ("ec2", "us-west-2")),
        ("dynamodb.eu-west-1.amazonaws.com:443", ("dynamodb", "eu-west-1")),
        ("example.com", (None, None)),
        ("example.com:8443", (None, None)),
        ("amazonaws.com.evil.example", (None, None)),
        ("[::1]:8443", (None, None)),
        ("", (None, None)),
        (None, (None, None)),
    ],
)
def test_parse_service_info(host, expected):
    assert parse_service_info(host) == expected
