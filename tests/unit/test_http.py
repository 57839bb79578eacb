"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import pytest

from aws_sigv4_signers import (
    URI,
    AWSRequest,
    Field,
    Fields,
    InvalidSigningUsageException,
)


class TestURI:
    def test_from_url(self):
        uri = URI.from_url("http://example.com:8080/a/b?x=1&y=2#top")
        assert uri == URI(
            scheme="http",
            host="example.com",
            port=8080,
            path="/a/b",
            query="x=1&y=2",
            fragment="top",
        )
        assert uri.netloc == "example.com:8080"
        assert uri.build() == "http://example.com:8080/a/b?x=1&y=2#top"

    def test_from_url_without_host(self):
        with pytest.raises(InvalidSigningUsageException):
            URI.from_url("/just/a/path")

    def test_ipv6_netloc(self):
        uri = URI.from_url("https://[::1]:8443/")
        assert uri.host == "::1"
        assert uri.netloc == "[::1]:8443"
        assert uri.build() == "https://[::1]:8443/"

    def test_build_defaults(self):
        assert URI(host="example.com").build() == "https://example.com"


class TestFields:
    def test_case_insensitive_lookup(self):
        fields = Fields([Field(name="Content-Type", values=["text/plain"])])
        assert "content-type" in fields
        assert fields["CONTENT-TYPE"].name == "Content-Type"
        assert fields.get("content-type") == "text/plain"
        assert fields.get("missing", "default") == "default"

    def test_set_field_replaces_any_casing(self):
        fields = Fields([Field(name="x-amz-date", values=["1"])])
        fields.set_field(Field(name="X-Amz-Date", values=["2"]))
        assert len(fields) == 1
        assert fields.to_dict() == {"X-Amz-Date": "2"}

    def test_from_dict_multiple_values(self):
        fields = Fields.from_dict({"Accept": ["a", "b"], "Host": "example.com"})
        assert fields["accept"].values == ["a", "b"]
        assert fields["accept"].as_string() == "a, b"
        assert fields["accept"].as_string(delimiter=",") == "a,b"
        assert fields["accept"].as_tuples() == [("Accept", "a"), ("Accept", "b")]
        assert list(field.name for field in fields) == ["Accept", "Host"]

    def test_remove_field(self):
        fields = Fields.from_dict({"Host": "example.com", "Accept": "*/*"})
        fields.remove_field("HOST")
        assert "host" not in fields
        assert fields == Fields.from_dict({"Accept": "*/*"})

    def test_field_value_operations(self):
        field = Field(name="Accept", values=["a"])
        field.add("b")
        field.add("a")
        field.remove("a")
        assert field.values == ["b"]
        field.set(["c"])
        assert field == Field(name="Accept", values=["c"])


class TestAWSRequest:
    def test_from_mapping(self):
        request = AWSRequest.from_mapping(
            {
                "url": "https://iam.amazonaws.com/?Action=ListUsers",
                "method": "POST",
                "headers": {"Content-Type": "application/json"},
                "data": b"{}",
            }
        )
        assert request.method == "POST"
        assert request.destination.host == "iam.amazonaws.com"
        assert request.fields.get("content-type") == "application/json"
        assert request.body == b"{}"
        assert request.url == "https://iam.amazonaws.com/?Action=ListUsers"

    def test_from_mapping_defaults_to_get(self):
        request = AWSRequest.from_mapping({"url": "https://iam.amazonaws.com/"})
        assert request.method == "GET"
        assert len(request.fields) == 0
        assert request.body is None

    def test_from_mapping_rejects_body(self):
        with pytest.raises(InvalidSigningUsageException, match='"data"'):
            AWSRequest.from_mapping(
                {"url": "https://iam.amazonaws.com/", "body": b"payload"}
            )

    def test_from_mapping_rejects_non_mapping(self):
        with pytest.raises(InvalidSigningUsageException):
            AWSRequest.from_mapping("https://iam.amazonaws.com/")  # type: ignore
