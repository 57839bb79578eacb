"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .exceptions import InvalidSigningUsageException


@dataclass(kw_only=True, frozen=True)
class URI:
    """Universal Resource Identifier, target location for a :py:class:`AWSRequest`."""

    scheme: str = "https"
    host: str
    port: int | None = None
    path: str | None = None
    query: str | None = None
    fragment: str | None = None

    @property
    def netloc(self) -> str:
        """Construct netloc string in format ``{host}:{port}``.

        IPv6 hosts are wrapped in brackets. The port is omitted when unset.
        """
        host = self.host
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        if self.port is not None:
            return f"{host}:{self.port}"
        return host

    def build(self) -> str:
        """Construct URI string representation.

        Returns a string of the form
        ``{scheme}://{host}:{port}{path}?{query}#{fragment}``
        """
        return urlunsplit(
            (
                self.scheme,
                self.netloc,
                self.path or "",
                self.query or "",
                self.fragment or "",
            )
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_url(cls, url: str) -> "URI":
        """Split a URL string into its components."""
        parts = urlsplit(url)
        if not parts.hostname:
            raise InvalidSigningUsageException(
                f"Expected an absolute URL with a host, received {url!r}."
            )
        return cls(
            scheme=parts.scheme or "https",
            host=parts.hostname,
            port=parts.port,
            path=parts.path or None,
            query=parts.query or None,
            fragment=parts.fragment or None,
        )


class Field:
    """A name-value pair representing a single header or trailer."""

    def __init__(self, *, name: str, values: Iterable[str] | None = None):
        self.name = name
        self.values: list[str] = [str(value) for value in values or ()]

    def add(self, value: str) -> None:
        """Append a value to a field."""
        self.values.append(value)

    def set(self, values: list[str]) -> None:
        """Overwrite existing field values."""
        self.values = values

    def remove(self, value: str) -> None:
        """Remove all matching entries from list."""
        self.values = [val for val in self.values if val != value]

    def as_string(self, delimiter: str = ", ") -> str:
        """Get delimited string of all values."""
        return delimiter.join(self.values)

    def as_tuples(self) -> list[tuple[str, str]]:
        """Get list of ``name``, ``value`` tuples where each tuple represents one
        value."""
        return [(self.name, val) for val in self.values]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return False
        return self.name == other.name and self.values == other.values

    def __repr__(self) -> str:
        return f"Field(name={self.name!r}, values={self.values!r})"


class Fields:
    """Collection of header fields.

    Lookups ignore the case of the field name, while the name and values keep
    the casing they were set with.
    """

    def __init__(self, initial: Iterable[Field] | None = None):
        self.entries: dict[str, Field] = {}
        for fld in initial or ():
            self.set_field(fld)

    @classmethod
    def from_dict(cls, headers: Mapping[str, Any]) -> "Fields":
        """Build fields from a ``{name: value}`` mapping.

        List and tuple values become multiple values of one field.
        """
        fields = cls()
        for name, value in headers.items():
            values = value if isinstance(value, (list, tuple)) else [value]
            fields.set_field(Field(name=name, values=values))
        return fields

    def set_field(self, field: Field) -> None:
        """Set entry for a Field name, replacing any entry of any casing."""
        self.entries[self._normalize_field_name(field.name)] = field

    def get_field(self, name: str) -> Field:
        """Retrieve Field entry."""
        return self.entries[self._normalize_field_name(name)]

    def remove_field(self, name: str) -> None:
        """Delete entry from collection."""
        del self.entries[self._normalize_field_name(name)]

    def get(self, name: str, default: str | None = None) -> str | None:
        """Get the delimited value of a field, or ``default`` when absent."""
        if name not in self:
            return default
        return self.get_field(name).as_string()

    def to_dict(self) -> dict[str, str]:
        """Render the collection as ``{name: value}`` with original casing."""
        return {fld.name: fld.as_string() for fld in self}

    def _normalize_field_name(self, name: str) -> str:
        return name.lower()

    def __getitem__(self, name: str) -> Field:
        return self.get_field(name)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self._normalize_field_name(name) in self.entries

    def __iter__(self) -> Iterator[Field]:
        yield from self.entries.values()

    def __len__(self) -> int:
        return len(self.entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fields):
            return False
        return self.entries == other.entries

    def __repr__(self) -> str:
        return f"Fields({list(self.entries.values())!r})"


@dataclass(kw_only=True)
class AWSRequest:
    """HTTP request to be signed."""

    destination: URI
    method: str
    fields: Fields = field(default_factory=Fields)
    body: bytes | str | Iterable[bytes] | None = None

    @property
    def url(self) -> str:
        return self.destination.build()

    @classmethod
    def from_mapping(cls, request: Mapping[str, Any]) -> "AWSRequest":
        """Build a request from a mapping of ``url``, ``method``, ``headers`` and
        ``data``.

        The payload must be supplied as ``data``; ``body`` is rejected so that a
        request is never silently signed without its payload.
        """
        if not isinstance(request, Mapping):
            raise InvalidSigningUsageException(
                f"Expected a mapping describing the request, received {type(request)}."
            )
        if "body" in request and "data" not in request:
            raise InvalidSigningUsageException(
                'The attribute "body" was found on the request object. '
                'Please use the attribute "data" instead.'
            )
        return cls(
            destination=URI.from_url(request["url"]),
            method=request.get("method") or "GET",
            fields=Fields.from_dict(request.get("headers") or {}),
            body=request.get("data"),
        )
