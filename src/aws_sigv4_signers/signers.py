"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import hmac
import io
import logging
import re
from collections.abc import Iterable, Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Any, TypedDict
from urllib.parse import quote, unquote, urlencode, urlsplit

from ._clock import (
    default_clock,
    get_date_from_header_string,
    get_header_string_from_date,
    parse_date_header,
)
from ._http import URI, AWSRequest, Field, Fields
from ._identity import AWSCredentialIdentity
from ._service_info import parse_service_info
from ._validation import (
    AMZ_DATE_HEADER,
    DATE_HEADER,
    normalize_option_keys,
    validate_signing_options,
)
from .exceptions import (
    InvalidSigningUsageException,
    MissingExpectedParameterException,
)
from .interfaces.clock import Clock
from .interfaces.identity import AWSCredentialsIdentity as _AWSCredentialsIdentity

logger = logging.getLogger(__name__)

HEADERS_EXCLUDED_FROM_SIGNING: tuple[str, ...] = (
    "authorization",
    "content-length",
    "user-agent",
    "expires",
)
DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

SIGV4_ALGORITHM: str = "AWS4-HMAC-SHA256"
SIGV4_SCOPE_TERMINATOR: str = "aws4_request"
UNSIGNED_PAYLOAD: str = "UNSIGNED-PAYLOAD"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

CONTENT_SHA256_HEADER = "X-Amz-Content-Sha256"
SECURITY_TOKEN_HEADER = "X-Amz-Security-Token"
S3_SERVICE_NAME = "s3"
IOT_DEVICE_GATEWAY_SERVICE_NAME = "iotdevicegateway"

_PERCENT_ESCAPE_RE = re.compile(r"%[0-9A-Fa-f]{2}")


@dataclass(kw_only=True)
class Configuration:
    clock: Clock = field(default_factory=default_clock)
    # Services whose payloads are never hashed into the signature.
    unsigned_payload_services: tuple[str, ...] = (S3_SERVICE_NAME,)
    # Services that reject a signed X-Amz-Security-Token on presigned URLs.
    presign_token_excluded_services: tuple[str, ...] = (
        IOT_DEVICE_GATEWAY_SERVICE_NAME,
    )


class SigV4SigningProperties(TypedDict, total=False):
    region: str
    service: str
    date: str
    expires: int
    uri_encode_path: bool


def derive_signing_key(
    secret_key: str, date_stamp: str, region: str, service: str
) -> bytes:
    """Derive the SigV4 signing key scoped to a day, region and service.

    Each step keys the next HMAC with the raw digest of the previous one.

    DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
    DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
    DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
    SigningKey           = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")
    """
    k_date = _hmac_sha256(key=f"AWS4{secret_key}".encode(), value=date_stamp)
    k_region = _hmac_sha256(key=k_date, value=region)
    k_service = _hmac_sha256(key=k_region, value=service)
    return _hmac_sha256(key=k_service, value=SIGV4_SCOPE_TERMINATOR)


def _hmac_sha256(key: bytes, value: str) -> bytes:
    return hmac.new(key=key, msg=value.encode(), digestmod=sha256).digest()


class SigV4Signer:
    """
    Request signer for applying the AWS Signature Version 4 algorithm.

    The signer either adds an ``Authorization`` header to a copy of the request
    (:py:meth:`sign`) or moves the signing material into the query string of a
    URL (:py:meth:`presign_url`). Both share the same canonicalization and key
    derivation.
    """

    def __init__(self, *, config: Configuration | None = None):
        self._config = config or Configuration()

    def sign(
        self,
        *,
        request: AWSRequest,
        identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties | None = None,
    ) -> AWSRequest:
        """Generate and apply a SigV4 Signature to a copy of the supplied request.

        :param request: An AWSRequest to sign prior to sending to the service.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity.
        :param signing_properties: SigV4SigningProperties to define signing
            primitives such as the target service, region, and date. Service and
            region are detected from the host when omitted.
        """
        # Copy and prepopulate any missing values in the
        # supplied request and signing properties.
        self._validate_identity(identity=identity)
        self._validate_request(request=request)
        new_signing_properties = self._normalize_signing_properties(
            signing_properties=signing_properties, request=request
        )
        new_request = self._generate_new_request(request=request)
        self._apply_required_fields(
            request=new_request,
            signing_properties=new_signing_properties,
            identity=identity,
        )

        # Construct core signing components
        canonical_request = self.canonical_request(
            signing_properties=new_signing_properties,
            request=new_request,
        )
        string_to_sign = self.string_to_sign(
            canonical_request=canonical_request,
            signing_properties=new_signing_properties,
        )
        signature = self._signature(
            string_to_sign=string_to_sign,
            secret_key=identity.secret_access_key,
            signing_properties=new_signing_properties,
        )

        signing_fields = self._normalize_signing_fields(request=new_request)
        credential_scope = self._scope(signing_properties=new_signing_properties)
        credential = f"{identity.access_key_id}/{credential_scope}"
        authorization = self.generate_authorization_field(
            credential=credential,
            signed_headers=list(signing_fields.keys()),
            signature=signature,
        )
        new_request.fields.set_field(authorization)

        return new_request

    def sign_options(self, *, options: Mapping[str, Any]) -> AWSRequest:
        """Validate and sign a plain options mapping.

        :param options: Mapping with ``method``, ``path`` (optionally carrying a
            ``?query``), ``service``, ``region``, ``headers`` (including ``host``
            and either ``X-Amz-Date`` or ``Date``), ``body`` and ``credentials``
            (``access_key_id``, ``secret_access_key`` and an optional
            ``session_token``). Key names are matched case-insensitively.
        """
        date = validate_signing_options(options)
        options = normalize_option_keys(options)

        fields = Fields.from_dict(options["headers"])
        authority = urlsplit(f"//{fields['host'].as_string()}")
        path, _, query = options["path"].partition("?")
        request = AWSRequest(
            destination=URI(
                host=authority.hostname or "",
                port=authority.port,
                path=path or "/",
                query=query or None,
            ),
            method=options["method"],
            fields=fields,
            body=options["body"],
        )
        return self.sign(
            request=request,
            identity=AWSCredentialIdentity.from_mapping(options["credentials"]),
            signing_properties=SigV4SigningProperties(
                service=options["service"],
                region=options["region"],
                date=date,
            ),
        )

    def presign_url(
        self,
        *,
        request: AWSRequest | str,
        identity: AWSCredentialIdentity,
        signing_properties: SigV4SigningProperties | None = None,
        expires: int | None = None,
    ) -> str:
        """Generate a URL carrying the SigV4 signature in its query string.

        :param request: The AWSRequest or URL to presign. A URL is presigned
            for ``GET``.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity.
        :param signing_properties: SigV4SigningProperties to define signing
            primitives such as the target service, region, and date.
        :param expires: Lifetime of the URL in seconds, sent as ``X-Amz-Expires``.
        """
        if isinstance(request, str):
            request = AWSRequest(destination=URI.from_url(request), method="GET")

        self._validate_identity(identity=identity)
        self._validate_request(request=request)
        new_signing_properties = self._normalize_signing_properties(
            signing_properties=signing_properties,
            request=request,
            use_date_fields=False,
        )
        if expires is not None:
            new_signing_properties["expires"] = expires

        credential_scope = self._scope(signing_properties=new_signing_properties)
        sign_token = (
            identity.session_token is not None
            and new_signing_properties["service"]
            not in self._config.presign_token_excluded_services
        )

        signing_params: dict[str, str] = {
            "X-Amz-Algorithm": SIGV4_ALGORITHM,
            "X-Amz-Credential": f"{identity.access_key_id}/{credential_scope}",
            "X-Amz-Date": new_signing_properties["date"],
        }
        if sign_token:
            assert identity.session_token is not None
            signing_params[SECURITY_TOKEN_HEADER] = identity.session_token
        if new_signing_properties.get("expires") is not None:
            signing_params["X-Amz-Expires"] = str(new_signing_properties["expires"])
        signing_params["X-Amz-SignedHeaders"] = "host"

        # Signing parameters replace any stale ones already on the URL. The
        # caller's other pairs keep their original text.
        replaced = {*signing_params, "X-Amz-Signature"}
        if identity.session_token is not None:
            replaced.add(SECURITY_TOKEN_HEADER)
        query_parts = [
            pair
            for pair in (request.destination.query or "").split("&")
            if pair and unquote(pair.partition("=")[0]) not in replaced
        ]
        query_parts.append(urlencode(signing_params, quote_via=quote))

        destination = URI(
            scheme=request.destination.scheme,
            host=request.destination.host,
            port=self._normalize_port(uri=request.destination),
            path=request.destination.path or "/",
            query="&".join(query_parts),
        )
        presign_request = AWSRequest(
            destination=destination,
            method=request.method,
            fields=Fields([Field(name="host", values=[destination.netloc])]),
            body=request.body,
        )

        canonical_request = self.canonical_request(
            signing_properties=new_signing_properties,
            request=presign_request,
        )
        string_to_sign = self.string_to_sign(
            canonical_request=canonical_request,
            signing_properties=new_signing_properties,
        )
        signature = self._signature(
            string_to_sign=string_to_sign,
            secret_key=identity.secret_access_key,
            signing_properties=new_signing_properties,
        )

        trailing_params = [("X-Amz-Signature", signature)]
        if identity.session_token is not None and not sign_token:
            trailing_params.append((SECURITY_TOKEN_HEADER, identity.session_token))
        query_parts.append(urlencode(trailing_params, quote_via=quote))

        signed_destination = URI(
            **{**destination.to_dict(), "query": "&".join(query_parts)}
        )
        return signed_destination.build()

    def generate_authorization_field(
        self, *, credential: str, signed_headers: list[str], signature: str
    ) -> Field:
        """Generate the `Authorization` field.

        :param credential:
            Credential scope string for generating the Authorization header.
            Defined as:
                <access_key>/<date>/<region>/<service>/<request_type>
        :param signed_headers:
            A list of the field names used in signing.
        :param signature:
            Final hash of the SigV4 signing algorithm generated from the
            canonical request and string to sign.
        """
        signed_headers_str = ";".join(signed_headers)
        auth_str = (
            f"{SIGV4_ALGORITHM} Credential={credential}, "
            f"SignedHeaders={signed_headers_str}, Signature={signature}"
        )
        return Field(name="Authorization", values=[auth_str])

    def _signature(
        self,
        *,
        string_to_sign: str,
        secret_key: str,
        signing_properties: SigV4SigningProperties,
    ) -> str:
        """Sign the string to sign.

        In SigV4, a signing key is created that is scoped to a specific region and
        service. The date, region, service and resulting signing key are individually
        hashed, then the composite hash is used to sign the string to sign.
        """
        assert "date" in signing_properties
        signing_key = derive_signing_key(
            secret_key=secret_key,
            date_stamp=signing_properties["date"][0:8],
            region=signing_properties["region"],
            service=signing_properties["service"],
        )
        return _hmac_sha256(key=signing_key, value=string_to_sign).hex()

    def _validate_identity(self, *, identity: AWSCredentialIdentity) -> None:
        """Perform runtime and expiration checks before attempting signing."""
        if not isinstance(identity, _AWSCredentialsIdentity):
            raise InvalidSigningUsageException(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )
        missing = [
            name
            for name in ("access_key_id", "secret_access_key")
            if not getattr(identity, name)
        ]
        if missing:
            raise MissingExpectedParameterException(
                f"Missing the following credentials: {' '.join(missing)}",
                missing_keys=missing,
            )
        if identity.is_expired:
            raise ValueError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )

    def _validate_request(self, *, request: AWSRequest) -> None:
        if not isinstance(request, AWSRequest):
            raise InvalidSigningUsageException(
                "Received unexpected value for request parameter. Expected "
                f"AWSRequest but received {type(request)}."
            )
        missing = []
        if not request.method:
            missing.append("method")
        if not request.destination.host and "host" not in request.fields:
            missing.append("host")
        if missing:
            raise MissingExpectedParameterException(
                f"Missing the following keys in request: {' '.join(missing)}",
                missing_keys=missing,
            )

    def _normalize_signing_properties(
        self,
        *,
        signing_properties: SigV4SigningProperties | None,
        request: AWSRequest,
        use_date_fields: bool = True,
    ) -> SigV4SigningProperties:
        # Create copy of signing properties to avoid mutating the original
        new_signing_properties = SigV4SigningProperties(**(signing_properties or {}))
        new_signing_properties["date"] = self._resolve_signing_date(
            date=new_signing_properties.get("date"),
            fields=request.fields if use_date_fields else None,
        )

        if not (
            new_signing_properties.get("service")
            and new_signing_properties.get("region")
        ):
            host = request.destination.host
            if "host" in request.fields:
                host = request.fields["host"].as_string()
            service, region = parse_service_info(host)
            if not new_signing_properties.get("service") and service:
                new_signing_properties["service"] = service
            if not new_signing_properties.get("region") and region:
                new_signing_properties["region"] = region

        missing = [
            key
            for key in ("service", "region")
            if not new_signing_properties.get(key)
        ]
        if missing:
            raise MissingExpectedParameterException(
                "Unable to determine the signing scope from the request host. "
                f"Missing: {' '.join(missing)}",
                missing_keys=missing,
            )

        if "uri_encode_path" not in new_signing_properties:
            new_signing_properties["uri_encode_path"] = (
                new_signing_properties["service"] != S3_SERVICE_NAME
            )
        return new_signing_properties

    def _resolve_signing_date(self, *, date: str | None, fields: Fields | None) -> str:
        # A timestamp already on the request is what the service will check.
        if fields is not None and AMZ_DATE_HEADER in fields:
            amz_date = fields[AMZ_DATE_HEADER].as_string()
            get_date_from_header_string(amz_date)
            return amz_date
        if date is not None:
            get_date_from_header_string(date)
            return date
        if fields is not None and DATE_HEADER in fields:
            server_date = parse_date_header(fields[DATE_HEADER].as_string())
            return get_header_string_from_date(server_date)
        return get_header_string_from_date(self._config.clock.now())

    def _generate_new_request(self, *, request: AWSRequest) -> AWSRequest:
        # The body is shared rather than copied; streams cannot be deep-copied.
        return AWSRequest(
            destination=request.destination,
            method=request.method,
            fields=deepcopy(request.fields),
            body=request.body,
        )

    def _apply_required_fields(
        self,
        *,
        request: AWSRequest,
        signing_properties: SigV4SigningProperties,
        identity: AWSCredentialIdentity,
    ) -> None:
        if "host" not in request.fields:
            request.fields.set_field(
                Field(
                    name="host",
                    values=[self._normalize_host_field(uri=request.destination)],
                )
            )
        # A generic Date header is signed as-is, alongside the injected X-Amz-Date.
        if AMZ_DATE_HEADER not in request.fields:
            assert "date" in signing_properties
            request.fields.set_field(
                Field(name="x-amz-date", values=[signing_properties["date"]])
            )
        # Apply required X-Amz-Security-Token if token present on identity
        if (
            SECURITY_TOKEN_HEADER not in request.fields
            and identity.session_token is not None
        ):
            request.fields.set_field(
                Field(name=SECURITY_TOKEN_HEADER, values=[identity.session_token])
            )

    def canonical_request(
        self, *, signing_properties: SigV4SigningProperties, request: AWSRequest
    ) -> str:
        """The canonical request is a standardized string laying out the components used
        in the SigV4 signing algorithm. This is useful to quickly compare inputs to find
        signature mismatches and unintended variances.

        The SigV4 specification defines the canonical request to be:
            <HTTPMethod>\n
            <CanonicalURI>\n
            <CanonicalQueryString>\n
            <CanonicalHeaders>\n
            <SignedHeaders>\n
            <HashedPayload>

        :param signing_properties:
            SigV4SigningProperties to define signing primitives such as
            the target service, region, and date.
        :param request:
            An AWSRequest to use for generating a SigV4 signature.
        """
        canonical_payload = self._format_canonical_payload(
            request=request, signing_properties=signing_properties
        )
        canonical_path = self._format_canonical_path(
            path=request.destination.path, signing_properties=signing_properties
        )
        canonical_query = self._format_canonical_query(query=request.destination.query)
        normalized_fields = self._normalize_signing_fields(request=request)
        canonical_fields = self._format_canonical_fields(fields=normalized_fields)
        canonical_request = (
            f"{request.method.upper()}\n"
            f"{canonical_path}\n"
            f"{canonical_query}\n"
            f"{canonical_fields}\n"
            f"{';'.join(normalized_fields)}\n"
            f"{canonical_payload}"
        )
        logger.debug("Canonical request:\n%s", canonical_request)
        return canonical_request

    def string_to_sign(
        self,
        *,
        canonical_request: str,
        signing_properties: SigV4SigningProperties,
    ) -> str:
        """The string to sign is the second step of our signing algorithm which
        concatenates the formal identifier of our signing algorithm, the signing
        DateTime, the scope of our credentials, and a hash of our previously generated
        canonical request.

        The SigV4 specification defines the string to sign as:
            Algorithm \n
            RequestDateTime \n
            CredentialScope  \n
            HashedCanonicalRequest
        """
        date = signing_properties.get("date")
        if date is None:
            raise MissingExpectedParameterException(
                "Cannot generate string_to_sign without a valid date "
                f"in your signing_properties. Current value: {date}",
                missing_keys=("date",),
            )
        string_to_sign = (
            f"{SIGV4_ALGORITHM}\n"
            f"{date}\n"
            f"{self._scope(signing_properties=signing_properties)}\n"
            f"{sha256(canonical_request.encode()).hexdigest()}"
        )
        logger.debug("String to sign:\n%s", string_to_sign)
        return string_to_sign

    def _scope(self, signing_properties: SigV4SigningProperties) -> str:
        assert "date" in signing_properties
        formatted_date = signing_properties["date"][0:8]
        region = signing_properties["region"]
        service = signing_properties["service"]
        # Scope format: <YYYYMMDD>/<AWS Region>/<AWS Service>/aws4_request
        return f"{formatted_date}/{region}/{service}/{SIGV4_SCOPE_TERMINATOR}"

    def _format_canonical_path(
        self, *, path: str | None, signing_properties: SigV4SigningProperties
    ) -> str:
        if not path:
            path = "/"

        if signing_properties.get("uri_encode_path", True):
            normalized_path = _remove_dot_segments(path)
            # quote() leaves only A-Za-z0-9_.~- and "/" intact, so "*" and "%"
            # are always escaped.
            return quote(string=normalized_path, safe="/")
        else:
            # S3 keys are encoded once; existing escapes are not encoded again.
            return _quote_keeping_escapes(path, safe="/")

    def _format_canonical_query(self, *, query: str | None) -> str:
        if not query:
            return ""

        query_parts = []
        for pair in query.split("&"):
            if not pair:
                continue
            key, _, value = pair.partition("=")
            query_parts.append(
                (_quote_keeping_escapes(key), _quote_keeping_escapes(value))
            )
        # Sorted by encoded name first, then by the full encoded pair.
        query_parts.sort(key=lambda part: (part[0], f"{part[0]}={part[1]}"))
        return "&".join(f"{key}={value}" for key, value in query_parts)

    def _normalize_signing_fields(self, *, request: AWSRequest) -> dict[str, str]:
        normalized_fields = {
            field.name.lower(): field.as_string(delimiter=",")
            for field in request.fields
            if self._is_signable_header(field.name)
        }
        if "host" not in normalized_fields:
            normalized_fields["host"] = self._normalize_host_field(
                uri=request.destination
            )

        return dict(sorted(normalized_fields.items()))

    def _is_signable_header(self, field_name: str) -> bool:
        field_name = field_name.lower()
        if field_name.startswith("x-amz-"):
            return True
        return field_name not in HEADERS_EXCLUDED_FROM_SIGNING

    def _normalize_port(self, *, uri: URI) -> int | None:
        if uri.port is not None and DEFAULT_PORTS.get(uri.scheme) == uri.port:
            return None
        return uri.port

    def _normalize_host_field(self, *, uri: URI) -> str:
        port = self._normalize_port(uri=uri)
        if port != uri.port:
            uri_dict = uri.to_dict()
            uri_dict.update({"port": port})
            uri = URI(**uri_dict)
        return uri.netloc

    def _format_canonical_fields(self, *, fields: dict[str, str]) -> str:
        return "".join(
            f"{key}:{' '.join(value.split())}\n" for key, value in fields.items()
        )

    def _format_canonical_payload(
        self,
        *,
        request: AWSRequest,
        signing_properties: SigV4SigningProperties,
    ) -> str:
        if signing_properties.get("service") in self._config.unsigned_payload_services:
            return UNSIGNED_PAYLOAD
        if CONTENT_SHA256_HEADER in request.fields:
            return request.fields[CONTENT_SHA256_HEADER].as_string()
        return self._compute_payload_hash(request=request)

    def _compute_payload_hash(self, *, request: AWSRequest) -> str:
        body = request.body

        if body is None:
            return EMPTY_SHA256_HASH
        if isinstance(body, str):
            body = body.encode()
        if isinstance(body, (bytes, bytearray)):
            return sha256(body).hexdigest()

        if not isinstance(body, Iterable):
            raise InvalidSigningUsageException(
                "Request bodies must be bytes, str or an iterable of bytes, "
                f"received {type(body)}."
            )

        checksum = sha256()
        if isinstance(body, io.IOBase) and body.seekable():
            position = body.tell()
            for chunk in body:
                checksum.update(chunk)
            body.seek(position)
        else:
            buffer = io.BytesIO()
            for chunk in body:
                buffer.write(chunk)
                checksum.update(chunk)
            buffer.seek(0)
            request.body = buffer
        return checksum.hexdigest()


def _remove_dot_segments(path: str, remove_consecutive_slashes: bool = True) -> str:
    """Removes dot segments from a path per :rfc:`3986#section-5.2.4`.
    Optionally removes consecutive slashes, true by default.
    :param path: The path to modify.
    :param remove_consecutive_slashes: Whether to remove consecutive slashes.
    :returns: The path with dot segments removed.
    """
    output = []
    for segment in path.split("/"):
        if segment == ".":
            continue
        elif segment != "..":
            output.append(segment)
        elif output:
            output.pop()
    if path.startswith("/") and (not output or output[0]):
        output.insert(0, "")
    if output and path.endswith(("/.", "/..")):
        output.append("")
    result = "/".join(output)
    if remove_consecutive_slashes:
        while "//" in result:
            result = result.replace("//", "/")
    return result


def _quote_keeping_escapes(value: str, safe: str = "") -> str:
    """Percent-encode everything outside the unreserved set (and ``safe``).

    Valid ``%XX`` escapes are kept and upper-cased; a ``%`` that does not start
    one is encoded as ``%25``.
    """
    parts = []
    position = 0
    for match in _PERCENT_ESCAPE_RE.finditer(value):
        parts.append(quote(string=value[position : match.start()], safe=safe))
        parts.append(match.group().upper())
        position = match.end()
    parts.append(quote(string=value[position:], safe=safe))
    return "".join(parts)
