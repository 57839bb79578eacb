"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import re

# <service>.<region>.amazonaws.com, with the region label optional for global
# endpoints and an optional China partition suffix.
_AMAZONAWS_HOST_RE = re.compile(r"([^.]+)\.(?:([^.]*)\.)?amazonaws\.com(\.cn)?$")

ELASTICSEARCH_SERVICE_NAME = "es"
GLOBAL_ENDPOINT_REGION = "us-east-1"


def parse_service_info(host: str | None) -> tuple[str | None, str | None]:
    """Derive ``(service, region)`` from an ``amazonaws.com`` host name.

    Elasticsearch domains are addressed as ``<domain>.<region>.es.amazonaws.com``,
    so a match ending in ``es`` is swapped. Hosts outside ``amazonaws.com``
    resolve to ``(None, None)``.
    """
    if not host:
        return None, None

    hostname = host.lower()
    if hostname.startswith("["):
        return None, None
    hostname = hostname.rsplit(":", 1)[0] if ":" in hostname else hostname

    match = _AMAZONAWS_HOST_RE.search(hostname)
    if match is None:
        return None, None

    service, region = match.group(1), match.group(2)
    if region == ELASTICSEARCH_SERVICE_NAME:
        service, region = region, service
    return service, region or GLOBAL_ENDPOINT_REGION
