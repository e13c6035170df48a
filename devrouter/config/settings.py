#!/usr/bin/env python3
"""Fixed routing table and upstream target for the dev server."""
import re
from dataclasses import dataclass, field
from typing import Tuple, Union

import httpx


NON_ASCII = re.compile(rb'[\x80-\xff]')


@dataclass(frozen=True)
class UpstreamTarget:
    """Remote host that matching requests are forwarded to."""
    hostname: str = 'tplfvg.it'
    port: int = 443
    scheme: str = 'https'

    @property
    def host_header(self) -> str:
        # The upstream virtual-hosts on this exact value
        return f'{self.hostname}:{self.port}'

    def url(self, raw_target: bytes) -> httpx.URL:
        """Build the outbound URL keeping the inbound path and query untouched.

        Bytes outside ASCII are percent-encoded; everything else is passed as is.
        """
        raw_target = NON_ASCII.sub(lambda m: b'%%%02X' % m.group()[0], raw_target)
        return httpx.URL(
            scheme=self.scheme,
            host=self.hostname,
            port=self.port,
            raw_path=raw_target,
        )


@dataclass(frozen=True)
class ForwardingRule:
    """Ordered set of path prefixes that are proxied upstream."""
    prefixes: Tuple[str, ...] = field(default=('/it', '/services/timetables'))

    def matches(self, target: Union[str, bytes]) -> bool:
        if isinstance(target, str):
            target = target.encode('latin-1')
        return any(target.startswith(prefix.encode('latin-1')) for prefix in self.prefixes)


DEFAULT_UPSTREAM = UpstreamTarget()
DEFAULT_RULE = ForwardingRule()

# Only connecting is bounded; streams may idle as long as the transport allows
UPSTREAM_TIMEOUT = httpx.Timeout(
    timeout=None,
    connect=30.0,
    read=None,
    write=None,
    pool=None,
)
