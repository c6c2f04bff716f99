"""URL admission control for outbound feed checks.

Policy:
- Only http/https URLs are fetched.
- Hosts that are loopback names or IP literals inside private, loopback,
  link-local or otherwise non-routable ranges are refused.
- DNS names are not resolved here; a public-looking name is admitted.

Redirect targets go through the same `admit_url` check before they are
followed (see `bounded_fetch`).
"""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlsplit

from feedgate.errors import InputError


ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

_BLOCKED_NAMES = {"localhost", "localhost.localdomain", "ip6-localhost", "ip6-loopback"}

_PRIVATE_NETS = [
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("100.64.0.0/10"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

# Reason tags carried by AdmissionVerdict
BAD_SCHEME = "bad_scheme"
MISSING_HOST = "missing_host"
BLOCKED_HOST = "blocked_host"
BLOCKED_PRIVATE_IP = "blocked_private_ip"

INVALID_URL_MESSAGE = "Invalid URL format"
BAD_SCHEME_MESSAGE = "Only HTTP and HTTPS URLs are allowed"
BLOCKED_MESSAGE = "Local and private URLs are not allowed for security reasons"

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class CandidateURL:
    raw: str
    scheme: str
    hostname: str
    port: int
    path: str
    query: str


@dataclass(frozen=True)
class AdmissionVerdict:
    allowed: bool
    reason: Optional[str] = None


def parse_candidate_url(raw: str) -> CandidateURL:
    """Parse a caller-supplied URL string.

    Raises InputError with the client-facing message when the string is not a
    URL at all, or when its scheme is not http/https.
    """
    text = (raw or "").strip()
    try:
        parts = urlsplit(text)
        port = parts.port
    except ValueError:
        raise InputError(INVALID_URL_MESSAGE) from None
    if not parts.scheme:
        raise InputError(INVALID_URL_MESSAGE)
    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InputError(BAD_SCHEME_MESSAGE)
    host = (parts.hostname or "").strip()
    if not host or any(ch.isspace() for ch in parts.netloc):
        raise InputError(INVALID_URL_MESSAGE)
    return CandidateURL(
        raw=text,
        scheme=scheme,
        hostname=host,
        port=port or DEFAULT_PORTS[scheme],
        path=parts.path or "/",
        query=parts.query,
    )


def _parse_ip_literal(host: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    # inet_aton accepts the legacy forms resolvers still honour:
    # "2130706433", "0x7f.1", "127.1"
    if host and all(ch in "0123456789abcdefx." for ch in host) and host[0].isdigit():
        try:
            return ipaddress.IPv4Address(socket.inet_aton(host))
        except OSError:
            return None
    return None


def _is_private_ip(ip: IPAddress) -> bool:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == net.version and ip in net for net in _PRIVATE_NETS)


def is_blocked(hostname: str) -> bool:
    """True if `hostname` must never be contacted."""
    host = (hostname or "").strip().lower().strip("[]").rstrip(".")
    if not host:
        return True
    if host in _BLOCKED_NAMES or host.endswith(".localhost"):
        return True
    ip = _parse_ip_literal(host.split("%", 1)[0])
    return ip is not None and _is_private_ip(ip)


def admit(url: CandidateURL) -> AdmissionVerdict:
    if url.scheme not in ALLOWED_SCHEMES:
        return AdmissionVerdict(False, BAD_SCHEME)
    if not url.hostname:
        return AdmissionVerdict(False, MISSING_HOST)
    if is_blocked(url.hostname):
        host = url.hostname.lower().strip("[]").rstrip(".")
        reason = BLOCKED_PRIVATE_IP if _parse_ip_literal(host.split("%", 1)[0]) else BLOCKED_HOST
        return AdmissionVerdict(False, reason)
    return AdmissionVerdict(True)


def admit_url(raw: str) -> CandidateURL:
    """Parse and admit `raw`, raising InputError if either step refuses it."""
    candidate = parse_candidate_url(raw)
    verdict = admit(candidate)
    if not verdict.allowed:
        raise InputError(BLOCKED_MESSAGE)
    return candidate
