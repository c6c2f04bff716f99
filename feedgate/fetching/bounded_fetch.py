"""Single-shot HTTP GET with hard resource bounds.

Policy:
- One wall-clock deadline covers the whole call: name resolution, connect,
  headers and body of every hop. The caller gets control back at the
  deadline and every socket the fetch opened is shut down.
- At most `max_bytes + 1` body bytes are read and `max_bytes` kept; the
  connection is closed as soon as the extra byte shows up.
- Compressed transfer is refused (`Accept-Encoding: identity`) so the cap
  applies to the real payload.
- Redirects are never followed by requests itself. Up to `max_redirects`
  hops are followed here, each target re-admitted first.

The admission check on the initial URL is the caller's job.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, List, Mapping
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.exceptions import (
    ConnectTimeoutError,
    HTTPError as URLLib3HTTPError,
    NameResolutionError,
    ReadTimeoutError,
)

from feedgate.errors import FetchError, InputError
from feedgate.fetching.admission import BLOCKED_MESSAGE, CandidateURL, admit, parse_candidate_url

logger = logging.getLogger(__name__)

USER_AGENT = "Feedgate/1.0 (Feed Validator)"
ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"
CHUNK_SIZE = 16 * 1024

REDIRECT_CODES = {301, 302, 303, 307, 308}

# FetchError kinds
DNS_FAILURE = "dns_failure"
CONNECTION_REFUSED = "connection_refused"
CONNECTION_RESET = "connection_reset"
TIMEOUT = "timeout"
TLS_ERROR = "tls_error"
TOO_MANY_REDIRECTS = "too_many_redirects"
TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class FetchResult:
    status_code: int
    headers: Mapping[str, str]
    body: bytes
    truncated: bool
    url: str = ""

    @property
    def content_type(self) -> str:
        return header_value(self.headers, "content-type")


def header_value(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    if value is None:
        wanted = name.lower()
        value = next((v for k, v in headers.items() if k.lower() == wanted), "")
    return value or ""


def _shutdown(sock: socket.socket) -> None:
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # already closed
        pass


class _Watchdog:
    """Shuts down every socket a fetch has opened once the deadline passes.

    A blocked connect or read only notices the deadline when its socket
    goes away. A socket that shows up after expiry is shut down on arrival.
    """

    def __init__(self):
        self.expired = False
        self._sockets: List[socket.socket] = []
        self._lock = threading.Lock()

    def track(self, sock: socket.socket) -> None:
        with self._lock:
            self._sockets.append(sock)
            expired = self.expired
        if expired:
            _shutdown(sock)

    def expire(self) -> None:
        with self._lock:
            self.expired = True
            sockets = list(self._sockets)
        for sock in sockets:
            _shutdown(sock)


# watchdog of the fetch running on the current thread
_tracking = threading.local()


class _TrackedConnectionMixin:
    def _new_conn(self):
        sock = super()._new_conn()
        watchdog = getattr(_tracking, "watchdog", None)
        if watchdog is not None:
            watchdog.track(sock)
        return sock


class _TrackedHTTPConnection(_TrackedConnectionMixin, HTTPConnection):
    pass


class _TrackedHTTPSConnection(_TrackedConnectionMixin, HTTPSConnection):
    pass


class _TrackedHTTPConnectionPool(HTTPConnectionPool):
    ConnectionCls = _TrackedHTTPConnection


class _TrackedHTTPSConnectionPool(HTTPSConnectionPool):
    ConnectionCls = _TrackedHTTPSConnection


class _TrackingAdapter(HTTPAdapter):
    """HTTPAdapter whose connections hand their sockets to the watchdog."""

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = {
            "http": _TrackedHTTPConnectionPool,
            "https": _TrackedHTTPSConnectionPool,
        }


def _iter_causes(exc: BaseException):
    seen = set()
    stack = [exc]
    while stack:
        cur = stack.pop()
        if cur is None or id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur
        stack.append(cur.__cause__)
        stack.append(cur.__context__)
        # MaxRetryError keeps the real failure in .reason, requests wraps it in args
        reason = getattr(cur, "reason", None)
        if isinstance(reason, BaseException):
            stack.append(reason)
        stack.extend(a for a in cur.args if isinstance(a, BaseException))


def error_kind(exc: BaseException) -> str:
    """Map a requests/urllib3 exception chain to a FetchError kind."""
    causes = list(_iter_causes(exc))
    for cause in causes:
        if isinstance(cause, (NameResolutionError, socket.gaierror)):
            return DNS_FAILURE
    for cause in causes:
        if isinstance(cause, ConnectionRefusedError):
            return CONNECTION_REFUSED
    for cause in causes:
        if isinstance(cause, (requests.exceptions.Timeout, ConnectTimeoutError, ReadTimeoutError, socket.timeout)):
            return TIMEOUT
    for cause in causes:
        if isinstance(cause, requests.exceptions.SSLError):
            return TLS_ERROR
        if isinstance(cause, ConnectionResetError):
            return CONNECTION_RESET
    return TRANSPORT_ERROR


def _admit_redirect(location: str) -> CandidateURL:
    try:
        target = parse_candidate_url(location)
    except InputError:
        raise InputError(BLOCKED_MESSAGE) from None
    if not admit(target).allowed:
        raise InputError(BLOCKED_MESSAGE)
    return target


def _read_capped(response: requests.Response, max_bytes: int, watchdog: _Watchdog):
    body = bytearray()
    while len(body) <= max_bytes:
        chunk = response.raw.read(min(CHUNK_SIZE, max_bytes + 1 - len(body)), decode_content=True)
        if not chunk or watchdog.expired:
            break
        body.extend(chunk)
    if watchdog.expired:
        raise FetchError(TIMEOUT, "Request timeout")
    return bytes(body[:max_bytes]), len(body) > max_bytes


def _transport_error(e: BaseException, watchdog: _Watchdog) -> FetchError:
    if watchdog.expired:
        return FetchError(TIMEOUT, "Request timeout")
    return FetchError(error_kind(e), str(e))


def _fetch(
    url: CandidateURL,
    deadline: float,
    watchdog: _Watchdog,
    connect_timeout: float,
    max_bytes: int,
    max_redirects: int,
    admit_redirect: Callable[[str], CandidateURL],
) -> FetchResult:
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": ACCEPT,
        "Accept-Encoding": "identity",
    }
    current = url
    hops = 0
    _tracking.watchdog = watchdog
    try:
        with requests.Session() as session:
            # no proxies or netrc from the environment
            session.trust_env = False
            adapter = _TrackingAdapter(max_retries=0)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or watchdog.expired:
                    raise FetchError(TIMEOUT, "Request timeout")
                try:
                    response = session.get(
                        current.raw,
                        headers=headers,
                        timeout=(min(connect_timeout, remaining), remaining),
                        allow_redirects=False,
                        stream=True,
                    )
                except requests.RequestException as e:
                    raise _transport_error(e, watchdog) from e

                location = response.headers.get("location")
                if response.status_code in REDIRECT_CODES and location:
                    response.close()
                    if hops >= max_redirects:
                        raise FetchError(TOO_MANY_REDIRECTS, f"Exceeded {max_redirects} redirects")
                    hops += 1
                    current = admit_redirect(urljoin(current.raw, location))
                    logger.debug(f"following redirect {hops} to {current.raw}")
                    continue

                try:
                    body, truncated = _read_capped(response, max_bytes, watchdog)
                except (requests.RequestException, URLLib3HTTPError, OSError) as e:
                    raise _transport_error(e, watchdog) from e
                finally:
                    response.close()

                if truncated:
                    logger.debug(f"response from {current.raw} truncated at {max_bytes} bytes")
                return FetchResult(
                    status_code=response.status_code,
                    headers=CaseInsensitiveDict(response.headers),
                    body=body,
                    truncated=truncated,
                    url=current.raw,
                )
    finally:
        _tracking.watchdog = None


def bounded_fetch(
    url: CandidateURL,
    *,
    timeout: float = 15.0,
    connect_timeout: float = 5.0,
    max_bytes: int = 1_048_576,
    max_redirects: int = 3,
    admit_redirect: Callable[[str], CandidateURL] = _admit_redirect,
) -> FetchResult:
    """GET `url` within the given bounds.

    The request runs on a worker thread so that a stalled name lookup
    cannot hold the caller past the deadline either.

    Raises FetchError on transport failure and InputError when a redirect
    points somewhere admission refuses.
    """
    deadline = time.monotonic() + timeout
    watchdog = _Watchdog()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bounded-fetch")
    try:
        future = executor.submit(
            _fetch, url, deadline, watchdog, connect_timeout, max_bytes, max_redirects, admit_redirect,
        )
        try:
            return future.result(timeout=max(deadline - time.monotonic(), 0.0))
        except FutureTimeout:
            watchdog.expire()
            logger.debug(f"fetch of {url.raw} hit the {timeout}s deadline")
            raise FetchError(TIMEOUT, "Request timeout") from None
    finally:
        executor.shutdown(wait=False)
