"""HTTP request metadata for the ``httpRequest`` field of log entries.

Payloads are built from ASGI HTTP scopes. Field names and formats follow the
Cloud Logging ``HttpRequest`` message.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from cloudlogdriver.core.models import HTTP_KEY, Attr

# ASGI type alias
Scope = dict[str, Any]


@dataclass(frozen=True)
class GAELatency:
    """Latency as expected by App Engine and Cloud Run."""

    seconds: int
    nanos: int

    def to_dict(self) -> dict[str, int]:
        return {"seconds": self.seconds, "nanos": self.nanos}


@dataclass
class HTTPPayload:
    """HTTP request related fields of a log entry.

    Attributes:
        request_method: Request method, e.g. GET.
        request_url: Scheme, host, path and query of the request.
        request_size: Request size in bytes, including headers and body,
            as a decimal string; empty if unknown.
        status: Response status code.
        response_size: Response size in bytes as a decimal string; empty if
            unknown.
        user_agent: User-Agent header.
        remote_ip: Client IP address.
        server_ip: IP address of the server that handled the request.
        referer: Referer header.
        latency: Processing latency, see make_latency(). None if unknown.
        protocol: Protocol, e.g. HTTP/1.1.
    """

    request_method: str = ""
    request_url: str = ""
    request_size: str = ""
    status: int = 0
    response_size: str = ""
    user_agent: str = ""
    remote_ip: str = ""
    server_ip: str = ""
    referer: str = ""
    latency: Any = None
    cache_lookup: bool = False
    cache_hit: bool = False
    cache_validated_with_origin_server: bool = False
    cache_fill_bytes: str = ""
    protocol: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the payload with Cloud Logging field names.

        Empty sizes and a missing latency are omitted.
        """
        out: dict[str, Any] = {
            "requestMethod": self.request_method,
            "requestUrl": self.request_url,
        }
        if self.request_size:
            out["requestSize"] = self.request_size
        out["status"] = self.status
        if self.response_size:
            out["responseSize"] = self.response_size
        out["userAgent"] = self.user_agent
        out["remoteIp"] = self.remote_ip
        out["serverIp"] = self.server_ip
        out["referer"] = self.referer
        if self.latency is not None:
            latency = self.latency
            out["latency"] = latency.to_dict() if hasattr(latency, "to_dict") else latency
        out["cacheLookup"] = self.cache_lookup
        out["cacheHit"] = self.cache_hit
        out["cacheValidatedWithOriginServer"] = self.cache_validated_with_origin_server
        if self.cache_fill_bytes:
            out["cacheFillBytes"] = self.cache_fill_bytes
        out["protocol"] = self.protocol
        return out


def header_value(scope: Scope, name: str) -> str:
    """Return the first value of a header from an ASGI scope (case-insensitive)."""
    header_bytes = name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for key, value in headers:
        if key.lower() == header_bytes:
            return value.decode("latin-1")
    return ""


def _request_url(scope: Scope) -> str:
    scheme = scope.get("scheme", "http")
    host = header_value(scope, "host")
    if not host and scope.get("server"):
        server_host, server_port = scope["server"][0], scope["server"][1]
        host = server_host if server_port is None else f"{server_host}:{server_port}"
    path = scope.get("path", "")
    url = f"{scheme}://{host}{path}" if host else path
    query = scope.get("query_string", b"").decode("latin-1")
    if query:
        url = f"{url}?{query}"
    return url


def remote_ip(scope: Scope) -> str:
    """Make a best effort to compute the client IP of a request.

    Uses X-Forwarded-For when present, else the ASGI client address.
    """
    forwarded = header_value(scope, "x-forwarded-for")
    if forwarded:
        return forwarded
    client = scope.get("client")
    if client:
        return str(client[0])
    return ""


def make_http_payload(
    scope: Scope | None,
    status: int = 0,
    response_size: int | None = None,
    latency: Any = None,
) -> HTTPPayload:
    """Build an HTTPPayload from an ASGI HTTP scope.

    Args:
        scope: ASGI scope of the request. None gives an empty payload.
        status: Response status code (0 if unknown).
        response_size: Response body size in bytes, if known.
        latency: Latency value, usually from make_latency().

    Returns:
        HTTPPayload with request fields filled from the scope.
    """
    if scope is None:
        scope = {}
    server = scope.get("server")
    return HTTPPayload(
        request_method=scope.get("method", ""),
        request_url=_request_url(scope) if scope else "",
        request_size=header_value(scope, "content-length"),
        status=status,
        response_size="" if response_size is None else str(response_size),
        user_agent=header_value(scope, "user-agent"),
        remote_ip=remote_ip(scope),
        server_ip=str(server[0]) if server else "",
        referer=header_value(scope, "referer"),
        latency=latency,
        protocol=f"HTTP/{scope['http_version']}" if "http_version" in scope else "",
    )


def http_attr(payload: HTTPPayload) -> Attr:
    """Return the httpRequest attribute for a payload."""
    return Attr(HTTP_KEY, payload)


def make_http_attr(
    scope: Scope | None,
    status: int = 0,
    response_size: int | None = None,
    latency: Any = None,
) -> Attr:
    """Return the httpRequest attribute for an ASGI request."""
    return http_attr(make_http_payload(scope, status, response_size, latency))


def make_latency(duration: timedelta | float, is_gke: bool = False) -> Any:
    """Format a request latency for the platform the service runs on.

    Args:
        duration: Latency as a timedelta or in seconds.
        is_gke: True on GKE, where latency is a duration string.

    Returns:
        ``"<seconds>.<millis>s"`` truncated to milliseconds on GKE,
        GAELatency for App Engine and Cloud Run.
    """
    if isinstance(duration, timedelta):
        micros = (duration.days * 86_400 + duration.seconds) * 1_000_000 + duration.microseconds
        nanos = micros * 1_000
    else:
        nanos = int(duration * 1_000_000_000)
    if is_gke:
        millis = nanos // 1_000_000
        return f"{millis // 1000}.{millis % 1000:03d}s"
    seconds, remainder = divmod(nanos, 1_000_000_000)
    return GAELatency(seconds=seconds, nanos=remainder)
