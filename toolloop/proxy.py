"""Rate limited proxy for sharing one model between many clients.

A proxy lets untrusted clients (a browser, a CLI on someone else's
machine) use a model without ever seeing the provider credentials.
The hosting application runs a :class:`ProxyServer` in front of a
real :class:`~toolloop.model.Model`; clients talk to it through
:class:`ProxyModel`, which implements the same model contract and can
be handed straight to an :class:`~toolloop.agent.Agent`.

Every request passes a :class:`RateLimiter` gate first.
:class:`ProcessLocalRateLimiter` enforces a minimum interval between
requests per user or per IP address inside one process; bring your
own implementation for a fleet of servers.

Wire protocol (JSON over HTTP POST to ``{proxy_url}/api/invoke``)::

    request:  {"messages": [Message.to_dict(), ...], "tools": [ToolSpec.to_dict(), ...]}
    response: {"message": Message.to_dict()}
    failure:  {"error": "<description>"} with a non-2xx status

:meth:`ProxyServer.handle` and :func:`error_response` are framework
neutral; wire them into whatever HTTP server the application uses::

    server = ProxyServer(OllamaModel(model="gpt-oss:20b"),
                         ProcessLocalRateLimiter(ConnectionGranularity.IP, 1))

    async def invoke_route(request):
        info = ConnectionInformation.from_headers(request.headers, request.client.host)
        try:
            return 200, await server.handle(await request.json(), info)
        except Exception as exc:
            return error_response(exc)
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import httpx

from .env_utils import (
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_TOKEN_LIMIT,
    PROXY_TOKEN_ENV,
    PROXY_URL_ENV,
    REQUEST_TIMEOUT_ENV,
    TOKEN_LIMIT_ENV,
    coerce_timeout,
    get_env_str,
    parse_float_env,
    parse_int_env,
)
from .errors import ModelInvocationError, RateLimiterNotDefinedError, RateLimitExceededError
from .message import Message
from .model import Model, ModelRequest
from .tool import ToolSpec


def _json_dumps(value: Any) -> str:
    # Tool results may hold values JSON cannot represent; send them as strings.
    return json.dumps(value, default=str)


def _jsonable(value: Any) -> Any:
    return json.loads(_json_dumps(value))


###############################################################################
# Connection information and rate limiting
###############################################################################

@dataclass
class ConnectionInformation:
    """Who is calling the proxy.

    Either field may be missing; rate limiters bucket unknown callers
    together.
    """

    ip: Optional[str] = None
    user: Optional[str] = None

    @classmethod
    def from_headers(
        cls,
        headers: Mapping[str, str],
        remote_addr: Optional[str] = None,
        user: Optional[str] = None,
    ) -> "ConnectionInformation":
        """Build connection information from HTTP request headers.

        The first hop of ``X-Forwarded-For`` wins over ``remote_addr``
        so the proxy sees the client rather than a load balancer.
        """
        forwarded = None
        for key, value in headers.items():
            if key.lower() == "x-forwarded-for" and value:
                forwarded = value.split(",")[0].strip() or None
                break
        return cls(ip=forwarded or remote_addr, user=user)


class ConnectionGranularity(str, Enum):
    """Which field of :class:`ConnectionInformation` identifies a client."""

    USERNAME = "username"
    IP = "ip"


class RateLimiter:
    """Decides whether a request may reach the model."""

    def attempt_grant(self, info: ConnectionInformation) -> bool:
        """Return ``True`` when the request is accepted."""
        raise RateLimiterNotDefinedError("attempt_grant was not defined by this implementation.")


class ProcessLocalRateLimiter(RateLimiter):
    """Allow each client at most ``requests_per_second`` requests.

    A client's first request is always granted.  Later requests are
    granted once ``1 / requests_per_second`` seconds have passed since
    the client's last granted request; refused requests do not reset
    the window.  State lives in this process only.
    """

    def __init__(
        self,
        granularity: ConnectionGranularity,
        requests_per_second: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.granularity = ConnectionGranularity(granularity)
        self.min_interval_s = 1.0 / requests_per_second
        self._clock = clock
        self._last_grant: Dict[str, float] = {}

    def _identifier(self, info: ConnectionInformation) -> str:
        if self.granularity is ConnectionGranularity.USERNAME:
            value = info.user
        else:
            value = info.ip
        return value or "undefined"

    def attempt_grant(self, info: ConnectionInformation) -> bool:
        identifier = self._identifier(info)
        now = self._clock()
        last = self._last_grant.get(identifier)
        if last is not None and now - last < self.min_interval_s:
            return False
        # Clients whose window has passed would be granted anyway.
        self._last_grant = {
            key: granted for key, granted in self._last_grant.items()
            if now - granted < self.min_interval_s
        }
        self._last_grant[identifier] = now
        return True

    def tracked_clients(self) -> int:
        """Number of clients currently inside their rate limit window."""
        return len(self._last_grant)


###############################################################################
# Server side
###############################################################################

class ProxyServer:
    """Gate model calls behind a rate limiter.

    Parameters
    ----------
    model : Model
        The model that actually answers requests.
    rate_limiter : RateLimiter, optional
        Gate consulted before every call.  Without one every request is
        forwarded.
    """

    def __init__(self, model: Model, rate_limiter: Optional[RateLimiter] = None) -> None:
        self.model = model
        self.rate_limiter = rate_limiter

    async def invoke(self, request: ModelRequest, info: ConnectionInformation) -> Message:
        if self.rate_limiter is not None and not self.rate_limiter.attempt_grant(info):
            raise RateLimitExceededError(
                "Too many clients using the model right now. Please try again later."
            )
        return await self.model.invoke(request)

    async def handle(self, payload: Dict[str, Any], info: ConnectionInformation) -> Dict[str, Any]:
        """Serve one decoded wire request and return the response body."""
        if not isinstance(payload, dict):
            raise ValueError("Proxy request body must be a JSON object")
        request = ModelRequest(
            messages=[Message.from_dict(m) for m in payload.get("messages") or []],
            tools=[ToolSpec.from_dict(t) for t in payload.get("tools") or []],
        )
        message = await self.invoke(request, info)
        return _jsonable({"message": message.to_dict()})


def error_response(exc: Exception) -> Tuple[int, Dict[str, Any]]:
    """Map an exception raised by :meth:`ProxyServer.handle` to ``(status, body)``."""
    if isinstance(exc, RateLimitExceededError):
        return 429, {"error": str(exc)}
    if isinstance(exc, (ValueError, KeyError)):
        return 400, {"error": f"Malformed request: {exc}"}
    if isinstance(exc, ModelInvocationError):
        return 502, {"error": str(exc)}
    return 500, {"error": "Internal proxy error"}


###############################################################################
# Client side
###############################################################################

class ProxyModel(Model):
    """A :class:`Model` that forwards every request to a proxy server.

    Parameters
    ----------
    proxy_url : str, optional
        Base URL of the proxy, e.g. ``"https://genai.example.com"``.
        Defaults to ``TOOLLOOP_PROXY_URL``.
    auth_token : str, optional
        Bearer token for the proxy.  Defaults to ``TOOLLOOP_PROXY_TOKEN``.
    token_limit : int, optional
        Context size reported to compaction strategies.
    timeout_s : float, optional
        HTTP timeout in seconds.  Zero or a negative value disables it.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport, mainly for tests.
    """

    def __init__(
        self,
        proxy_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        token_limit: Optional[int] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        proxy_url = proxy_url or get_env_str(PROXY_URL_ENV)
        if not proxy_url:
            raise ValueError(f"ProxyModel requires a proxy URL (argument or {PROXY_URL_ENV})")
        self.proxy_url = proxy_url.rstrip("/")
        self.auth_token = auth_token or get_env_str(PROXY_TOKEN_ENV)
        self._token_limit = token_limit if token_limit is not None else parse_int_env(TOKEN_LIMIT_ENV, DEFAULT_TOKEN_LIMIT)
        if timeout_s is None:
            timeout_s = parse_float_env(REQUEST_TIMEOUT_ENV, DEFAULT_REQUEST_TIMEOUT_S)
        self.timeout_s = coerce_timeout(timeout_s)
        self._transport = transport

    def token_limit(self) -> int:
        return self._token_limit

    async def invoke(self, request: ModelRequest) -> Message:
        body = {
            "messages": [m.to_dict() for m in request.messages],
            "tools": [ToolSpec.from_tool(t).to_dict() for t in request.tools],
        }
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            resp = await client.post(
                f"{self.proxy_url}/api/invoke", content=_json_dumps(body), headers=headers
            )

        if resp.status_code >= 400:
            # Attempt to read error message from JSON body
            error_message = f"Proxy error: {resp.status_code} {resp.reason_phrase}"
            try:
                data = resp.json()
                if isinstance(data, dict) and "error" in data:
                    error_message = f"Proxy error: {data['error']}"
            except ValueError:
                pass
            raise ModelInvocationError(error_message, status_code=resp.status_code)

        try:
            data = resp.json()
            return Message.from_dict(data["message"])
        except (ValueError, KeyError, TypeError) as exc:
            raise ModelInvocationError(
                f"Proxy returned a malformed response: {exc}", status_code=resp.status_code
            ) from exc


__all__ = [
    "ConnectionInformation",
    "ConnectionGranularity",
    "RateLimiter",
    "ProcessLocalRateLimiter",
    "ProxyServer",
    "ProxyModel",
    "error_response",
]
