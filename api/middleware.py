# api/middleware.py
import json
import time
from urllib.parse import parse_qsl, urlencode

from fastapi import Request, status
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

MAX_JSON_BODY_BYTES = 10 * 1024

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Cross-Origin-Opener-Policy": "same-origin",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window request limit per client address for paths under ``prefix``.

    Counters live in process memory, so each worker enforces its own limit.
    """

    def __init__(self, app, max_requests=100, window_seconds=15 * 60, prefix="/api", clock=time.monotonic):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix
        self.clock = clock
        self._windows = {}
        self._next_sweep = None

    def _client_key(self, request: Request) -> str:
        return request.client.host if request.client else "unknown"

    def _evict_expired(self, now):
        # Sweeps at most once per window
        if self._next_sweep is not None and now < self._next_sweep:
            return
        self._windows = {
            key: (start, count)
            for key, (start, count) in self._windows.items()
            if now - start < self.window_seconds
        }
        self._next_sweep = now + self.window_seconds

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.prefix):
            return await call_next(request)

        now = self.clock()
        self._evict_expired(now)
        key = self._client_key(request)
        window_start, count = self._windows.get(key, (now, 0))
        if now - window_start >= self.window_seconds:
            window_start, count = now, 0
        count += 1
        self._windows[key] = (window_start, count)

        reset_in = max(0, int(window_start + self.window_seconds - now))
        headers = {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(max(0, self.max_requests - count)),
            "RateLimit-Reset": str(reset_in),
        }

        if count > self.max_requests:
            headers["Retry-After"] = str(reset_in)
            return JSONResponse(
                {
                    "status": "fail",
                    "message": "Too many requests, please try again later.",
                },
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                headers=headers,
            )

        response = await call_next(request)
        for name, value in headers.items():
            response.headers[name] = value
        return response


# --- Request sanitisation ---
VERBATIM_KEYS = ("password",)


def _unsafe_key(key) -> bool:
    return isinstance(key, str) and ("$" in key or "." in key)


def sanitize(value):
    """
    Drop keys containing '$' or '.', and strip '$' from strings.

    String values under ``VERBATIM_KEYS`` are left untouched.
    """
    if isinstance(value, dict):
        return {
            k: v if k in VERBATIM_KEYS and isinstance(v, str) else sanitize(v)
            for k, v in value.items()
            if not _unsafe_key(k)
        }
    if isinstance(value, list):
        return [sanitize(v) for v in value]
    if isinstance(value, str):
        return value.replace("$", "")
    return value


def _sanitize_query(query_string: bytes) -> bytes:
    pairs = parse_qsl(query_string.decode("latin-1"), keep_blank_values=True)
    cleaned = [(k, v.replace("$", "")) for k, v in pairs if not _unsafe_key(k)]
    return urlencode(cleaned).encode("latin-1")


class SanitizeRequestMiddleware:
    """
    ASGI middleware that rewrites the query string and JSON body before they
    reach the routes, and rejects JSON bodies over ``max_body_bytes``.
    """

    def __init__(self, app, max_body_bytes=MAX_JSON_BODY_BYTES):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope.get("query_string"):
            scope = dict(scope, query_string=_sanitize_query(scope["query_string"]))

        headers = Headers(scope=scope)
        if "application/json" not in headers.get("content-type", ""):
            await self.app(scope, receive, send)
            return

        body = b""
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body += message.get("body", b"")
            more_body = message.get("more_body", False)
            if len(body) > self.max_body_bytes:
                response = JSONResponse(
                    {"status": "fail", "message": "Request body too large"},
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                )
                await response(scope, receive, send)
                return

        try:
            payload = json.loads(body)
        except ValueError:
            # Leave malformed JSON for the framework to reject
            pass
        else:
            body = json.dumps(sanitize(payload)).encode("utf-8")
            raw_headers = [
                (name, value)
                for name, value in scope["headers"]
                if name.lower() != b"content-length"
            ]
            raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
            scope = dict(scope, headers=raw_headers)

        delivered = False

        async def replay():
            nonlocal delivered
            if not delivered:
                delivered = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)
