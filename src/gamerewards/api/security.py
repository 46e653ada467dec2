from __future__ import annotations

import ipaddress
import os
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from gamerewards.api.errors import error_body


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return int(default)
    try:
        return int(str(raw).strip())
    except Exception:
        return int(default)


def _is_valid_ip(raw: str) -> bool:
    try:
        ipaddress.ip_address(raw)
        return True
    except ValueError:
        return False


def _client_ip(request: Request) -> str:
    """Client IP for rate limiting only (never for auth decisions).

    X-Forwarded-For is honoured only with REWARDS_TRUST_PROXY_HEADERS=1, and
    then only from peers listed in REWARDS_TRUSTED_PROXY_IPS (IPs or CIDRs).
    Without an allowlist, proxy headers are trusted outside prod only.
    """
    peer = request.client.host if request.client else ""

    if _truthy(os.environ.get("REWARDS_TRUST_PROXY_HEADERS")):
        raw = (os.environ.get("REWARDS_TRUSTED_PROXY_IPS") or "").strip()
        trusted = False
        if not raw:
            trusted = (os.environ.get("REWARDS_MODE") or "prod").strip().lower() != "prod"
        elif peer and _is_valid_ip(peer):
            peer_ip = ipaddress.ip_address(peer)
            for p in [p.strip() for p in raw.split(",") if p.strip()][:64]:
                try:
                    if peer_ip in ipaddress.ip_network(p, strict=False):
                        trusted = True
                        break
                except ValueError:
                    continue
        if trusted:
            xff = request.headers.get("x-forwarded-for")
            if xff:
                ip = xff.split(",")[0].strip()
                if ip and _is_valid_ip(ip):
                    return ip

    return peer if peer and _is_valid_ip(peer) else "unknown"


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Fail-fast request size limiter.

    Configure:
      REWARDS_MAX_REQUEST_BYTES (default: 64_000)
      REWARDS_SIZE_LIMIT_DISABLE=1 to disable
    """

    def __init__(
        self,
        app,
        *,
        max_bytes: Optional[int] = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ):
        super().__init__(app)
        self._enabled = not _truthy(os.environ.get("REWARDS_SIZE_LIMIT_DISABLE"))
        self._max_bytes = int(max_bytes) if max_bytes is not None else _env_int("REWARDS_MAX_REQUEST_BYTES", 64_000)
        self._exempt_prefixes = exempt_prefixes

    def _too_large(self) -> JSONResponse:
        return JSONResponse(
            status_code=413,
            content=error_body("request_too_large", "Request body too large", {"max_bytes": self._max_bytes}),
        )

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        path = request.url.path or ""
        for ex in self._exempt_prefixes:
            if path.startswith(ex):
                return await call_next(request)

        cl = request.headers.get("content-length")
        if cl:
            try:
                if int(cl) > self._max_bytes:
                    return self._too_large()
            except ValueError:
                pass

        # Chunked bodies carry no Content-Length.
        if (request.method or "").upper() in {"POST", "PUT", "PATCH"}:
            body = await request.body()
            if body and len(body) > self._max_bytes:
                return self._too_large()

        return await call_next(request)


@dataclass(frozen=True)
class TokenBucket:
    rate_per_sec: float
    burst: float


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory per-IP token bucket rate limiter.

    Writes and reads get separate buckets. Stale keys are evicted by TTL and
    the key count is capped. Configure via env:
      REWARDS_RL_DISABLE=1
      REWARDS_RL_TTL_S       (default 900 seconds)
      REWARDS_RL_MAX_KEYS    (default 20000)
      REWARDS_RL_PRUNE_EVERY (default 256 requests)
    """

    def __init__(
        self,
        app,
        *,
        write_bucket: TokenBucket | None = None,
        read_bucket: TokenBucket | None = None,
        ttl_s: int | None = None,
        max_keys: int | None = None,
        prune_every: int | None = None,
        exempt_prefixes: Tuple[str, ...] = ("/docs", "/openapi.json", "/v1/health"),
    ):
        super().__init__(app)

        # "<ip>:<bucket>" -> (tokens_remaining, last_refill_ts)
        self._buckets: Dict[str, Tuple[float, float]] = {}

        self._enabled = not _truthy(os.environ.get("REWARDS_RL_DISABLE"))
        self._write = write_bucket or TokenBucket(rate_per_sec=4.0, burst=20.0)
        self._read = read_bucket or TokenBucket(rate_per_sec=12.0, burst=40.0)
        self._exempt_prefixes = exempt_prefixes
        self._ttl_s = int(ttl_s) if ttl_s is not None else _env_int("REWARDS_RL_TTL_S", 900)
        self._max_keys = int(max_keys) if max_keys is not None else _env_int("REWARDS_RL_MAX_KEYS", 20_000)
        pe = int(prune_every) if prune_every is not None else _env_int("REWARDS_RL_PRUNE_EVERY", 256)
        self._prune_every = max(1, pe)
        self._req_count = 0

    def _pick_bucket(self, request: Request) -> Tuple[str, TokenBucket]:
        if (request.method or "").upper() in {"POST", "PUT", "PATCH", "DELETE"}:
            return "w", self._write
        return "r", self._read

    def _prune(self, now: float) -> None:
        if self._ttl_s > 0:
            cutoff = now - float(self._ttl_s)
            for k in [k for k, (_, last) in self._buckets.items() if last < cutoff]:
                self._buckets.pop(k, None)

        if self._max_keys > 0 and len(self._buckets) > self._max_keys:
            oldest = sorted(self._buckets.items(), key=lambda kv: kv[1][1])
            for k, _ in oldest[: len(oldest) - self._max_keys]:
                self._buckets.pop(k, None)

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        path = request.url.path or ""
        for ex in self._exempt_prefixes:
            if path.startswith(ex):
                return await call_next(request)

        now = time.time()
        self._req_count += 1
        if (self._req_count % self._prune_every) == 0:
            self._prune(now)

        name, bucket = self._pick_bucket(request)
        key = f"{_client_ip(request)}:{name}"

        tokens, last = self._buckets.get(key, (bucket.burst, now))
        tokens = min(bucket.burst, tokens + (now - last) * bucket.rate_per_sec)
        if tokens < 1.0:
            self._buckets[key] = (tokens, now)
            return JSONResponse(status_code=429, content=error_body("rate_limited", "Too many requests"))

        self._buckets[key] = (tokens - 1.0, now)
        if self._max_keys > 0 and len(self._buckets) > self._max_keys:
            self._prune(now)

        return await call_next(request)
