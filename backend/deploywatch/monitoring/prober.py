"""
DeployWatch - Health Prober
Single bounded-timeout GET per call. Network failures never escape:
they come back as an offline ProbeResult with a diagnostic.
"""
import logging
import time
from typing import Optional

import httpx

from deploywatch.config import get_settings
from deploywatch.core.errors import InputError
from deploywatch.core.models import LIVENESS_PROBE, METADATA_PROBE, EndpointStatus, ProbeResult
from deploywatch.monitoring.metadata import parse_metadata
from deploywatch.utils.logger import get_logger
from deploywatch.utils.metrics import PROBES_TOTAL, PROBE_DURATION

logger = get_logger(__name__)

# Response times are stored as 32-bit integers
MAX_RESPONSE_TIME_MS = 2**31 - 1

ALLOWED_SCHEMES = ("http", "https")


def validate_url(url: Optional[str]) -> str:
    """
    Return the trimmed URL or raise InputError.
    
    Must be absolute with an http(s) scheme and a host.
    """
    if url is None or not str(url).strip():
        raise InputError("Missing required property 'url'")
    
    url = str(url).strip()
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise InputError(f"Invalid URL: {url}") from e
    
    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.host:
        raise InputError(f"Invalid URL: {url}")
    return url


def build_client(follow_redirects: Optional[bool] = None) -> httpx.Client:
    """Shared HTTP client; timeouts are passed per call, not set here"""
    if follow_redirects is None:
        follow_redirects = get_settings().follow_redirects
    return httpx.Client(
        follow_redirects=follow_redirects,
        headers={"Accept": "application/json, */*;q=0.5"},
    )


def _elapsed_ms(start: float) -> int:
    elapsed = int((time.perf_counter() - start) * 1000)
    return max(0, min(elapsed, MAX_RESPONSE_TIME_MS))


class HealthProber:
    """
    Liveness + latency check for one URL.
    
    The client is injected so every call site shares one connection
    pool while choosing its own timeout budget.
    """
    
    def __init__(self, client: Optional[httpx.Client] = None, default_timeout: Optional[float] = None):
        self.client = client or build_client()
        self.default_timeout = (
            default_timeout if default_timeout is not None
            else get_settings().check_timeout_seconds
        )
    
    def probe(self, url: str, timeout: Optional[float] = None, kind: str = LIVENESS_PROBE) -> ProbeResult:
        """
        GET `url` once within `timeout` seconds of wall-clock time.
        
        online iff HTTP status is in [200, 400). Raises InputError only for
        a malformed URL; DNS, connect, TLS and timeout errors are returned
        as offline with http_status 0. The budget covers the whole exchange:
        a body still trickling in when it runs out is abandoned.
        
        `kind` tags metrics and picks the log level: metadata fetches are
        advisory and log their failures at DEBUG.
        """
        url = validate_url(url)
        budget = timeout if timeout is not None else self.default_timeout
        
        start = time.perf_counter()
        deadline = start + budget
        try:
            with self.client.stream("GET", url, timeout=budget) as response:
                chunks = []
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    if time.perf_counter() > deadline:
                        break
                if time.perf_counter() > deadline:
                    return self._failed(url, start, kind, f"ReadTimeout: exceeded {budget}s budget")
                code = response.status_code
                body = b"".join(chunks).decode(response.charset_encoding or "utf-8", errors="replace")
        except httpx.HTTPError as e:
            return self._failed(url, start, kind, f"{type(e).__name__}: {e}")
        
        elapsed = _elapsed_ms(start)
        status = EndpointStatus.ONLINE if 200 <= code < 400 else EndpointStatus.OFFLINE
        meta = parse_metadata(body)
        
        PROBES_TOTAL.labels(kind=kind, outcome=status.value).inc()
        PROBE_DURATION.labels(kind=kind).observe(elapsed / 1000)
        logger.debug(f"Probe {url}: HTTP {code} in {elapsed}ms ({status.value})")
        
        return ProbeResult(
            status=status,
            http_status=code,
            response_time_ms=elapsed,
            version=meta.version,
            service=meta.service,
        )
    
    def _failed(self, url: str, start: float, kind: str, error: str) -> ProbeResult:
        elapsed = _elapsed_ms(start)
        level = logging.DEBUG if kind == METADATA_PROBE else logging.WARNING
        logger.log(level, f"{kind.capitalize()} probe failed for {url} after {elapsed}ms: {error}")
        PROBES_TOTAL.labels(kind=kind, outcome="error").inc()
        PROBE_DURATION.labels(kind=kind).observe(elapsed / 1000)
        return ProbeResult(
            status=EndpointStatus.OFFLINE,
            http_status=0,
            response_time_ms=elapsed,
            error=error,
        )
    
    def close(self) -> None:
        self.client.close()
