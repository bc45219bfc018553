"""
DeployWatch - Service Metadata Extraction
Best-effort discovery of the {"version": ..., "service": ...} payload
most services expose on their health/info endpoints.
"""
import json
from typing import TYPE_CHECKING, List, Optional

import httpx

from deploywatch.config import get_settings
from deploywatch.core.errors import InputError
from deploywatch.core.models import METADATA_PROBE, ServiceMetadata
from deploywatch.utils.logger import get_logger

if TYPE_CHECKING:
    from deploywatch.monitoring.prober import HealthProber

logger = get_logger(__name__)

UNKNOWN_SERVICE = "unknown-service"


def parse_metadata(body: Optional[str]) -> ServiceMetadata:
    """
    Read string `version`/`service` fields from a JSON object body.
    
    Anything else (blank, not JSON, not an object, non-string values)
    yields empty metadata rather than an error.
    """
    if not body or not body.strip():
        return ServiceMetadata()
    
    try:
        data = json.loads(body)
    except ValueError:
        # Plain-text health response
        return ServiceMetadata()
    
    if not isinstance(data, dict):
        return ServiceMetadata()
    
    version = data.get("version")
    service = data.get("service")
    return ServiceMetadata(
        version=version if isinstance(version, str) else None,
        service=service if isinstance(service, str) else None,
    )


def service_name_from_url(url: str) -> str:
    """First DNS label of the URL host: billing.example.com -> billing"""
    try:
        host = httpx.URL(url).host
    except (httpx.InvalidURL, TypeError):
        return UNKNOWN_SERVICE
    if not host:
        return UNKNOWN_SERVICE
    return host.split(".")[0]


class MetadataExtractor:
    """
    Fetches service metadata through the prober on the short metadata
    budget. Never raises: every failure is "no metadata".
    """
    
    def __init__(
        self,
        prober: "HealthProber",
        timeout: Optional[float] = None,
        fallback_paths: Optional[List[str]] = None,
    ):
        settings = get_settings()
        self.prober = prober
        self.timeout = timeout if timeout is not None else settings.metadata_timeout_seconds
        self.fallback_paths = list(
            fallback_paths if fallback_paths is not None else settings.metadata_fallback_paths
        )
    
    def extract(self, url: str, timeout: Optional[float] = None) -> ServiceMetadata:
        """Metadata advertised at exactly `url`"""
        try:
            result = self.prober.probe(
                url,
                timeout=timeout if timeout is not None else self.timeout,
                kind=METADATA_PROBE,
            )
        except InputError as e:
            logger.debug(f"Metadata skipped for invalid URL {url!r}: {e}")
            return ServiceMetadata()
        
        if not result.online:
            logger.debug(f"No metadata from {url}: {result.error or result.http_status}")
            return ServiceMetadata()
        
        return result.metadata
    
    def candidate_urls(self, base_url: str) -> List[str]:
        base = base_url.rstrip("/")
        return [base_url] + [base + path for path in self.fallback_paths]
    
    def extract_with_fallback(self, base_url: str) -> ServiceMetadata:
        """
        Try the base URL, then each fallback path in order, and return the
        first non-empty result. Results are never merged across endpoints.
        """
        for candidate in self.candidate_urls(base_url):
            meta = self.extract(candidate)
            if not meta.is_empty:
                logger.debug(f"Metadata found at {candidate}")
                return meta
        return ServiceMetadata()
