"""
DeployWatch - Monitoring Service
Entry point used by the HTTP layer and by external pollers:
probe -> metadata -> change detection -> ledger, plus compliance checks.
"""
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import httpx

from deploywatch.config import Settings, get_settings
from deploywatch.core.compliance import ComplianceValidator, normalize_environment
from deploywatch.core.detector import VersionChangeDetector
from deploywatch.core.errors import InputError
from deploywatch.core.models import (
    ChangeStats,
    CheckResult,
    ComplianceReport,
    EndpointStatus,
    EnvironmentResult,
    ProbeResult,
    ServiceMetadata,
    VersionHistoryEntry,
)
from deploywatch.monitoring.metadata import MetadataExtractor, service_name_from_url
from deploywatch.monitoring.prober import HealthProber, build_client, validate_url
from deploywatch.storage.db import Database
from deploywatch.storage.endpoints import EndpointStore
from deploywatch.storage.ledger import HistoryLedger
from deploywatch.utils.logger import get_logger
from deploywatch.utils.metrics import FLEET_SCAN_DURATION, MetricsTimer

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MonitoringService:
    """
    Wires prober, extractor, detector, ledger and validator together.

    One HTTP client is shared by every call site; each call site passes
    its own timeout (liveness, metadata, ad-hoc check).
    """

    def __init__(
        self,
        db: Optional[Database] = None,
        client: Optional[httpx.Client] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.clock = clock
        self.db = db or Database(self.settings.database_path)

        self.endpoints = EndpointStore(self.db, clock=clock)
        self.ledger = HistoryLedger(self.db, clock=clock)
        self.detector = VersionChangeDetector(self.endpoints, self.ledger)

        self.prober = HealthProber(
            client or build_client(self.settings.follow_redirects),
            default_timeout=self.settings.check_timeout_seconds,
        )
        self.metadata = MetadataExtractor(
            self.prober,
            timeout=self.settings.metadata_timeout_seconds,
            fallback_paths=self.settings.metadata_fallback_paths,
        )
        self.validator = ComplianceValidator(
            flag_missing_uat=self.settings.flag_missing_uat, clock=clock
        )

    def close(self) -> None:
        self.prober.close()

    # ===== Probing =====

    def check(self, url: str) -> ProbeResult:
        """Ad-hoc probe on the check budget; nothing is persisted"""
        return self.prober.probe(url, timeout=self.settings.check_timeout_seconds)

    def fetch_metadata(self, url: str, fallback: bool = False) -> ServiceMetadata:
        """Advisory version/service lookup; never touches the ledger"""
        if fallback:
            return self.metadata.extract_with_fallback(url)
        return self.metadata.extract(url)

    def probe_and_record(self, api_id: int, url: Optional[str] = None) -> CheckResult:
        """
        Liveness check for one registered API, then version detection.

        Network I/O happens before the ledger's per-API section is entered.
        Raises EndpointNotFound for an unknown apiId and StorageFailure if
        the status or history write fails.
        """
        endpoint = self.endpoints.require(api_id)
        url = validate_url(url or endpoint.url)

        result = self.prober.probe(url, timeout=self.settings.liveness_timeout_seconds)
        self.endpoints.update_status(api_id, result.status, result.response_time_ms)

        meta = ServiceMetadata()
        if result.online:
            meta = result.metadata if result.version is not None else self.metadata.extract(url)

        if meta.version is not None:
            self.detector.detect_and_record(
                api_id=api_id,
                new_version=meta.version,
                environment=endpoint.environment,
                region=endpoint.region,
                status=result.status,
                response_time_ms=result.response_time_ms,
                service_name=meta.service or service_name_from_url(url),
                url=url,
                project_id=endpoint.project_id,
            )

        return CheckResult(
            status=result.status.value,
            response_time_ms=result.response_time_ms,
            error=result.error,
        )

    def record_version_observation(
        self,
        api_id: int,
        version: Optional[str],
        environment: str,
        region: Optional[str] = None,
        status: Optional[str] = None,
        response_time_ms: Optional[int] = None,
        service_name: Optional[str] = None,
        url: Optional[str] = None,
        project_id: Optional[int] = None,
    ) -> Optional[VersionHistoryEntry]:
        """Record a version a collaborator decided to consider; None means heartbeat"""
        if not environment or not environment.strip():
            raise InputError("Missing required property 'environment'")
        if service_name is None and url:
            service_name = service_name_from_url(url)
        return self.detector.detect_and_record(
            api_id=api_id,
            new_version=version,
            environment=environment.strip(),
            region=region,
            status=status,
            response_time_ms=response_time_ms,
            service_name=service_name,
            url=url,
            project_id=project_id,
        )

    # ===== Fleet scan =====

    def batch_check(self, api_urls: Mapping[int, str], max_workers: Optional[int] = None) -> Dict[int, CheckResult]:
        """
        probe_and_record for every apiId with bounded parallelism.

        Each worker owns one API end to end. A failing API is reported in
        its own CheckResult and never stops the others: "offline" for
        network problems, "error" for bad input or storage failures.
        """
        if not api_urls:
            return {}

        workers = min(max_workers or self.settings.max_scan_workers, len(api_urls))
        results: Dict[int, CheckResult] = {}
        start_time = time.time()

        logger.info(f"Scanning {len(api_urls)} APIs with {workers} workers...")

        with MetricsTimer(FLEET_SCAN_DURATION):
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {
                    executor.submit(self.probe_and_record, api_id, url): api_id
                    for api_id, url in api_urls.items()
                }

                for future in as_completed(futures):
                    api_id = futures[future]
                    try:
                        results[api_id] = future.result()
                    except Exception as e:
                        logger.error(f"Check failed for API {api_id}: {e}")
                        results[api_id] = CheckResult(status="error", response_time_ms=0, error=str(e))

        online = sum(1 for r in results.values() if r.status == EndpointStatus.ONLINE.value)
        logger.info(
            f"Scan complete: {online}/{len(results)} online ({time.time() - start_time:.1f}s)"
        )
        return results

    def scan_fleet(self, max_workers: Optional[int] = None) -> Dict[int, CheckResult]:
        """Check every registered endpoint"""
        return self.batch_check(
            {e.api_id: e.url for e in self.endpoints.list_all()},
            max_workers=max_workers,
        )

    # ===== Ledger queries =====

    def get_history(self, api_id: int, environment: Optional[str] = None) -> List[VersionHistoryEntry]:
        return self.ledger.get_history(api_id, environment)

    def latest_versions_by_environment(self, api_id: int) -> Dict[str, str]:
        return self.ledger.latest_versions_by_environment(api_id)

    def change_stats(self, api_id: int, environment: Optional[str] = None) -> ChangeStats:
        return self.ledger.change_stats(api_id, environment)

    def version_analytics(self, api_id: int) -> dict:
        return {
            "apiId": api_id,
            "latestVersionsByEnvironment": self.latest_versions_by_environment(api_id),
            "changeStats": self.change_stats(api_id).to_dict(),
            "timestamp": self.clock().isoformat(),
        }

    def health_summary(self) -> dict:
        """Fleet-wide status counts from the endpoint registry"""
        endpoints = self.endpoints.list_all()
        counts = {s: 0 for s in EndpointStatus}
        for e in endpoints:
            counts[e.status] += 1

        timings = [e.response_time_ms for e in endpoints if e.response_time_ms is not None]
        checked = [e.last_checked for e in endpoints if e.last_checked is not None]

        return {
            "totalApis": len(endpoints),
            "onlineApis": counts[EndpointStatus.ONLINE],
            "offlineApis": counts[EndpointStatus.OFFLINE],
            "unknownApis": counts[EndpointStatus.UNKNOWN],
            "averageResponseTimeMs": round(sum(timings) / len(timings)) if timings else 0,
            "lastUpdated": max(checked).isoformat() if checked else None,
        }

    # ===== Compliance =====

    def validate_compliance(self, urls: Sequence[str], environments: Sequence[str]) -> ComplianceReport:
        """
        Probe each URL (parallel arrays with its environment) and validate
        the promotion ordering of the versions they advertise.
        """
        if urls is None or environments is None or len(urls) != len(environments):
            raise InputError("URLs and environments arrays must be provided and have the same length")

        checked_urls = [validate_url(u) for u in urls]
        results: Dict[str, EnvironmentResult] = {}
        if not checked_urls:
            return self.validator.validate({}, results)

        workers = min(self.settings.max_scan_workers, len(checked_urls))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            probes = list(executor.map(self.check, checked_urls))

        # Input order decides which result wins when environments repeat
        for url, env, probe in zip(checked_urls, environments, probes):
            results[normalize_environment(env)] = EnvironmentResult(
                version=probe.version if probe.online else None,
                service=probe.service if probe.online else None,
                url=url,
                status=probe.status.value,
                error=probe.error,
            )

        versions = {env: r.version for env, r in results.items()}
        return self.validator.validate(versions, results)

    def service_compliance(self) -> Dict[str, ComplianceReport]:
        """
        Validate every service across its environments using the recorded
        current versions. Endpoints are grouped by (projectId, service name).
        """
        groups: Dict[tuple, Dict[str, EnvironmentResult]] = {}

        for endpoint in self.endpoints.list_all():
            latest = self.ledger.latest_entry(endpoint.api_id)
            service = (latest.service_name if latest and latest.service_name
                       else service_name_from_url(endpoint.url))
            env = normalize_environment(endpoint.environment)
            groups.setdefault((endpoint.project_id, service), {})[env] = EnvironmentResult(
                version=endpoint.current_version,
                service=service,
                url=endpoint.url,
                status=endpoint.status.value,
            )

        reports: Dict[str, ComplianceReport] = {}
        for (project_id, service), results in groups.items():
            key = service if project_id is None else f"{project_id}:{service}"
            versions = {env: r.version for env, r in results.items()}
            reports[key] = self.validator.validate(versions, results)
        return reports
