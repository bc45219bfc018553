"""
DeployWatch - Data Model
Typed records shared by the prober, detector, ledger and compliance validator.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

# Probe kinds, used as the metric label
LIVENESS_PROBE = "liveness"
METADATA_PROBE = "metadata"


class EndpointStatus(str, Enum):
    """Reachability of a monitored endpoint"""
    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class ChangeType(str, Enum):
    """Classification of a version transition"""
    INITIAL = "initial"
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


@dataclass
class MonitoredEndpoint:
    """An API endpoint registered by the external CRUD layer"""
    api_id: int
    url: str
    environment: str
    region: str
    project_id: Optional[int] = None
    status: EndpointStatus = EndpointStatus.UNKNOWN
    response_time_ms: Optional[int] = None
    current_version: Optional[str] = None
    last_checked: Optional[datetime] = None
    
    def to_dict(self) -> dict:
        return {
            "id": self.api_id,
            "projectId": self.project_id,
            "url": self.url,
            "environment": self.environment,
            "region": self.region,
            "status": self.status.value,
            "responseTime": self.response_time_ms,
            "currentVersion": self.current_version,
            "lastChecked": _iso(self.last_checked),
        }


@dataclass(frozen=True)
class ServiceMetadata:
    """Version/service fields advertised by an endpoint; both optional"""
    version: Optional[str] = None
    service: Optional[str] = None
    
    @property
    def is_empty(self) -> bool:
        return self.version is None and self.service is None
    
    def to_dict(self) -> dict:
        """Only fields that were actually present"""
        out = {}
        if self.version is not None:
            out["version"] = self.version
        if self.service is not None:
            out["service"] = self.service
        return out


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single GET against an endpoint"""
    status: EndpointStatus
    http_status: int
    response_time_ms: int
    version: Optional[str] = None
    service: Optional[str] = None
    error: Optional[str] = None
    
    @property
    def online(self) -> bool:
        return self.status == EndpointStatus.ONLINE
    
    @property
    def metadata(self) -> ServiceMetadata:
        return ServiceMetadata(version=self.version, service=self.service)
    
    def to_dict(self) -> dict:
        out = {
            "status": self.status.value,
            "httpStatus": self.http_status,
            "responseTime": self.response_time_ms,
            "version": self.version,
            "service": self.service,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class CheckResult:
    """Result of probe-and-record for one API"""
    status: str
    response_time_ms: int
    error: Optional[str] = None
    
    def to_dict(self) -> dict:
        out = {"status": self.status, "responseTime": self.response_time_ms}
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class VersionHistoryEntry:
    """Immutable ledger row describing one version transition"""
    id: int
    api_id: int
    version: str
    environment: str
    region: Optional[str]
    status: Optional[str]
    response_time_ms: Optional[int]
    detected_at: datetime
    service_name: Optional[str]
    url: Optional[str]
    project_id: Optional[int]
    previous_version: Optional[str]
    version_change_type: ChangeType
    is_active: bool = True
    
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "api_id": self.api_id,
            "version": self.version,
            "environment": self.environment,
            "region": self.region,
            "status": self.status,
            "response_time": self.response_time_ms,
            "detected_at": self.detected_at.isoformat(),
            "service_name": self.service_name,
            "url": self.url,
            "project_id": self.project_id,
            "previous_version": self.previous_version,
            "version_change_type": self.version_change_type.value,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class ChangeStats:
    """Aggregate counts over a filtered set of history entries"""
    total_changes: int = 0
    major_changes: int = 0
    minor_changes: int = 0
    patch_changes: int = 0
    first_change_at: Optional[datetime] = None
    last_change_at: Optional[datetime] = None
    
    def to_dict(self) -> dict:
        return {
            "totalChanges": self.total_changes,
            "majorChanges": self.major_changes,
            "minorChanges": self.minor_changes,
            "patchChanges": self.patch_changes,
            "firstChangeAt": _iso(self.first_change_at),
            "lastChangeAt": _iso(self.last_change_at),
        }


@dataclass(frozen=True)
class EnvironmentResult:
    """What was observed for one environment during a compliance check"""
    version: Optional[str]
    service: Optional[str]
    url: Optional[str]
    status: str
    error: Optional[str] = None
    
    def to_dict(self) -> dict:
        out = {
            "version": self.version,
            "service": self.service,
            "url": self.url,
            "status": self.status,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class Violation:
    """A breach of the promotion ordering between two environments"""
    severity: Severity
    higher_env: str
    lower_env: str
    higher_version: str
    lower_version: Optional[str]
    message: str
    
    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "environment": self.higher_env,
            "comparedTo": self.lower_env,
            "version": self.higher_version,
            "comparedVersion": self.lower_version,
            "message": self.message,
        }


@dataclass
class ComplianceReport:
    """Result of one promotion-ordering validation run"""
    timestamp: datetime
    results_by_environment: Dict[str, EnvironmentResult] = field(default_factory=dict)
    violations: List[Violation] = field(default_factory=list)
    
    @property
    def compliant(self) -> bool:
        return not self.violations
    
    @property
    def messages(self) -> List[str]:
        return [v.message for v in self.violations]
    
    def to_dict(self) -> dict:
        return {
            "results": {env: r.to_dict() for env, r in self.results_by_environment.items()},
            "violations": self.messages,
            "violationDetails": [v.to_dict() for v in self.violations],
            "compliant": self.compliant,
            "timestamp": self.timestamp.isoformat(),
        }
