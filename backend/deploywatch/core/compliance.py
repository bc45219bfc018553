"""
DeployWatch - Promotion Compliance
Versions promote dev -> uat -> oat -> prod. A higher environment must
never run a newer version than the environments it is promoted from.

Rules:
  A) PROD can't be ahead of OAT or UAT   -> CRITICAL
  B) OAT can't be ahead of UAT           -> WARNING
An environment with no observed version is skipped, never a violation
(unless flag_missing_uat is enabled).
"""
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional

from deploywatch.config import get_settings
from deploywatch.core.models import ComplianceReport, EnvironmentResult, Severity, Violation
from deploywatch.core.versioning import compare_versions
from deploywatch.utils.logger import get_logger
from deploywatch.utils.metrics import COMPLIANCE_VIOLATIONS

logger = get_logger(__name__)

# (higher, lower, severity), evaluated in this order
ORDERING_RULES = (
    ("prod", "oat", Severity.CRITICAL),
    ("prod", "uat", Severity.CRITICAL),
    ("oat", "uat", Severity.WARNING),
)


def normalize_environment(env: Optional[str]) -> str:
    """Case-insensitive tier name; free text passes through lower-cased"""
    return (env or "").strip().lower()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ComplianceValidator:
    """Evaluates the promotion-ordering invariant over env -> version maps"""

    def __init__(self, flag_missing_uat: Optional[bool] = None, clock: Callable[[], datetime] = utcnow):
        if flag_missing_uat is None:
            flag_missing_uat = get_settings().flag_missing_uat
        self.flag_missing_uat = flag_missing_uat
        self.clock = clock

    def find_violations(self, versions: Mapping[str, Optional[str]]) -> List[Violation]:
        """Violations in rule order for an already-normalized env -> version map"""
        violations = []

        for higher, lower, severity in ORDERING_RULES:
            higher_version = versions.get(higher)
            lower_version = versions.get(lower)
            if higher_version is None or lower_version is None:
                continue
            if compare_versions(higher_version, lower_version) > 0:
                violations.append(Violation(
                    severity=severity,
                    higher_env=higher,
                    lower_env=lower,
                    higher_version=higher_version,
                    lower_version=lower_version,
                    message=(
                        f"{severity.value}: {higher.upper()} version ({higher_version}) "
                        f"is higher than {lower.upper()} version ({lower_version})"
                    ),
                ))

        if self.flag_missing_uat and versions.get("prod") is not None and versions.get("uat") is None:
            violations.append(Violation(
                severity=Severity.WARNING,
                higher_env="prod",
                lower_env="uat",
                higher_version=versions["prod"],
                lower_version=None,
                message=f"WARNING: PROD exists ({versions['prod']}) but UAT environment is missing",
            ))

        return violations

    def validate(
        self,
        latest_versions: Mapping[str, Optional[str]],
        results: Optional[Mapping[str, EnvironmentResult]] = None,
    ) -> ComplianceReport:
        """
        Build a ComplianceReport from the latest version per environment.

        Keys are normalized, so "PROD" and "prod" are the same tier; when
        two keys collide the later one wins. `results` carries per-env
        probe details into the report.
        """
        versions: Dict[str, Optional[str]] = {}
        for env, version in latest_versions.items():
            versions[normalize_environment(env)] = version

        if results is None:
            by_env = {
                env: EnvironmentResult(version=v, service=None, url=None, status="recorded")
                for env, v in versions.items()
            }
        else:
            by_env = {normalize_environment(env): r for env, r in results.items()}

        violations = self.find_violations(versions)
        for v in violations:
            COMPLIANCE_VIOLATIONS.labels(severity=v.severity.value).inc()
            logger.warning(f"Compliance violation: {v.message}")

        return ComplianceReport(
            timestamp=self.clock(),
            results_by_environment=by_env,
            violations=violations,
        )
