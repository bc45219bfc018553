"""
DeployWatch - Version Change Detector
Compares a newly observed version with the endpoint's recorded one and
either appends a history entry or just refreshes status (heartbeat).
"""
from typing import Optional, Union

from deploywatch.core.errors import EndpointNotFound
from deploywatch.core.models import EndpointStatus, VersionHistoryEntry
from deploywatch.core.versioning import classify_change
from deploywatch.storage.endpoints import EndpointStore
from deploywatch.storage.ledger import HistoryLedger
from deploywatch.utils.logger import get_logger
from deploywatch.utils.metrics import HEARTBEATS, VERSION_CHANGES

logger = get_logger(__name__)


def coerce_status(status: Union[EndpointStatus, str, None]) -> EndpointStatus:
    if isinstance(status, EndpointStatus):
        return status
    try:
        return EndpointStatus(str(status).lower())
    except ValueError:
        return EndpointStatus.UNKNOWN


class VersionChangeDetector:
    """
    Records version transitions for one API at a time.

    The per-API lock covers only the read-current / append / update
    sequence; callers do their network I/O before calling in.
    """

    def __init__(self, endpoints: EndpointStore, ledger: HistoryLedger):
        self.endpoints = endpoints
        self.ledger = ledger

    def detect_and_record(
        self,
        api_id: int,
        new_version: Optional[str],
        environment: str,
        region: Optional[str] = None,
        status: Union[EndpointStatus, str, None] = None,
        response_time_ms: Optional[int] = None,
        service_name: Optional[str] = None,
        url: Optional[str] = None,
        project_id: Optional[int] = None,
    ) -> Optional[VersionHistoryEntry]:
        """
        Returns the new entry, or None when the observation was a heartbeat.

        A blank or missing version is not an observation: it never
        overwrites a known version and only refreshes status. Any other
        value is compared as-is, so "2.0.0 " differs from "2.0.0".
        Omitted status or response time keep the stored values.
        """
        if status is not None:
            status = coerce_status(status)
        if new_version is not None and not new_version.strip():
            new_version = None

        with self.ledger.api_lock(api_id):
            endpoint = self.endpoints.get(api_id)
            if endpoint is None:
                raise EndpointNotFound(api_id)
            current = endpoint.current_version
            known_status = status or endpoint.status
            known_response_time = response_time_ms if response_time_ms is not None else endpoint.response_time_ms

            if new_version is None or new_version == current:
                self.endpoints.update_status(api_id, status, response_time_ms)
                HEARTBEATS.inc()
                logger.debug(f"Heartbeat for API {api_id}: {current} ({known_status.value})")
                return None

            change_type = classify_change(current, new_version)

            # History row must land before the endpoint pointer moves
            entry = self.ledger.append(
                api_id=api_id,
                version=new_version,
                environment=environment,
                previous_version=current,
                change_type=change_type,
                region=region,
                status=known_status.value,
                response_time_ms=known_response_time,
                service_name=service_name,
                url=url,
                project_id=project_id,
            )
            self.endpoints.update_current_version(api_id, new_version)

        VERSION_CHANGES.labels(change_type=change_type.value).inc()
        logger.info(
            f"Version change detected - API {api_id} [{environment}]: "
            f"{current} -> {new_version} ({change_type.value})"
        )
        return entry
