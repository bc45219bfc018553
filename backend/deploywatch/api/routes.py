"""
DeployWatch - API Routes
Thin HTTP adapter over MonitoringService; blocking calls run in threads.
"""
import asyncio
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from deploywatch.config import get_settings
from deploywatch.core.errors import EndpointNotFound, InputError, StorageFailure
from deploywatch.monitoring.service import MonitoringService
from deploywatch.utils.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api", tags=["monitoring"])


@lru_cache()
def get_service() -> MonitoringService:
    """Process-wide service instance (overridden in tests)"""
    return MonitoringService()


# ===== Request Models =====

class CheckRequest(BaseModel):
    url: Optional[str] = None
    apiId: Optional[int] = None


class EnhancedCheckRequest(CheckRequest):
    environment: Optional[str] = None  # dev, uat, oat, prod


class ComplianceCheckRequest(BaseModel):
    urls: Optional[List[str]] = None
    environments: Optional[List[str]] = None


class VersionObservationRequest(BaseModel):
    version: Optional[str] = None
    environment: str = Field(..., min_length=1)
    region: Optional[str] = None
    status: Optional[str] = None
    responseTime: Optional[int] = Field(None, ge=0)
    serviceName: Optional[str] = None
    url: Optional[str] = None
    projectId: Optional[int] = None


# ===== Helpers =====

async def _call(func, *args, **kwargs):
    """Run a blocking service call and map core errors to HTTP errors"""
    try:
        return await asyncio.to_thread(func, *args, **kwargs)
    except EndpointNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageFailure as e:
        logger.error(f"Storage failure: {e}")
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")


# ===== Probe Endpoints =====

@router.post("/proxy/check")
async def proxy_check(req: CheckRequest, service: MonitoringService = Depends(get_service)) -> Dict[str, Any]:
    """Probe a URL once; 200 with offline details when the target is down"""
    result = await _call(service.check, req.url)
    out = result.to_dict()
    out["url"] = req.url.strip()
    out["apiId"] = req.apiId
    return out


@router.post("/enhanced-proxy/check")
async def enhanced_check(req: EnhancedCheckRequest, service: MonitoringService = Depends(get_service)) -> Dict[str, Any]:
    """Probe plus environment/region echo for the compliance screens"""
    result = await _call(service.check, req.url)
    out = result.to_dict()
    out["url"] = req.url.strip()
    out["apiId"] = req.apiId
    out["environment"] = req.environment
    out["region"] = settings.default_region
    return out


@router.post("/enhanced-proxy/compliance-check")
async def compliance_check(req: ComplianceCheckRequest, service: MonitoringService = Depends(get_service)) -> Dict[str, Any]:
    """Probe each URL and validate promotion ordering across environments"""
    report = await _call(service.validate_compliance, req.urls, req.environments)
    return report.to_dict()


@router.get("/monitor/metadata")
async def fetch_metadata(
    url: str = Query(..., min_length=1),
    fallback: bool = Query(False, description="Also try /version, /health, /info, /actuator/info"),
    service: MonitoringService = Depends(get_service),
) -> Dict[str, Any]:
    meta = await _call(service.fetch_metadata, url, fallback)
    return meta.to_dict()


# ===== Monitoring Endpoints =====

@router.post("/monitor/apis/{api_id}/check")
async def check_api(api_id: int, service: MonitoringService = Depends(get_service)) -> Dict[str, Any]:
    """Probe a registered API and record any version change"""
    result = await _call(service.probe_and_record, api_id)
    return result.to_dict()


@router.post("/monitor/apis/{api_id}/versions")
async def record_version(
    api_id: int,
    req: VersionObservationRequest,
    service: MonitoringService = Depends(get_service),
) -> Dict[str, Any]:
    entry = await _call(
        service.record_version_observation,
        api_id,
        req.version,
        req.environment,
        region=req.region,
        status=req.status,
        response_time_ms=req.responseTime,
        service_name=req.serviceName,
        url=req.url,
        project_id=req.projectId,
    )
    return {"recorded": entry is not None, "entry": entry.to_dict() if entry else None}


@router.post("/monitor/scan")
async def scan(service: MonitoringService = Depends(get_service)) -> Dict[str, Any]:
    """Check every registered API; returns when all checks have finished"""
    results = await _call(service.scan_fleet)
    return {str(api_id): r.to_dict() for api_id, r in results.items()}


@router.get("/monitor/health-summary")
async def health_summary(service: MonitoringService = Depends(get_service)) -> Dict[str, Any]:
    return await _call(service.health_summary)


@router.get("/monitor/compliance")
async def service_compliance(service: MonitoringService = Depends(get_service)) -> Dict[str, Any]:
    """Promotion-ordering report per service from recorded versions"""
    reports = await _call(service.service_compliance)
    return {name: r.to_dict() for name, r in reports.items()}


# ===== Version History Endpoints =====

@router.get("/data/apis/{api_id}/version-history")
async def version_history(
    api_id: int,
    environment: Optional[str] = None,
    service: MonitoringService = Depends(get_service),
) -> List[Dict[str, Any]]:
    entries = await _call(service.get_history, api_id, environment)
    return [e.to_dict() for e in entries]


@router.get("/data/apis/{api_id}/version-analytics")
async def version_analytics(api_id: int, service: MonitoringService = Depends(get_service)) -> Dict[str, Any]:
    return await _call(service.version_analytics, api_id)
