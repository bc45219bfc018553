"""
DeployWatch - Shared test fixtures
"""
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from deploywatch.config import Settings
from deploywatch.monitoring.service import MonitoringService
from deploywatch.storage.db import Database
from deploywatch.storage.endpoints import EndpointStore
from deploywatch.storage.ledger import HistoryLedger


class FakeClock:
    """Deterministic clock: each call advances one second"""
    
    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start
    
    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class FakeServices:
    """
    Routes requests to canned responses by URL.
    
    Values are (status, body) tuples, dicts (JSON 200) or exceptions
    to raise as transport errors.
    """
    
    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []
    
    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url).rstrip("/")
        self.requests.append(url)
        routes = {k.rstrip("/"): v for k, v in self.routes.items()}
        target = routes.get(url)
        if target is None:
            return httpx.Response(404, text="not found")
        if isinstance(target, type) and issubclass(target, Exception):
            raise target("simulated failure", request=request)
        if isinstance(target, dict):
            return httpx.Response(200, text=json.dumps(target))
        status, body = target
        return httpx.Response(status, text=body)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "deploywatch.db"))
    database.initialize()
    return database


@pytest.fixture
def endpoints(db, clock):
    return EndpointStore(db, clock=clock)


@pytest.fixture
def ledger(db, clock):
    return HistoryLedger(db, clock=clock)


@pytest.fixture
def fake_services():
    return FakeServices()


@pytest.fixture
def http_client(fake_services):
    client = httpx.Client(transport=httpx.MockTransport(fake_services))
    yield client
    client.close()


@pytest.fixture
def service(tmp_path, http_client, clock):
    settings = Settings(database_path=str(tmp_path / "service.db"), max_scan_workers=4)
    svc = MonitoringService(client=http_client, settings=settings, clock=clock)
    yield svc
    svc.close()
