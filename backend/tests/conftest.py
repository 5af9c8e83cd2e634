from __future__ import annotations

import os

import pytest

os.environ.setdefault("PYTEST_RUNNING", "1")

from fastapi.testclient import TestClient  # noqa: E402

from dctopo.main import app  # noqa: E402
from dctopo.topology import service as topology_service  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_topology_cache():
    topology_service.reset_caches()
    yield
    topology_service.reset_caches()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
