"""Pytest configuration and shared fixtures."""

import logging
from typing import Any
from unittest.mock import MagicMock

import pytest
import structlog

from carina.core.models import CloudType, Cluster
from carina.interfaces.cluster_types import Account, Session, UserCredentials


@pytest.fixture(autouse=True)
def quiet_structlog():
    """Keep structlog output out of test streams.

    Loggers are not cached so that a later setup_logging call in one test
    cannot leak a stream into another.
    """
    structlog.reset_defaults()
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point CARINA_HOME at a temporary directory and clear credential env vars."""
    home = tmp_path / "carina-home"
    monkeypatch.setenv("CARINA_HOME", str(home))
    for var in (
        "CARINA_CREDENTIALS_DIR",
        "CARINA_USERNAME",
        "CARINA_APIKEY",
        "RS_USERNAME",
        "RS_API_KEY",
        "OS_USERNAME",
        "OS_PASSWORD",
        "OS_AUTH_URL",
        "OS_PROJECT_NAME",
        "OS_DOMAIN_NAME",
        "OS_REGION_NAME",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def swarm_account() -> Account:
    """make-swarm account with an API key."""
    return Account(
        cloud_type=CloudType.MAKE_SWARM,
        credentials=UserCredentials(
            endpoint="https://app.example.com",
            username="alice",
            secret="api-key-123",
        ),
    )


@pytest.fixture
def magnum_account() -> Account:
    """Magnum account scoped to a project."""
    return Account(
        cloud_type=CloudType.MAGNUM,
        credentials=UserCredentials(
            endpoint="https://keystone.example.com/v3",
            username="bob",
            secret="s3cret",
            project="demo",
            domain="default",
            region="RegionOne",
        ),
    )


@pytest.fixture
def mock_http() -> MagicMock:
    """Mock requests session."""
    return MagicMock()


@pytest.fixture
def swarm_session(mock_http: MagicMock) -> Session:
    """Authenticated make-swarm session with a mocked transport."""
    return Session(
        token="token-abc",
        endpoint="https://app.example.com",
        username="alice",
        http=mock_http,
    )


@pytest.fixture
def magnum_session(mock_http: MagicMock) -> Session:
    """Authenticated magnum session with a mocked transport."""
    return Session(
        token="token-xyz",
        endpoint="https://magnum.example.com",
        username="bob",
        http=mock_http,
        project_id="project-1",
    )


@pytest.fixture
def sample_cluster() -> Cluster:
    """Active three-node cluster."""
    return Cluster(name="web", nodes=3, autoscale=False, status="active", flavor="container1-4G")


def make_response(status_code: int = 200, json_data: Any = None, content: bytes | None = None):
    """Build a mock requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = json_data
    if content is None:
        content = b"" if json_data is None else b"{}"
    response.content = content
    response.text = content.decode("utf-8", errors="replace")
    response.headers = {}
    return response


def pytest_configure(config: Any) -> None:
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
